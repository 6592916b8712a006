"""
Palette Auth: username/password accounts over a key-value store.

Credentials are kept as one JSON object (username -> password) under a single
store key. Passwords are bcrypt-hashed unless ``hash_passwords`` is off.

Usage:
    from palette.auth import AuthService
    from palette.storage import MemoryStore

    auth = AuthService(MemoryStore())
    await auth.signup("owl", "password123")
    await auth.login("owl", "password123")  # User(username="owl")
"""

from .service import AuthService

__all__ = ["AuthService"]
