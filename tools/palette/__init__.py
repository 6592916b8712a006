"""
Palette: local persistence for a color picker frontend

Simulates a backend for user accounts and saved "works" (an image plus the
colors picked from it) on top of a plain key-value store.

Architecture:
    AuthService     ──► credential blob (username → password)
    WorkDataService ──► works blob (username → work id → WorkData)
    both            ──► KeyValueStore (MemoryStore / SqliteStore)

Every operation awaits an artificial network delay, then reads the whole blob
it needs, changes it in memory and writes the whole blob back.

Usage:
    from palette import AuthService, WorkDataService, SqliteStore

    store = SqliteStore(".palette/storage.db")
    auth = AuthService(store)
    works = WorkDataService(store)

    user = await auth.signup("alice", "pw1")
    await works.save_work(user.username, {"name": "sunset", "imageData": "..."})
"""

__version__ = "0.1.0"

from .auth import AuthService
from .config import PaletteConfig, load_config
from .errors import (
    AuthError,
    InvalidCredentials,
    PaletteError,
    UsernameGenerationExhausted,
    UsernameTaken,
)
from .models import Color, User, WorkData, WorkDraft
from .storage import KeyValueStore, MemoryStore, SqliteStore
from .works import WorkDataService

__all__ = [
    "AuthService",
    "WorkDataService",
    "KeyValueStore",
    "MemoryStore",
    "SqliteStore",
    "PaletteConfig",
    "load_config",
    "User",
    "Color",
    "WorkData",
    "WorkDraft",
    "PaletteError",
    "AuthError",
    "InvalidCredentials",
    "UsernameTaken",
    "UsernameGenerationExhausted",
]
