"""Exception hierarchy for the Palette persistence shim.

Auth errors surface to callers as rejected operations carrying a
human-readable message. Storage faults (StoreCorrupt, write failures) are
recovered inside palette.storage and only ever logged.
"""


class PaletteError(Exception):
    """Base class for all Palette errors."""


class AuthError(PaletteError):
    """Base class for credential and availability errors."""


class InvalidCredentials(AuthError):
    """Login with an unknown username or a wrong password."""

    def __init__(self, message: str = "Invalid username or password.") -> None:
        super().__init__(message)


class UsernameTaken(AuthError):
    """Signup with a username that is already registered."""

    def __init__(self, username: str = "") -> None:
        super().__init__("Username already exists.")
        self.username = username


class UsernameGenerationExhausted(AuthError):
    """Every synthetic username attempt collided with an existing user."""

    def __init__(self, attempts: int = 0) -> None:
        super().__init__("Could not generate a unique Google username.")
        self.attempts = attempts


class StoreCorrupt(PaletteError):
    """A stored blob could not be decoded into a mapping."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Stored value for {key!r} is corrupt: {reason}")
        self.key = key
        self.reason = reason


class StoreWriteError(PaletteError):
    """A key-value store rejected a write (quota, closed handle, ...)."""


class ConfigError(PaletteError):
    """The configuration file exists but cannot be used."""
