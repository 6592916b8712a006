"""Username/password auth over a key-value store.

The whole credential mapping lives as one JSON object under a single store
key. Every operation reads the full mapping; mutating operations write the
full mapping back (last write wins).
"""

from __future__ import annotations

import asyncio
import hmac
import logging
import random
import time
from typing import Any, Callable, Dict, Optional

import bcrypt

from ..config import USERS_KEY, PaletteConfig
from ..errors import AuthError, InvalidCredentials, UsernameGenerationExhausted, UsernameTaken
from ..latency import AUTH_DELAY, Delay, default_delay
from ..models import User
from ..storage import KeyValueStore, read_json_map, write_json_map
from . import tokens

logger = logging.getLogger(__name__)

GOOGLE_USERNAME_PREFIX = "google_user_"
GOOGLE_PASSWORD_PREFIX = "simulated_google_password_"
MAX_USERNAME_ATTEMPTS = 10

# bcrypt only looks at the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class AuthService:
    """Login, signup and simulated Google signup.

    Args:
        store: Key-value store holding the credential blob.
        users_key: Store key for the username -> password mapping.
        delay: Awaited before every operation to simulate network latency.
        hash_passwords: Store bcrypt hashes. When False passwords are stored
                        and compared as plaintext.
        bcrypt_rounds: bcrypt cost factor.
        jwt_secret: Secret for session tokens. Empty disables create_token.
        token_expiry_hours: Session token validity in hours.
        rng: Random source for synthetic usernames.
        clock: Returns epoch milliseconds.
    """

    def __init__(
        self,
        store: KeyValueStore,
        users_key: str = USERS_KEY,
        delay: Delay = asyncio.sleep,
        hash_passwords: bool = True,
        bcrypt_rounds: int = 12,
        jwt_secret: str = "",
        token_expiry_hours: int = 24,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._store = store
        self._users_key = users_key
        self._delay = delay
        self._hash_passwords = hash_passwords
        self._bcrypt_rounds = bcrypt_rounds
        self._jwt_secret = jwt_secret
        self._token_expiry_hours = token_expiry_hours
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: time.time_ns() // 1_000_000)
        self._dummy_hash: Optional[bytes] = None

    @classmethod
    def from_config(cls, config: PaletteConfig, store: KeyValueStore, **kwargs) -> "AuthService":
        kwargs.setdefault("delay", default_delay(config.simulate_latency))
        return cls(
            store,
            users_key=config.users_key,
            hash_passwords=config.hash_passwords,
            bcrypt_rounds=config.bcrypt_rounds,
            jwt_secret=config.jwt_secret,
            token_expiry_hours=config.token_expiry_hours,
            **kwargs,
        )

    # --- credential blob ---

    def _get_users(self) -> Dict[str, Any]:
        # Entries are kept as stored, whatever their value type, so a write-back
        # never drops or frees a username another client registered.
        return read_json_map(self._store, self._users_key)

    def _save_users(self, users: Dict[str, Any]) -> None:
        write_json_map(self._store, self._users_key, users)

    def _encode_password(self, password: str) -> str:
        if not self._hash_passwords:
            return password
        return bcrypt.hashpw(
            _password_bytes(password), bcrypt.gensalt(rounds=self._bcrypt_rounds)
        ).decode("utf-8")

    def _check_password(self, password: str, stored: Any) -> bool:
        # bcrypt runs on the event loop thread, so nothing interleaves between
        # reading the users blob and writing it back.
        if not isinstance(stored, str):
            stored = None
        if not self._hash_passwords:
            return bool(stored) and hmac.compare_digest(stored.encode("utf-8"), password.encode("utf-8"))

        if not stored:
            # Same amount of work for unknown users as for known ones.
            if self._dummy_hash is None:
                self._dummy_hash = bcrypt.hashpw(b"dummy", bcrypt.gensalt(rounds=self._bcrypt_rounds))
            bcrypt.checkpw(_password_bytes(password), self._dummy_hash)
            return False

        try:
            return bcrypt.checkpw(_password_bytes(password), stored.encode("utf-8"))
        except ValueError:
            logger.warning("Stored credential is not a bcrypt hash; was it written with hash_passwords off?")
            return False

    # --- public operations ---

    async def login(self, username: str, password: str) -> User:
        """Return the user if ``password`` matches the stored one.

        Raises:
            InvalidCredentials: unknown username or wrong password.
        """
        await self._delay(AUTH_DELAY)
        users = self._get_users()
        if self._check_password(password, users.get(username)):
            logger.info(f"Login succeeded for {username}")
            return User(username)
        logger.info(f"Login failed for {username}")
        raise InvalidCredentials()

    async def signup(self, username: str, password: str) -> User:
        """Register a new username.

        Raises:
            UsernameTaken: the username is already registered.
        """
        await self._delay(AUTH_DELAY)
        users = self._get_users()
        if username in users:
            raise UsernameTaken(username)
        users[username] = self._encode_password(password)
        self._save_users(users)
        logger.info(f"Registered user {username}")
        return User(username)

    async def google_signup(self) -> User:
        """Register a synthetic ``google_user_NNNN`` account.

        Raises:
            UsernameGenerationExhausted: ten generated names all collided.
        """
        await self._delay(AUTH_DELAY)
        users = self._get_users()
        for attempt in range(1, MAX_USERNAME_ATTEMPTS + 1):
            username = f"{GOOGLE_USERNAME_PREFIX}{self._rng.randint(1000, 9999)}"
            if username not in users:
                break
            logger.debug(f"Synthetic username {username} taken (attempt {attempt})")
        else:
            logger.warning(f"Gave up generating a username after {MAX_USERNAME_ATTEMPTS} attempts")
            raise UsernameGenerationExhausted(MAX_USERNAME_ATTEMPTS)

        users[username] = self._encode_password(f"{GOOGLE_PASSWORD_PREFIX}{self._clock()}")
        self._save_users(users)
        logger.info(f"Registered synthetic user {username}")
        return User(username)

    # --- management helpers ---

    def list_usernames(self) -> list[str]:
        """Return all registered usernames, sorted."""
        return sorted(k for k, v in self._get_users().items() if isinstance(v, str))

    def remove_user(self, username: str) -> bool:
        """Drop a credential. Returns True if the username existed."""
        users = self._get_users()
        if username not in users:
            return False
        del users[username]
        self._save_users(users)
        logger.info(f"Removed user {username}")
        return True

    # --- session tokens ---

    def create_token(self, user: User) -> str:
        """Create a signed session token for ``user``.

        Raises:
            AuthError: no jwt_secret is configured.
        """
        if not self._jwt_secret:
            raise AuthError("jwt_secret is not configured")
        return tokens.create_token(user.username, self._jwt_secret, self._token_expiry_hours)

    def verify_token(self, token: str) -> Optional[User]:
        """Return the user a token was issued to, or None if it is invalid."""
        if not self._jwt_secret:
            return None
        username = tokens.verify_token(token, self._jwt_secret)
        return User(username) if username else None
