"""Configuration loading.

Settings live in a JSON file (``.palette/config.json`` by default, see
``tools/config.json.example``). Every key is optional.
"""

from __future__ import annotations

import json
import logging
import warnings
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .storage import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".palette/config.json"

USERS_KEY = "color-picker-users"
WORK_DATA_KEY = "color-picker-work-data"


@dataclass
class PaletteConfig:
    """Runtime settings for the storage, auth and work data services.

    Attributes:
        db_path: SQLite file backing the persistent key-value store.
        users_key: Store key holding the username -> password blob.
        work_data_key: Store key holding the username -> works blob.
        simulate_latency: Await the artificial network delays when True.
        hash_passwords: Store bcrypt hashes instead of plaintext passwords.
        bcrypt_rounds: bcrypt cost factor (4-31).
        jwt_secret: HS256 secret for session tokens. Empty disables tokens.
        token_expiry_hours: Session token validity in hours.
        log_level: Root log level used by the CLI.
    """

    db_path: str = DEFAULT_DB_PATH
    users_key: str = USERS_KEY
    work_data_key: str = WORK_DATA_KEY
    simulate_latency: bool = True
    hash_passwords: bool = True
    bcrypt_rounds: int = 12
    jwt_secret: str = ""
    token_expiry_hours: int = 24
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.jwt_secret and "CHANGE-ME" in self.jwt_secret:
            warnings.warn("jwt_secret contains placeholder value; tokens will be insecure")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ConfigError(f"bcrypt_rounds must be between 4 and 31, got {self.bcrypt_rounds}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaletteConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> PaletteConfig:
    """Load configuration from a JSON file.

    A missing file yields the defaults. A file that is not a JSON object
    raises ConfigError.
    """
    path = Path(config_path)
    if not path.exists():
        logger.info(f"No config at {path}, using defaults")
        return PaletteConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config at {path} must be a JSON object")
    return PaletteConfig.from_dict(data)
