"""
Configuration module for CoolChat application.
Stores all server settings; every value can be overridden from the environment.
"""

import os
from typing import Dict, Any


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration class."""

    # Server Configuration
    DEFAULT_HOST = os.environ.get("COOLCHAT_HOST", "0.0.0.0")
    DEFAULT_SERVER_PORT = int(os.environ.get("COOLCHAT_PORT", "7700"))
    WEB_PORT = int(os.environ.get("COOLCHAT_WEB_PORT", "8081"))

    # LAN discovery
    DISCOVERY_PORT = int(os.environ.get("COOLCHAT_DISCOVERY_PORT", "7701"))
    DISCOVERY_PROBE = "SCAN BY COOL CHAT SERVER"
    DISCOVERY_REPLY_PREFIX = "YES PORT:"
    DISCOVERY_ATTEMPTS = int(os.environ.get("COOLCHAT_DISCOVERY_ATTEMPTS", "5"))
    DISCOVERY_TIMEOUT = float(os.environ.get("COOLCHAT_DISCOVERY_TIMEOUT", "2.0"))

    # Persisted state
    USER_DB_FILE = os.environ.get("COOLCHAT_USERS", "users.txt")
    HISTORY_FILE = os.environ.get("COOLCHAT_HISTORY", "chat_history.txt")
    HISTORY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
    HISTORY_REPLAY = int(os.environ.get("COOLCHAT_HISTORY_REPLAY", "0"))
    STRICT_DURABILITY = _env_bool("COOLCHAT_STRICT_DURABILITY", False)

    # Authentication
    AUTH_ATTEMPTS = int(os.environ.get("COOLCHAT_AUTH_ATTEMPTS", "1"))
    BCRYPT_ROUNDS = int(os.environ.get("COOLCHAT_BCRYPT_ROUNDS", "12"))

    # Per-connection limits
    OUTBOUND_QUEUE_SIZE = int(os.environ.get("COOLCHAT_OUTBOUND_QUEUE", "256"))
    SEND_TIMEOUT = float(os.environ.get("COOLCHAT_SEND_TIMEOUT", "5.0"))
    MAX_LINE_LENGTH = 64 * 1024

    @classmethod
    def get_config(cls) -> Dict[str, Any]:
        """Get all configuration values as a dictionary."""
        return {
            "DEFAULT_HOST": cls.DEFAULT_HOST,
            "DEFAULT_SERVER_PORT": cls.DEFAULT_SERVER_PORT,
            "WEB_PORT": cls.WEB_PORT,
            "DISCOVERY_PORT": cls.DISCOVERY_PORT,
            "DISCOVERY_PROBE": cls.DISCOVERY_PROBE,
            "DISCOVERY_REPLY_PREFIX": cls.DISCOVERY_REPLY_PREFIX,
            "DISCOVERY_ATTEMPTS": cls.DISCOVERY_ATTEMPTS,
            "DISCOVERY_TIMEOUT": cls.DISCOVERY_TIMEOUT,
            "USER_DB_FILE": cls.USER_DB_FILE,
            "HISTORY_FILE": cls.HISTORY_FILE,
            "HISTORY_TIME_FORMAT": cls.HISTORY_TIME_FORMAT,
            "HISTORY_REPLAY": cls.HISTORY_REPLAY,
            "STRICT_DURABILITY": cls.STRICT_DURABILITY,
            "AUTH_ATTEMPTS": cls.AUTH_ATTEMPTS,
            "BCRYPT_ROUNDS": cls.BCRYPT_ROUNDS,
            "OUTBOUND_QUEUE_SIZE": cls.OUTBOUND_QUEUE_SIZE,
            "SEND_TIMEOUT": cls.SEND_TIMEOUT,
            "MAX_LINE_LENGTH": cls.MAX_LINE_LENGTH,
        }


# Create config instance
config = Config()
