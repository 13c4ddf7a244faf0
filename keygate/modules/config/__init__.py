"""
Config Module - Black Box Interface

Purpose: Application configuration management
Interface: get_config(), ConfigModule.get(), set(), get_config_schema()
Hidden: Config sources, validation logic, environment parsing

Values come from the environment; tests pass overrides instead.
"""

import os
from typing import Any, Dict, Optional


# Configuration Contract: Required and Optional Keys
# This defines the black box interface - what the config module guarantees to provide

REQUIRED_CONFIG_KEYS = {
    "host": "API server bind address",
    "port": "API server port",
    "log_level": "Logging level (DEBUG, INFO, WARNING, ERROR)",
    "session_ttl": "Session time-to-live in seconds (0 = sessions never expire)",
    "sweep_interval": "Seconds between background sweeps of expired sessions",
    "token_file": "JSON file mapping tokens to permission bitmasks",
    "key_file": "Key file served by GET / and replaced by PUT /",
    "backup_dir": "Directory receiving key file backups",
    "cors_origins": "Origins allowed to make credentialed cross-origin requests",
    "cookie_name": "Cookie carrying the session ID",
}

OPTIONAL_CONFIG_KEYS = {
    "tokens": {
        "description": "Extra tokens as token:permissions pairs, layered over token_file",
        "default": None,
    },
    "cookie_secure": {
        "description": "Mark the session cookie Secure (HTTPS only)",
        "default": False,
    },
    "debug": {
        "description": "Enable debug mode",
        "default": False,
    },
}


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class ConfigModule:
    """Configuration management module."""

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize with environment variables.

        Args:
            overrides: Values taking precedence over the environment (used by tests)
        """
        self._config = self._load_from_env()
        if overrides:
            self._config.update(overrides)
        self._validate_required_keys()
        self._validate_values()

    def _validate_required_keys(self) -> None:
        """
        Validate that all required configuration keys are present.

        Raises:
            ValueError: If required keys are missing
        """
        missing_keys = []
        for key in REQUIRED_CONFIG_KEYS:
            if key not in self._config or self._config[key] is None:
                missing_keys.append(key)

        if missing_keys:
            raise ValueError(
                f"Missing required configuration keys: {', '.join(missing_keys)}. "
                f"Check environment variables and deployment configuration."
            )

    def _validate_values(self) -> None:
        if self._config["session_ttl"] < 0:
            raise ValueError(f"session_ttl must be non-negative, got {self._config['session_ttl']}")
        if self._config["sweep_interval"] <= 0:
            raise ValueError(
                f"sweep_interval must be positive, got {self._config['sweep_interval']}"
            )

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment."""
        return {
            # API settings
            "host": os.getenv("KEYGATE_HOST", "0.0.0.0"),
            "port": int(os.getenv("KEYGATE_PORT", "3000")),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "debug": _env_bool("DEBUG"),
            "cors_origins": [
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
                if origin.strip()
            ],
            # Session settings
            "session_ttl": float(os.getenv("SESSION_TTL", "300")),
            "sweep_interval": float(os.getenv("SWEEP_INTERVAL", "1.0")),
            "cookie_name": os.getenv("SESSION_COOKIE_NAME", "sessionId"),
            "cookie_secure": _env_bool("COOKIE_SECURE"),
            # Token and key file settings
            "token_file": os.getenv("TOKEN_FILE", "btoken.json"),
            "tokens": os.getenv("TOKENS"),
            "key_file": os.getenv("KEY_FILE", ".keys"),
            "backup_dir": os.getenv("BACKUP_DIR", "ksv"),
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        self._config[key] = value

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        return self._config.copy()

    @staticmethod
    def get_config_schema() -> Dict[str, Any]:
        """
        Get the configuration schema (contract) for this module.

        Returns:
            Dictionary with 'required' and 'optional' key specifications

        Example:
            >>> schema = ConfigModule.get_config_schema()
            >>> print(schema['required']['session_ttl'])
            'Session time-to-live in seconds (0 = sessions never expire)'
        """
        return {
            "required": REQUIRED_CONFIG_KEYS.copy(),
            "optional": OPTIONAL_CONFIG_KEYS.copy(),
        }


# Singleton instance
_instance = None


def get_config() -> ConfigModule:
    """Get the configuration module singleton."""
    global _instance
    if _instance is None:
        _instance = ConfigModule()
    return _instance


__all__ = ["get_config", "ConfigModule", "REQUIRED_CONFIG_KEYS", "OPTIONAL_CONFIG_KEYS"]
