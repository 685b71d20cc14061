"""
Config Module - Black Box Interface

Purpose: Application configuration management
Interface: get_config(), reset_config(), ConfigModule.get()/set()/get_all()
Hidden: Config sources, validation logic, environment parsing

Can be replaced with different config systems (Consul, etcd, AWS Parameter Store).
"""

import os
from typing import Any, Dict


# Configuration Contract: Required and Optional Keys

REQUIRED_CONFIG_KEYS = {
    "storage_backend": "Work item store backing: memory or redis",
    "host": "API server bind address",
    "port": "API server port",
    "log_level": "Logging level (DEBUG, INFO, WARNING, ERROR)",
    "wait_timeout": "Seconds a submitter waits for the device outcome",
    "poll_interval": "Seconds between waiter re-reads of a work item",
    "retention_seconds": "Seconds a finished work item stays readable",
    "sweep_interval": "Seconds between maintenance passes",
    "processing_timeout": "Seconds before an unreported claim is failed",
}

OPTIONAL_CONFIG_KEYS = {
    "redis_host": {
        "description": "Redis server hostname (redis backend only)",
        "default": "localhost",
    },
    "redis_port": {
        "description": "Redis server port number",
        "default": 6379,
    },
    "redis_db": {
        "description": "Redis database number",
        "default": 0,
    },
    "redis_password": {
        "description": "Redis authentication password",
        "default": None,
    },
    "redis_key_prefix": {
        "description": "Namespace for queue keys in Redis",
        "default": "lockqueue",
    },
    "claim_guard": {
        "description": "Refuse to hand out a command while one is still processing",
        "default": True,
    },
    "debug": {
        "description": "Enable debug mode",
        "default": False,
    },
}

SUPPORTED_BACKENDS = ("memory", "redis")


class ConfigModule:
    """Configuration management module."""

    def __init__(self):
        """Initialize with environment variables."""
        self._config = self._load_from_env()
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
        """
        Validate value ranges and combinations.

        Raises:
            ValueError: On an unknown backend or a retention window that a
                polling waiter could miss
        """
        if self._config["storage_backend"] not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported STORAGE_BACKEND '{self._config['storage_backend']}'. "
                f"Expected one of: {', '.join(SUPPORTED_BACKENDS)}"
            )

        if self._config["retention_seconds"] <= self._config["poll_interval"]:
            raise ValueError(
                "RETENTION_SECONDS must be greater than POLL_INTERVAL so waiting "
                "requesters can read a finished command before it is removed"
            )

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment."""
        # Parse Redis port (might be in tcp://host:port format from K8s)
        redis_port_env = os.getenv("REDIS_PORT", "6379")
        if redis_port_env.startswith("tcp://"):
            redis_port = int(redis_port_env.split(":")[-1])
        else:
            redis_port = int(redis_port_env)

        return {
            # Storage settings
            "storage_backend": os.getenv("STORAGE_BACKEND", "memory").lower(),
            "redis_host": os.getenv("REDIS_HOST", "localhost"),
            "redis_port": redis_port,
            "redis_db": int(os.getenv("REDIS_DB", "0")),
            "redis_password": os.getenv("REDIS_PASSWORD"),
            "redis_key_prefix": os.getenv("REDIS_KEY_PREFIX", "lockqueue"),
            # API settings
            "host": os.getenv("API_HOST", "0.0.0.0"),
            "port": int(os.getenv("API_PORT", os.getenv("PORT", "3000"))),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "debug": os.getenv("DEBUG", "false").lower() == "true",
            # Queue settings
            "wait_timeout": float(os.getenv("WAIT_TIMEOUT", "60")),
            "poll_interval": float(os.getenv("POLL_INTERVAL", "0.5")),
            "retention_seconds": float(os.getenv("RETENTION_SECONDS", "10")),
            "sweep_interval": float(os.getenv("SWEEP_INTERVAL", "5")),
            "processing_timeout": float(os.getenv("PROCESSING_TIMEOUT", "120")),
            "claim_guard": os.getenv("CLAIM_GUARD", "true").lower() == "true",
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
            >>> print(schema['required']['wait_timeout'])
            'Seconds a submitter waits for the device outcome'
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


def reset_config() -> None:
    """Drop the singleton so the next get_config() re-reads the environment."""
    global _instance
    _instance = None


__all__ = ["get_config", "reset_config", "ConfigModule"]
