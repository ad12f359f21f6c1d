"""
Config Module - Black Box Interface

Purpose: Application configuration management
Interface: get_config(), ConfigModule.get(), ConfigModule.get_all()
Hidden: Config sources, validation logic, environment parsing

Can be replaced with different config systems (ConfigMaps, Vault, etcd).
"""

import os
from typing import Any, Dict


# Configuration Contract: Required and Optional Keys
# This defines the black box interface - what the config module guarantees to provide

REQUIRED_CONFIG_KEYS = {
    "redis_host": "Redis server hostname",
    "redis_port": "Redis server port number",
    "redis_db": "Redis database number",
    "host": "API server bind address",
    "port": "API server port",
    "log_level": "Logging level (DEBUG, INFO, WARNING, ERROR)",
    "namespace": "Kubernetes namespace execution pods are created in",
    "executor_image": "Container image used to run task commands",
    "wait_timeout": "Maximum seconds to wait for an execution pod to finish",
    "poll_interval": "Seconds between pod phase checks",
    "max_output_bytes": "Maximum bytes of pod log kept as execution output",
}

OPTIONAL_CONFIG_KEYS = {
    "redis_password": {
        "description": "Redis authentication password",
        "default": None,
    },
    "debug": {
        "description": "Enable debug mode",
        "default": False,
    },
    "cors_origins": {
        "description": "Comma separated list of allowed CORS origins",
        "default": ["*"],
    },
}


def _parse_port(value: str) -> int:
    # K8s service links inject REDIS_PORT as tcp://host:port
    if value.startswith("tcp://"):
        return int(value.split(":")[-1])
    return int(value)


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
        Validate value ranges for the execution settings.

        Raises:
            ValueError: If a timing or size setting is not positive
        """
        for key in ("wait_timeout", "poll_interval", "max_output_bytes"):
            if self._config[key] <= 0:
                raise ValueError(f"Configuration key '{key}' must be positive, got {self._config[key]}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment."""
        return {
            # Redis settings
            "redis_host": os.getenv("REDIS_HOST", "localhost"),
            "redis_port": _parse_port(os.getenv("REDIS_PORT", "6379")),
            "redis_db": int(os.getenv("REDIS_DB", "0")),
            "redis_password": os.getenv("REDIS_PASSWORD"),
            # API settings
            "host": os.getenv("API_HOST", "0.0.0.0"),
            "port": int(os.getenv("API_PORT", "8080")),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "debug": os.getenv("DEBUG", "false").lower() == "true",
            "cors_origins": [
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", "*").split(",")
                if origin.strip()
            ],
            # Execution settings
            "namespace": os.getenv("TASK_NAMESPACE", "default"),
            "executor_image": os.getenv("TASK_EXECUTOR_IMAGE", "busybox"),
            "wait_timeout": float(os.getenv("TASK_WAIT_TIMEOUT", "300")),
            "poll_interval": float(os.getenv("TASK_POLL_INTERVAL", "2.0")),
            "max_output_bytes": int(os.getenv("TASK_MAX_OUTPUT_BYTES", str(1024 * 1024))),
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
            >>> print(schema['required']['namespace'])
            'Kubernetes namespace execution pods are created in'
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
    """Drop the cached singleton so the next get_config() re-reads the environment."""
    global _instance
    _instance = None


__all__ = ["get_config", "reset_config", "ConfigModule"]
