"""
Configuration management for the device inventory store.

Uses Pydantic Settings for environment variable validation and type safety.
"""

import re
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StoreConfig(BaseSettings):
    """Document store connection configuration."""

    url: str = Field(
        default="sqlite:////var/lib/device-inventory/inventory.db",
        description="Document store target (sqlite:///<path> or memory://)"
    )
    collection: str = Field(
        default="devices",
        description="Collection holding device documents"
    )
    timeout: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds to wait for a locked database before failing"
    )

    @field_validator("collection")
    @classmethod
    def validate_collection(cls, v: str) -> str:
        """Collection names double as table names, so keep them plain."""
        if not _IDENTIFIER.match(v):
            raise ValueError(f"Collection name must be an identifier, got {v!r}")
        return v

    model_config = SettingsConfigDict(env_prefix="INVENTORY_STORE_")


class AppConfig(BaseSettings):
    """Main application configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # Nested configurations
    store: StoreConfig = Field(default_factory=StoreConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global configuration instance.

    Lazily loads configuration on first access.

    Returns:
        AppConfig: The global configuration instance
    """
    global _config
    if _config is None:
        _config = AppConfig(store=StoreConfig())
    return _config


def reload_config() -> AppConfig:
    """
    Reload configuration from environment variables.

    Useful for testing or when environment changes.

    Returns:
        AppConfig: The reloaded configuration instance
    """
    global _config
    _config = None
    return get_config()
