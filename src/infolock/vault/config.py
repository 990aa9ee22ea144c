"""
Configuration management for the vault client library.

This module handles environment variables, the optional .env file, and
default settings for the backend connection and logging.
"""

import sys
from typing import Optional
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
from loguru import logger


DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class VaultConfig(BaseSettings):
    """Configuration settings for the vault client."""

    model_config = SettingsConfigDict(
        env_prefix="INFOLOCK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend Configuration
    api_base_url: str = Field(default="http://localhost:8080/api")
    api_token: Optional[str] = Field(default=None)
    request_timeout_seconds: float = Field(default=30.0)

    # Upload / Download Configuration
    max_upload_bytes: int = Field(default=DEFAULT_MAX_UPLOAD_BYTES)
    download_dir: Path = Field(default=Path("downloads"))

    # Retry Configuration (idempotent reads only)
    read_retry_attempts: int = Field(default=3)
    retry_base_delay_seconds: float = Field(default=0.5)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(
        default="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}"
    )

    # Environment
    environment: str = Field(default="dev")

    @field_validator("api_base_url")
    @classmethod
    def validate_base_url(cls, v):
        """Validate the backend URL and drop any trailing slash."""
        if not v:
            raise ValueError("INFOLOCK_API_BASE_URL must not be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError("API base URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("request_timeout_seconds", "max_upload_bytes", "read_retry_attempts")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("retry_base_delay_seconds")
    @classmethod
    def validate_delay(cls, v):
        if v < 0:
            raise ValueError("Retry delay must not be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment."""
        valid_envs = ["dev", "test", "staging", "prod"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of: {valid_envs}")
        return v.lower()

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "prod"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "dev"


def load_config(config_file: Optional[str] = None) -> VaultConfig:
    """
    Load configuration from environment variables and optional config file.

    Args:
        config_file: Optional path to .env file

    Returns:
        VaultConfig instance

    Raises:
        ConfigurationError: If required configuration is missing or invalid
    """
    from .exceptions import ConfigurationError

    if config_file:
        if not Path(config_file).exists():
            raise ConfigurationError(f"Config file not found: {config_file}", config_key="config_file")
        load_dotenv(config_file)
    elif Path(".env").exists():
        load_dotenv(".env")

    try:
        config = VaultConfig()
        logger.info(f"Configuration loaded successfully for environment: {config.environment}")
        return config
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {str(e)}")


def setup_logging(config: VaultConfig) -> None:
    """
    Setup logging configuration based on config settings.

    Args:
        config: VaultConfig instance
    """
    logger.remove()

    logger.add(
        sink=sys.stderr,
        format=config.log_format,
        level=config.log_level,
        colorize=True,
    )

    if config.is_production():
        logger.add(
            sink="logs/infolock.log",
            format=config.log_format,
            level=config.log_level,
            rotation="10 MB",
            retention="30 days",
            compression="gz",
        )


# Global configuration instance
_config: Optional[VaultConfig] = None


def get_config() -> VaultConfig:
    """
    Get the global configuration instance.

    Returns:
        VaultConfig: Global configuration instance
    """
    global _config
    if _config is None:
        _config = load_config()
        setup_logging(_config)
    return _config


def set_config(config: VaultConfig) -> None:
    """
    Set the global configuration instance.

    Args:
        config: VaultConfig instance to set as global
    """
    global _config
    _config = config
    setup_logging(config)
