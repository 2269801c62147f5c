"""
Application settings management.

Loads configuration from environment variables and provides access to
deployment presets and storage paths.
"""

import os
from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .presets import DeploymentPreset, get_preset


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    deployment_preset: str = Field(
        default="cpu-only",
        description="Deployment preset name"
    )

    model_weights_path: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "ragcore" / "models",
        description="Path to store local model weights"
    )

    # Vector database
    vector_db_url: Optional[str] = Field(
        default=None,
        description="Qdrant server URL; when unset an embedded database at vector_db_path is used"
    )
    vector_db_api_key: Optional[str] = Field(default=None, description="Qdrant API key")
    vector_db_path: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / "ragcore" / "qdrant",
        description="Path to embedded Qdrant storage"
    )
    vector_collection: str = Field(default="content_chunks", description="Qdrant collection name")
    vector_db_timeout: int = Field(default=10, description="Qdrant request timeout in seconds")
    vector_db_max_retries: int = Field(default=3, ge=1, description="Attempts per Qdrant call for transient errors")

    # Remote reader
    reader_url: str = Field(default="https://r.jina.ai/", description="Remote reader endpoint")
    reader_token: Optional[str] = Field(default=None, description="Bearer token for the reader")
    reader_timeout: float = Field(default=30.0, description="Reader request timeout in seconds")
    reader_max_retries: int = Field(default=3, ge=1, description="Attempts per reader request")
    fetch_cache_size: int = Field(default=1000, description="Maximum cached reader results")

    memory_index_enabled: bool = Field(default=True, description="Enable the in-memory index")

    object_storage_path: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / "ragcore" / "objects",
        description="Root directory for archived content chunks"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(default=None, description="Path to log file")

    version: str = Field(default="0.1.0", description="Service version")

    @field_validator("model_weights_path", "vector_db_path", "object_storage_path", "log_file", mode="before")
    @classmethod
    def expand_path(cls, v):
        """Expand user home directory in paths."""
        if v is None or v == "":
            return None
        path_str = str(v)
        if path_str.startswith("~"):
            path_str = os.path.expanduser(path_str)
        return Path(path_str)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator("fetch_cache_size")
    @classmethod
    def validate_cache_size(cls, v):
        if v <= 0:
            raise ValueError("fetch_cache_size must be positive")
        return v

    def get_deployment_preset(self) -> DeploymentPreset:
        """Get the configured deployment preset."""
        return get_preset(self.deployment_preset)

    def ensure_directories(self):
        """Create necessary directories if they don't exist."""
        self.model_weights_path.mkdir(parents=True, exist_ok=True)
        self.object_storage_path.mkdir(parents=True, exist_ok=True)
        if not self.vector_db_url:
            self.vector_db_path.mkdir(parents=True, exist_ok=True)

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self, env_var_name: str) -> Optional[str]:
        """
        Get an API key from an environment variable.

        Args:
            env_var_name: Name of the environment variable (e.g., "OPENAI_API_KEY")

        Returns:
            API key if available, None otherwise
        """
        return os.getenv(env_var_name)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Creates and caches the settings on first call.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.ensure_directories()
    return _settings


def reset_settings():
    """Reset the global settings instance (mainly for testing)."""
    global _settings
    _settings = None
