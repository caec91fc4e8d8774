"""
Application settings management.

Loads configuration from environment variables and provides access to
the Zotero connection parameters and local storage paths.
"""

import os
from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_dir() -> Path:
    return Path.home() / ".local" / "share" / "threadmed"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    api_host: str = Field(default="localhost", description="API server host")
    api_port: int = Field(default=8120, description="API server port")

    # Zotero Web API Configuration
    zotero_api_url: str = Field(
        default="https://api.zotero.org",
        description="Zotero Web API base URL"
    )
    zotero_page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Items requested per page (Zotero caps this at 100)"
    )
    zotero_max_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts per request when the API signals rate limiting"
    )
    zotero_default_backoff: float = Field(
        default=5.0,
        ge=0,
        description="Seconds to wait when a Backoff/Retry-After hint is unparseable"
    )
    zotero_request_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Total timeout in seconds for a single HTTP request"
    )

    # Storage Configuration
    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Directory holding the library database and PDFs"
    )
    db_path: Path = Field(
        default_factory=lambda: _default_data_dir() / "threadmed.db",
        description="Path to the SQLite library database"
    )
    pdf_dir: Path = Field(
        default_factory=lambda: _default_data_dir() / "pdfs",
        description="Directory where downloaded PDF attachments are stored"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(
        default_factory=lambda: _default_data_dir() / "logs" / "sync.log",
        description="Path to log file"
    )

    # Application version
    version: str = Field(default="0.1.0", description="Backend version")

    @field_validator("data_dir", "db_path", "pdf_dir", "log_file", mode="before")
    @classmethod
    def expand_path(cls, v):
        """Expand user home directory in paths."""
        if v is None:
            return v
        path_str = str(v)
        # Expand ~ to home directory
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

    def ensure_directories(self):
        """Create necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.pdf_dir.mkdir(parents=True, exist_ok=True)

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self, env_var_name: str) -> Optional[str]:
        """
        Get API key from environment variable.

        Args:
            env_var_name: Name of the environment variable (e.g., "ZOTERO_API_KEY")

        Returns:
            API key if available, None otherwise

        Examples:
            >>> settings.get_api_key("ZOTERO_API_KEY")
            "P9NiFoyLeZu2bZNvvuQPDWsd"
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
