"""Application configuration."""
from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from urllib.parse import urlparse

# Project root (2 levels up from this file: visualizer/core/config.py)
PROJECT_ROOT = Path(__file__).parent.parent.parent
ENV_FILE = PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Visualizer settings."""

    # Query service
    VISUALIZER_API_BASE_URL: str = "http://localhost:3001"
    VISUALIZER_SCHEMA_PATH: str = "/api/visualizer/schema"
    VISUALIZER_QUERY_PATH: str = "/api/visualizer/query"
    VISUALIZER_REQUEST_TIMEOUT: float = 30.0
    VISUALIZER_MAX_RETRIES: int = 1  # One retry after the first failure
    VISUALIZER_VERIFY_SSL: bool = True

    # Query execution
    QUERY_DEBOUNCE_MS: int = 600
    QUERY_CACHE_FRESH_SECONDS: float = 30.0
    QUERY_CACHE_RETAIN_SECONDS: float = 300.0
    QUERY_DEFAULT_LIMIT: int = 500
    QUERY_INCLUDE_JOIN_HINT: bool = True

    # Builder policy
    FILTER_MAX_DEPTH: int = 4  # Interactive nesting levels, root included

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None  # Relative paths resolve against PROJECT_ROOT

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else ".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator('VISUALIZER_API_BASE_URL')
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate query service URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('VISUALIZER_API_BASE_URL must start with http:// or https://')
        try:
            urlparse(v)
        except Exception as e:
            raise ValueError(f'Invalid VISUALIZER_API_BASE_URL format: {e}')
        return v.rstrip('/')

    @field_validator('VISUALIZER_SCHEMA_PATH', 'VISUALIZER_QUERY_PATH')
    @classmethod
    def validate_endpoint_path(cls, v: str) -> str:
        """Endpoint paths are absolute."""
        if not v.startswith('/'):
            raise ValueError('Endpoint paths must start with /')
        return v

    @field_validator('QUERY_DEBOUNCE_MS', 'VISUALIZER_MAX_RETRIES')
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError('Value must not be negative')
        return v

    @field_validator('QUERY_CACHE_FRESH_SECONDS', 'QUERY_CACHE_RETAIN_SECONDS', 'VISUALIZER_REQUEST_TIMEOUT')
    @classmethod
    def validate_positive_duration(cls, v: float) -> float:
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError('Durations must be positive')
        return v

    @field_validator('QUERY_DEFAULT_LIMIT', 'FILTER_MAX_DEPTH')
    @classmethod
    def validate_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError('Value must be at least 1')
        return v

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        level = v.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'Unknown LOG_LEVEL: {v}')
        return level

    @property
    def debounce_seconds(self) -> float:
        """Debounce window in seconds."""
        return self.QUERY_DEBOUNCE_MS / 1000.0


settings = Settings()
