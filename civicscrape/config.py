"""Configuration management using Pydantic Settings."""

from enum import Enum

from pydantic_settings import BaseSettings


class StorageBackend(str, Enum):
    """Repository backend type."""
    SQLITE = "sqlite"
    REDIS = "redis"
    MEMORY = "memory"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


class ScrapeConfig(BaseSettings):
    """Configuration for civicscrape."""

    # Graph API settings
    graph_api_url: str = "https://graph.facebook.com"
    graph_api_version: str = "v19.0"
    access_token: str | None = None
    request_timeout_seconds: float = 30.0
    page_limit: int = 100

    # Retry settings
    retry_enabled: bool = True
    max_retries: int = 3
    retry_backoff_base: float = 2.0
    retry_backoff_multiplier: float = 1.0

    # Storage settings
    storage_backend: StorageBackend = StorageBackend.SQLITE
    sqlite_path: str = ".civicscrape.db"
    redis_url: str = "redis://localhost:6379/0"
    commit_interval: int = 500

    # Orchestration
    comment_concurrency: int = 1

    # Import settings
    historical_import_dir: str = "data"
    historical_file_marker: str = "DedooseChartExcerpts"
    import_chunk_size: int = 1000

    # Logging
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.CONSOLE

    model_config = {
        "env_prefix": "CIVICSCRAPE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }
