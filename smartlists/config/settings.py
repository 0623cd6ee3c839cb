"""Configuration management using Pydantic Settings.

Settings are loaded from environment variables and an optional ``.env`` file
and grouped into nested models:
- DatabaseConfig: Database connection settings
- LoggingConfig: Console and file logging levels
- CredentialsConfig: Spotify OAuth credentials
- APIConfig: Chunk sizes, delays, timeouts and retries for external calls
- SyncConfig: Smart playlist sync policy
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite+aiosqlite:///data/db/smartlists.db"
    echo: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration for console and file output."""

    console_level: str = "INFO"
    file_level: str = "DEBUG"
    log_file: Path = Path("data/logs/smartlists.log")
    real_time_debug: bool = True


class CredentialsConfig(BaseModel):
    """Spotify OAuth credentials."""

    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_redirect_uri: str = "http://localhost:8888/callback"
    spotify_cache_path: Path = Path(".spotify_cache")


class APIConfig(BaseModel):
    """External API limits and rate control."""

    # Spotify accepts at most 100 items per playlist add/remove call
    spotify_write_chunk_size: int = 100
    spotify_read_page_size: int = 100
    spotify_liked_page_size: int = 50
    spotify_chunk_delay: float = 0.1
    spotify_request_timeout: float = 30.0
    spotify_retry_count: int = 3
    spotify_retry_max_delay: float = 30.0

    # Audio feature enrichment
    audio_features_batch_size: int = 40
    audio_features_delay: float = 0.1


class SyncConfig(BaseModel):
    """Smart playlist sync policy."""

    playlist_name_prefix: str = "[Smartlists]"
    default_description: str = "Smart playlist synced from Smartlists"
    max_playlist_tracks: int = 10_000
    conflict_policy: Literal["join", "reject"] = "join"
    scheduled_playlist_delay: float = 0.1
    mirror_chunk_size: int = 100


class Settings(BaseSettings):
    """Main application settings with environment variable support.

    Environment variables can be set using flat or nested naming:
    - Flat: DATABASE_URL, CONSOLE_LOG_LEVEL, SPOTIFY_CLIENT_ID
    - Nested: DATABASE__URL, LOGGING__CONSOLE_LEVEL, API__SPOTIFY_CHUNK_DELAY
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    credentials: CredentialsConfig = CredentialsConfig()
    api: APIConfig = APIConfig()
    sync: SyncConfig = SyncConfig()

    data_dir: Path = Path("data")

    @model_validator(mode="before")
    @classmethod
    def transform_flat_env_vars(cls, data: Any) -> Any:
        """Fold flat environment variables (DATABASE_URL) into nested groups."""
        if not isinstance(data, dict):
            return data

        mappings = {
            "database": {
                "database_url": "url",
                "database_echo": "echo",
            },
            "logging": {
                "console_log_level": "console_level",
                "file_log_level": "file_level",
                "log_file": "log_file",
                "log_real_time_debug": "real_time_debug",
            },
            "credentials": {
                "spotify_client_id": "spotify_client_id",
                "spotify_client_secret": "spotify_client_secret",
                "spotify_redirect_uri": "spotify_redirect_uri",
            },
        }

        for group, mapping in mappings.items():
            for env_key, field_key in mapping.items():
                if env_key in data:
                    data.setdefault(group, {})
                    if isinstance(data[group], dict):
                        data[group][field_key] = data.pop(env_key)

        return data


# Singleton instance for application use
settings = Settings()
