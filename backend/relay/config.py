"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parents[1]


class RelayConfigError(RuntimeError):
    """Raised when a required setting is missing for the requested component."""


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Jira Discord Relay"
    database_url: str = f"sqlite+pysqlite:///{_BACKEND_DIR / 'data' / 'mappings.db'}"
    log_level: str = "INFO"

    discord_bot_token: str | None = None
    discord_channel_id: str | None = None
    enable_discord_bot: bool = True

    jira_host: str | None = None
    jira_email: str | None = None
    jira_api_token: str | None = None
    jira_timeout_seconds: int = 30

    admin_api_token: str | None = None

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def require(self, *names: str) -> None:
        """Raise RelayConfigError listing every unset setting among ``names``."""

        missing = [name.upper() for name in names if not getattr(self, name)]
        if missing:
            raise RelayConfigError(f"Missing required environment variable(s): {', '.join(missing)}")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
