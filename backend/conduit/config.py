"""Configuration for the Conduit backend.

Everything is read from environment variables through pydantic-settings, so
a malformed value fails at startup instead of in the middle of a request.
"""

from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration loaded from environment variables."""

    database_url: str = Field(default="sqlite:///./conduit.db", alias="DATABASE_URL")
    secret_key: SecretStr = Field(
        default=SecretStr("change-me-in-production"), alias="SECRET_KEY"
    )
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=30, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    reset_token_expire_minutes: int = Field(default=60, alias="RESET_TOKEN_EXPIRE_MINUTES")
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")
    public_url: str = Field(default="http://localhost:3000", alias="PUBLIC_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, alias="LOG_FILE")

    # search snippet markup
    highlight_open: str = Field(default='<span class="bg-yellow-300">', alias="HIGHLIGHT_OPEN")
    highlight_close: str = Field(default="</span>", alias="HIGHLIGHT_CLOSE")
    highlight_ellipsis: str = Field(
        default='<span class="bg-yellow-300">  ...  </span>', alias="HIGHLIGHT_ELLIPSIS"
    )

    model_config = SettingsConfigDict(
        populate_by_name=True,
        extra="ignore",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process. Tests override this dependency."""
    return Settings()
