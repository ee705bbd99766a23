from __future__ import annotations

from typing import cast

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="", case_sensitive=False)

    SUPABASE_URL: AnyHttpUrl = Field(default=cast(AnyHttpUrl, "http://localhost:54321"))
    SUPABASE_KEY: str = Field(default="")
    # Server-side queries bypass row level security when this is set
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    REDIS_URL: str = Field(default="redis://localhost:6379/0")

    USER_AGENT: str = Field(default="Campus-Backoffice/1.0")
    HTTP_TIMEOUT: float = Field(default=10.0, gt=0.0)
    RETRY_MAX: int = Field(default=3, ge=1)

    LOG_LEVEL: str = Field(default="INFO")

    # Statistics
    TREND_WINDOW_WEEKS: int = Field(default=12, ge=1)

    # Moderation
    ITEMS_PER_PAGE: int = Field(default=12, ge=1, le=200)
    PHOTO_BUCKET: str = Field(default="item-photos")
    ADMIN_ROLE: int = Field(default=1)

    # Optional CORS whitelist (comma-separated)
    CORS_ORIGINS: str | None = None

    def cors_origins(self) -> list[str]:
        if not self.CORS_ORIGINS:
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def server_key(self) -> str:
        return self.SUPABASE_SERVICE_ROLE_KEY or self.SUPABASE_KEY


settings = Settings()
