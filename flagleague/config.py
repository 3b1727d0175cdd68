"""
Configuration for the flag league engine.
Environment-driven; defaults suit local development and tests.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    service_name: str = Field(default="flagleague", alias="SERVICE_NAME")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str | None = Field(default=None, alias="LOG_LEVEL")
    db_path: str | None = Field(default=None, alias="FLAGLEAGUE_DB_PATH")

    # Standings rules. Some leagues award a point per draw; default is none.
    win_league_points: int = Field(default=3, ge=0, alias="WIN_LEAGUE_POINTS")
    draw_league_points: int = Field(default=0, ge=0, alias="DRAW_LEAGUE_POINTS")
    loss_league_points: int = Field(default=0, ge=0, alias="LOSS_LEAGUE_POINTS")

    @property
    def allowed_cors_origins(self) -> list[str]:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
