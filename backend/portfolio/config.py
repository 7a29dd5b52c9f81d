"""Portfolio configuration — Pydantic BaseSettings loaded from .env."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    app_name: str = "Portfolio"
    debug: bool = True
    environment: str = "development"
    log_level: str = "INFO"

    # Network
    host: str = "127.0.0.1"
    port: int = 9000
    api_prefix: str = "/api"
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:9000",
    ]

    # Auth: a single admin account guards every mutating route
    secret_key: str = "change-me-in-prod"
    token_algorithm: str = "HS256"
    token_expire_minutes: int = 720  # 12 hours
    admin_username: str = "admin"
    admin_password: str = ""

    # Storage paths (relative resolved from backend/ at runtime)
    data_dir: str = "./data"
    blob_dir: str = "./data/blobs"
    static_dir: str = "./data/static"
    template_dir: str = "./data/templates"
    database_path: str = "./data/portfolio.db"

    # Placement threshold must not change once content exists
    inline_threshold_bytes: int = 15 << 20  # 15 MiB
    sniff_window_bytes: int = 2048
    stream_chunk_bytes: int = 64 * 1024

    uvicorn_workers: int = 1
    max_db_connections: int = 5

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        env_prefix="PORTFOLIO_",
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: list[str] | str) -> list[str]:
        if isinstance(value, str) and not value.startswith("["):
            return [o.strip() for o in value.split(",") if o.strip()]
        if isinstance(value, list):
            return value
        return ["http://localhost:5173"]

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Ensure data directories are absolute."""
        base = Path(__file__).resolve().parent.parent  # backend/
        for field in ("data_dir", "blob_dir", "static_dir", "template_dir", "database_path"):
            val = getattr(self, field)
            if not Path(val).is_absolute():
                setattr(self, field, str(base / val))
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
