import logging
import os
from typing import List

from fastapi import Request
from pydantic import BaseModel


class Settings(BaseModel):
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "shop_admin"
    secret_key: str = "dev-secret-key"
    session_cookie: str = "sid"
    session_max_age_minutes: int = 60 * 24 * 7
    tenant_timeout_ms: int = 5000
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        origins = os.getenv("CORS_ORIGINS")
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            database_name=os.getenv("DATABASE_NAME", defaults.database_name),
            secret_key=os.getenv("SECRET_KEY", defaults.secret_key),
            session_cookie=os.getenv("SESSION_COOKIE", defaults.session_cookie),
            session_max_age_minutes=int(os.getenv("SESSION_MAX_AGE_MINUTES", defaults.session_max_age_minutes)),
            tenant_timeout_ms=int(os.getenv("TENANT_TIMEOUT_MS", defaults.tenant_timeout_ms)),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()] if origins else defaults.cors_origins,
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
            port=int(os.getenv("PORT", defaults.port)),
        )


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
