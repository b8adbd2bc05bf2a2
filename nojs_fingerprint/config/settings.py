import os
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # "memory" or "postgres"
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "memory")
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")

    # Volatile store only; persistent visits never expire
    VISIT_LIFETIME_SECONDS: int = 24 * 60 * 60
    MAX_LIVE_VISITS: int = 100_000

    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8080
    LOG_LEVEL: str = "INFO"


settings = Settings()
