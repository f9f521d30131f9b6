# /rollcall/core/config.py

"""
Runtime configuration, read once from the environment.

A `.env` file next to the working directory is loaded first so local
development does not need exported variables.
"""

import os
import logging
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_SECRET_KEY = "rollcall-development-secret-key-change-me"


class Settings:
    def __init__(self):
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite:///./rollcall.db")
        self.secret_key: str = os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY)
        self.algorithm: str = "HS256"
        self.access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
        self.lock_timeout_seconds: float = float(os.getenv("LOCK_TIMEOUT_SECONDS", "5"))
        self.bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "12"))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.cors_origins: List[str] = [
            origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
        ]

        if self.secret_key == DEFAULT_SECRET_KEY:
            logger.warning("SECRET_KEY is not set; using the development placeholder.")


@lru_cache()
def get_settings() -> Settings:
    """Returns the process-wide settings instance."""
    return Settings()
