"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    SESSION_SECRET: str
    SESSION_ALGORITHM: str
    SESSION_TTL_DAYS: int
    SESSION_COOKIE_NAME: str
    COOKIE_SECURE: bool
    DATABASE_URL: str
    ALLOW_INSECURE_SECRET: bool
    ALLOW_DEV_CORS: bool
    LOG_LEVEL: str
    DEFAULT_EMAIL_DOMAIN: str
    LOGIN_RATE_LIMIT_PER_MIN: int
    LOGIN_RATE_LIMIT_WINDOW_SECONDS: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.SESSION_SECRET = os.getenv("SESSION_SECRET", "change_me_for_prod")
        self.SESSION_ALGORITHM = os.getenv("SESSION_ALGORITHM", "HS256")
        self.SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "7"))
        self.SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "peerfetch_session")
        # Secure cookies are not sent over plain http, so dev keeps them off.
        default_secure = "false" if self.ENV == "dev" else "true"
        self.COOKIE_SECURE = os.getenv("COOKIE_SECURE", default_secure).lower() == "true"
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'peerfetch.db'}")
        self.ALLOW_INSECURE_SECRET = os.getenv("ALLOW_INSECURE_SECRET", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.DEFAULT_EMAIL_DOMAIN = os.getenv("DEFAULT_EMAIL_DOMAIN", "college.edu")
        self.LOGIN_RATE_LIMIT_PER_MIN = int(os.getenv("LOGIN_RATE_LIMIT_PER_MIN", "10"))
        self.LOGIN_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_LIMIT_WINDOW_SECONDS", "60"))
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_SECRET and self.SESSION_SECRET == "change_me_for_prod":
            raise RuntimeError("SESSION_SECRET must be set to a non-default value in non-dev environments")
        if self.SESSION_TTL_DAYS < 1:
            raise RuntimeError("SESSION_TTL_DAYS must be at least 1")


settings = Settings()
