"""Application settings and validation."""

import os
from pathlib import Path

_DEFAULT_DB = Path(__file__).resolve().parent.parent / "quizcraft.db"


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_REFRESH_SECRET: str
    JWT_ALGORITHM: str
    JWT_ACCESS_EXPIRE_MINUTES: int
    JWT_REFRESH_EXPIRE_DAYS: int
    BASE_URL: str
    MAX_UPLOAD_BYTES: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    LOGIN_RATE_LIMIT_PER_MIN: int
    SUBMIT_RATE_LIMIT_PER_MIN: int
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_DEFAULT_DB}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "change_me_refresh_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_ACCESS_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_EXPIRE_MINUTES", "15"))
        self.JWT_REFRESH_EXPIRE_DAYS = int(os.getenv("JWT_REFRESH_EXPIRE_DAYS", "7"))
        self.BASE_URL = os.getenv("BASE_URL", "http://localhost:3000").rstrip("/")
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))  # 5 MB default
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.LOGIN_RATE_LIMIT_PER_MIN = int(os.getenv("LOGIN_RATE_LIMIT_PER_MIN", "20"))
        self.SUBMIT_RATE_LIMIT_PER_MIN = int(os.getenv("SUBMIT_RATE_LIMIT_PER_MIN", "60"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT:
            if self.JWT_SECRET == "change_me_for_prod" or self.JWT_REFRESH_SECRET == "change_me_refresh_for_prod":
                raise RuntimeError("JWT_SECRET and JWT_REFRESH_SECRET must be set to non-default values in non-dev environments")
        if self.JWT_ACCESS_EXPIRE_MINUTES <= 0 or self.JWT_REFRESH_EXPIRE_DAYS <= 0:
            raise RuntimeError("token lifetimes must be positive")


settings = Settings()
