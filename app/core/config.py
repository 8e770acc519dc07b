from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- JWT ---
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    TOKEN_ISSUER: str = "unisphere"

    # --- DB ---
    # Full URL wins; otherwise built from the same env vars alembic/env.py reads.
    DATABASE_URL: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    host: Optional[str] = None
    port: Optional[str] = None
    dbname: Optional[str] = None

    # --- Files ---
    UPLOAD_DIR: str = "uploads"
    FILE_BASE_URL: str = ""
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024
    FILE_SWEEP_GRACE_MINUTES: int = 60
    FILE_SWEEP_INTERVAL_SECONDS: int = 600

    # --- Requests ---
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # --- Accounts / email ---
    INSTITUTION_EMAIL_SUFFIX: str = ".edu.tr"
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24
    PASSWORD_RESET_EXPIRE_MINUTES: int = 30
    FRONTEND_BASE_URL: str = "http://localhost:3000"
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "onboarding@resend.dev"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    @field_validator("ACCESS_TOKEN_EXPIRE_MINUTES")
    @classmethod
    def clamp_access_ttl(cls, v: int) -> int:
        return min(max(v, 15), 24 * 60)

    @field_validator("REFRESH_TOKEN_EXPIRE_DAYS")
    @classmethod
    def clamp_refresh_ttl(cls, v: int) -> int:
        return min(max(v, 7), 30)

    @property
    def sqlalchemy_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL

        missing = [
            k
            for k, v in {
                "user": self.user,
                "password": self.password,
                "host": self.host,
                "port": self.port,
                "dbname": self.dbname,
            }.items()
            if not v
        ]
        if missing:
            raise RuntimeError(f"Missing DB env vars in .env: {missing}")

        return (
            f"postgresql+psycopg2://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.dbname}?sslmode=require"
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
