from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from enum import Enum


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    # Environment Configuration
    ENVIRONMENT: Environment = Environment.DEVELOPMENT

    # Project Information
    PROJECT_NAME: str = "SliderApp Reminder Service"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"

    # Server settings
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # Database (SQLite for local runs, PostgreSQL in deployment)
    DATABASE_URL: str = "sqlite:///./reminders.db"
    SQL_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # Timezone configuration (used for user-facing timestamps only; storage is UTC)
    DEFAULT_TIMEZONE: str = "UTC"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Optional[str]) -> str:
        if v is None or str(v).strip() == "":
            return "INFO"
        return str(v).strip().upper()

    @model_validator(mode="after")
    def _finalize_and_validate(self) -> "Settings":
        # Heroku-style URLs are not accepted by SQLAlchemy 2.x
        if self.DATABASE_URL.startswith("postgres://"):
            self.DATABASE_URL = "postgresql://" + self.DATABASE_URL[len("postgres://"):]
        if not self.LOG_FILE:
            self.LOG_FILE = None
        return self

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra='ignore')


settings = Settings()
