from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


DEV_DATABASE_URL = "sqlite:///./thesiscollab.db"


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = Field(default="development", alias="ENVIRONMENT")
    DEBUG: bool = Field(default=True, alias="DEBUG")
    PROJECT_NAME: str = "Thesis Collaboration Core"

    # Database
    DATABASE_URL: str = Field(default=DEV_DATABASE_URL, alias="DATABASE_URL")
    SQL_ECHO: bool = False

    # Collaboration policy
    ALLOW_CROSS_CATEGORY_ROLE_CHANGE: bool = False
    FINALIZE_POLICY: Literal["advisor", "manager_or_advisor"] = "advisor"
    RESTRICT_EDITS_TO_OPEN_STATUSES: bool = True
    MAX_STUDENTS_PER_DOCUMENT: int = 5
    MAX_ADVISORS_PER_DOCUMENT: int = 3

    # Per-document serialization
    LOCK_TIMEOUT_SECONDS: float = 10.0

    class Config:
        env_file = (".env", "../.env")
        case_sensitive = True
        extra = "ignore"

    @model_validator(mode="after")
    def validate_policy(self):
        is_dev = (self.ENVIRONMENT or "development").lower() == "development"

        if self.MAX_STUDENTS_PER_DOCUMENT < 1:
            raise ValueError("MAX_STUDENTS_PER_DOCUMENT must allow at least the primary student")
        if self.MAX_ADVISORS_PER_DOCUMENT < 1:
            raise ValueError("MAX_ADVISORS_PER_DOCUMENT must allow at least the primary advisor")
        if self.LOCK_TIMEOUT_SECONDS <= 0:
            raise ValueError("LOCK_TIMEOUT_SECONDS must be positive")

        if not is_dev and self.DATABASE_URL == DEV_DATABASE_URL:
            raise ValueError("DATABASE_URL must be set outside development")

        if not is_dev and self.DEBUG:
            raise ValueError("DEBUG must be False outside development")

        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
