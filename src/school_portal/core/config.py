"""Application configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="school-portal", description="Application name")
    environment: Literal["development", "testing", "staging", "production"] = Field(
        default="development", description="Runtime environment"
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # API
    api_v1_prefix: str = Field(default="/api/v1", description="API v1 prefix")
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins",
    )

    # Database
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, description="PostgreSQL port")
    db_user: str = Field(default="postgres", description="PostgreSQL user")
    db_password: str = Field(default="postgres", description="PostgreSQL password")
    db_name: str = Field(default="school_portal", description="PostgreSQL database name")

    # Workflow storage
    workflow_store_backend: Literal["memory", "database"] = Field(
        default="memory", description="Where workflow records and directory data live"
    )
    directory_seed_file: str | None = Field(
        default=None,
        description="JSON file with students, parents and exams for the in-memory directory",
    )
    calendar_id: str = Field(
        default="school_calendar", description="Record id of the school calendar"
    )
    enforce_version_check: bool = Field(
        default=True,
        description="Reject transitions whose expected_version is behind the stored record",
    )

    # Grading maximums; totals are capped at 100
    ca1_max: int = Field(default=20, ge=0, description="First continuous assessment maximum")
    ca2_max: int = Field(default=20, ge=0, description="Second continuous assessment maximum")
    assignment_max: int = Field(default=10, ge=0, description="Assignment maximum")
    exam_max: int = Field(default=50, ge=0, description="Examination maximum")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="json", description="Log output format"
    )

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @computed_field
    @property
    def database_url_sync(self) -> str:
        """Construct synchronous database URL for migrations."""
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @computed_field
    @property
    def assessment_maximums(self) -> dict[str, int]:
        """Per-component score ceilings keyed by component name."""
        return {
            "ca1": self.ca1_max,
            "ca2": self.ca2_max,
            "assignment": self.assignment_max,
            "exam": self.exam_max,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
