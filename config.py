from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Tuple

from pydantic import Field, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent

DEV_SESSION_SECRET = "dev-session-secret-change-me"


@dataclass(frozen=True)
class Major:
    name: str
    nim_code: str
    subject_prefix: str


# Majors known to the identifier generator. NIM codes and subject prefixes
# are part of issued identifiers, so entries must never be renumbered.
MAJORS: Tuple[Major, ...] = (
    Major(name="Sistem Informasi", nim_code="10", subject_prefix="SI"),
    Major(name="Teknologi Informasi", nim_code="11", subject_prefix="TI"),
)


class Settings(BaseSettings):
    """Typed configuration sourced from environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    app_name: str = Field(default="Academic Records API")
    environment: Literal["dev", "test", "staging", "prod"] = Field(default="dev")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    port: int = Field(default=8000, ge=1, le=65535)

    database_url: str = Field(default="mongodb://localhost:27017")
    database_name: str = Field(default="academic_records", min_length=1)

    # MAJOR_OPTIONS is a comma-separated list, not JSON
    major_options: Annotated[Tuple[str, ...], NoDecode] = Field(
        default=("Sistem Informasi", "Teknologi Informasi"),
    )

    seed_on_startup: bool = Field(default=True)
    seed_strategy: Literal["file", "synthetic"] = Field(default="file")
    seed_data_dir: Path = Field(default=BASE_DIR / "data")
    synthetic_student_count: int = Field(default=100, ge=1, le=100_000)
    synthetic_subject_count: int = Field(default=100, ge=1, le=100_000)

    session_secret: str = Field(default=DEV_SESSION_SECRET, min_length=16)
    admin_username: str = Field(default="admin", min_length=1)
    admin_password: str = Field(default="admin", min_length=1)
    user_username: str = Field(default="user", min_length=1)
    user_password: str = Field(default="user", min_length=1)

    @field_validator("major_options", mode="before")
    @classmethod
    def _split_major_options(cls, value: object) -> object:
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("seed_strategy", mode="before")
    @classmethod
    def _lower_seed_strategy(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @computed_field(return_type=bool)
    def is_production(self) -> bool:
        return self.environment == "prod"

    @model_validator(mode="after")
    def _require_real_secret_in_prod(self) -> "Settings":
        if self.is_production and self.session_secret == DEV_SESSION_SECRET:
            raise ValueError("SESSION_SECRET must be set when ENVIRONMENT=prod")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
