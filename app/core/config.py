"""
Configuration loaded from the environment (and an optional .env file).
"""

import os
import warnings
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator, model_validator

from app.models.appointment import AppointmentStatus


# Load .env from project root
env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


DEFAULT_OVERLAP_IGNORED = frozenset(
    {
        AppointmentStatus.CANCELLED_BY_CLIENT.value,
        AppointmentStatus.CANCELLED_BY_ADMIN.value,
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.NO_SHOW.value,
    }
)

# completed visits still hide their slot in the availability grid
DEFAULT_SLOT_IGNORED = frozenset(
    {
        AppointmentStatus.CANCELLED_BY_CLIENT.value,
        AppointmentStatus.CANCELLED_BY_ADMIN.value,
        AppointmentStatus.NO_SHOW.value,
    }
)

INSECURE_DEV_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105


class Settings(BaseModel):
    """Application settings."""

    database_url: str = "sqlite:///./booking.db"
    secret_key: str = INSECURE_DEV_KEY
    jwt_algorithm: str = "HS256"

    timezone: str = "Europe/Kyiv"
    work_start_hour: int = 9
    work_end_hour: int = 18
    slot_step_minutes: int = 30

    overlap_ignored_statuses: FrozenSet[str] = DEFAULT_OVERLAP_IGNORED
    slot_ignored_statuses: FrozenSet[str] = DEFAULT_SLOT_IGNORED

    allow_unassigned_appointments: bool = True
    log_level: str = "INFO"

    @field_validator("work_start_hour", "work_end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 24."""
        if not 0 <= v <= 24:
            raise ValueError(f"Hour must be between 0 and 24, got {v}")
        return v

    @field_validator("slot_step_minutes")
    @classmethod
    def validate_step(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Slot step must be positive, got {v}")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @field_validator("overlap_ignored_statuses", "slot_ignored_statuses")
    @classmethod
    def validate_statuses(cls, v: FrozenSet[str]) -> FrozenSet[str]:
        known = {s.value for s in AppointmentStatus}
        unknown = set(v) - known
        if unknown:
            raise ValueError(f"Unknown appointment statuses: {sorted(unknown)}")
        return frozenset(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def check_working_day(self) -> "Settings":
        if self.work_end_hour <= self.work_start_hour:
            raise ValueError("work_end_hour must be greater than work_start_hour")
        return self

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def occupying_statuses(self) -> FrozenSet[str]:
        """Statuses that take part in the no-overlap check."""
        return frozenset(s.value for s in AppointmentStatus) - self.overlap_ignored_statuses

    @classmethod
    def from_env(cls) -> "Settings":
        values = {
            "database_url": os.getenv("DATABASE_URL"),
            "secret_key": os.getenv("SECRET_KEY"),
            "jwt_algorithm": os.getenv("JWT_ALGORITHM"),
            "timezone": os.getenv("BUSINESS_TIMEZONE"),
            "work_start_hour": os.getenv("WORK_START_HOUR"),
            "work_end_hour": os.getenv("WORK_END_HOUR"),
            "slot_step_minutes": os.getenv("SLOT_STEP_MINUTES"),
            "overlap_ignored_statuses": _split_list(os.getenv("OVERLAP_IGNORED_STATUSES")),
            "slot_ignored_statuses": _split_list(os.getenv("SLOT_IGNORED_STATUSES")),
            "allow_unassigned_appointments": os.getenv("ALLOW_UNASSIGNED_APPOINTMENTS"),
            "log_level": os.getenv("LOG_LEVEL"),
        }
        settings = cls(**{k: v for k, v in values.items() if v is not None})

        if settings.secret_key == INSECURE_DEV_KEY:
            warnings.warn(
                "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION",
                RuntimeWarning,
                stacklevel=2,
            )
        return settings


def _split_list(raw):
    if raw is None:
        return None
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
