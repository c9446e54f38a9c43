"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import List, Literal, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .adapters.db import DEFAULT_URL
from .domain.deadline import DeadlinePolicy, FixedDeadlinePolicy, StandardDeadlinePolicy
from .domain.models import ClosedRange
from .domain.slot_factory import FixedSlotFactory
from .domain.working_hours import (
    SplitWorkingHoursPolicy,
    WeekdayWorkingHoursPolicy,
    WorkingHoursPolicy,
)


def _parse_clock(value: str) -> time:
    try:
        hour, minute = (int(part) for part in value.split(":"))
        return time(hour=hour, minute=minute)
    except ValueError as exc:
        raise ValueError(f"Expected time as HH:MM, got {value!r}") from exc


class HoursWindow(BaseModel):
    """A daily window such as ``10:00``-``17:00``."""
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_clock(cls, v: str) -> str:
        """Validate the value reads as HH:MM."""
        _parse_clock(v)
        return v

    @model_validator(mode="after")
    def validate_order(self) -> "HoursWindow":
        """Ensure the window opens before it closes."""
        if _parse_clock(self.end) <= _parse_clock(self.start):
            raise ValueError(f"end ({self.end}) must be later than start ({self.start})")
        return self

    def to_range(self) -> ClosedRange[time]:
        return ClosedRange(start=_parse_clock(self.start), end=_parse_clock(self.end))


class SlotsConfig(BaseModel):
    """Size and duration of bookable slots."""
    duration_minutes: int = 20
    capacity: int = 3
    max_days_ahead: int = 30  # look-ahead for services without deadline

    @field_validator("duration_minutes", "capacity", "max_days_ahead")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure the value is positive."""
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value


class WorkingHoursConfig(BaseModel):
    """Office hours: ``split`` (short Fridays, lunch) or ``uniform`` (Mon-Fri all day)."""
    policy: Literal["split", "uniform"] = "split"
    weekday: HoursWindow = Field(default_factory=lambda: HoursWindow(start="10:00", end="17:00"))
    friday: HoursWindow = Field(default_factory=lambda: HoursWindow(start="12:00", end="16:00"))
    lunch: HoursWindow = Field(default_factory=lambda: HoursWindow(start="12:30", end="13:30"))


class AppConfig(BaseModel):
    """Application configuration."""
    database_url: str = DEFAULT_URL
    timezone: str = "Europe/Moscow"
    slots: SlotsConfig = Field(default_factory=SlotsConfig)
    working_hours: WorkingHoursConfig = Field(default_factory=WorkingHoursConfig)
    deadline_days: Optional[int] = None  # None selects the standard citizenship table
    admins: List[int] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("deadline_days")
    @classmethod
    def validate_deadline_days(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("deadline_days must not be negative")
        return value

    @field_validator("admins")
    @classmethod
    def validate_admins(cls, value: List[int]) -> List[int]:
        """Remove duplicate admin ids, preserving order."""
        seen: set[int] = set()
        deduped: List[int] = []
        for admin_id in value:
            if admin_id not in seen:
                deduped.append(admin_id)
                seen.add(admin_id)
        return deduped

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def build_working_hours_policy(self) -> WorkingHoursPolicy:
        hours = self.working_hours
        if hours.policy == "uniform":
            return WeekdayWorkingHoursPolicy(timezone=self.timezone)
        return SplitWorkingHoursPolicy(
            weekday_hours=hours.weekday.to_range(),
            friday_hours=hours.friday.to_range(),
            lunch=hours.lunch.to_range(),
            timezone=self.timezone,
        )

    def build_slot_factory(self) -> FixedSlotFactory:
        return FixedSlotFactory(
            max_size=self.slots.capacity,
            duration_minutes=self.slots.duration_minutes,
            timezone=self.timezone,
        )

    def build_deadline_policy(self) -> DeadlinePolicy:
        if self.deadline_days is None:
            return StandardDeadlinePolicy()
        return FixedDeadlinePolicy(self.deadline_days)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
