"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
import re
from datetime import time
from pathlib import Path
from typing import List, Optional

import pendulum
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .domain.models import ScheduleConfig
from .domain.time_normalizer import DEFAULT_TIMEZONE

_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-4]):([0-5]\d)$")


def _parse_clock(value: str) -> time:
    """Parse ``HH:MM``; ``24:00`` is midnight at the end of the day."""
    hour, minute = (int(part) for part in value.split(":"))
    if hour == 24:
        return time(0, 0)
    return time(hour=hour, minute=minute)


class ScheduleSettings(BaseModel):
    """
    A provider's availability settings as stored by the settings UI.

    Accepts snake_case or the camelCase keys used on the wire
    (``workingDays``, ``sessionDuration``, ...).
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    working_days: List[int] = Field(default_factory=list)  # 0=Sunday .. 6=Saturday
    start_time: str = "09:00"
    end_time: str = "17:00"
    session_duration: int = Field(default=60, ge=15, le=480)
    break_between_sessions: int = Field(default=15, ge=0, le=120)
    is_available: bool = True

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, value: List[int]) -> List[int]:
        """Weekdays run 0=Sunday .. 6=Saturday; repeats are dropped, order kept."""
        out_of_range = sorted({day for day in value if not 0 <= day <= 6})
        if out_of_range:
            raise ValueError(f"working_days must be between 0 and 6, got {out_of_range}")
        return list(dict.fromkeys(value))

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        """Validate HH:MM format."""
        match = _CLOCK_PATTERN.match(value.strip())
        if not match or (match.group(1) == "24" and match.group(2) != "00"):
            raise ValueError(f"Time must be in HH:MM format, got {value!r}")
        return value.strip()

    @model_validator(mode="after")
    def validate_start_before_midnight(self) -> "ScheduleSettings":
        if self.start_time == "24:00":
            raise ValueError("start_time cannot be 24:00")
        return self

    def get_start_time(self) -> time:
        """Opening time; ``24:00`` is not allowed here."""
        return _parse_clock(self.start_time)

    def get_end_time(self) -> time:
        """Closing time; ``24:00`` becomes 00:00, the end of the day."""
        return _parse_clock(self.end_time)

    def to_schedule(self) -> ScheduleConfig:
        """Build the immutable domain schedule."""
        return ScheduleConfig(
            working_days=frozenset(self.working_days),
            start_time=self.get_start_time(),
            end_time=self.get_end_time(),
            session_duration=self.session_duration,
            break_between_sessions=self.break_between_sessions,
            is_available=self.is_available,
        )


class ProviderConfig(BaseModel):
    """A bookable provider and its schedule."""
    id: str
    name: str = ""
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)

    def display_name(self) -> str:
        """Get display name."""
        return self.name or self.id


class BookingLimits(BaseModel):
    """Bounds applied to incoming booking requests."""
    min_duration_minutes: int = 15
    max_duration_minutes: int = 240

    @field_validator("min_duration_minutes", "max_duration_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("duration limits must be greater than zero")
        return value

    @model_validator(mode="after")
    def validate_order(self) -> "BookingLimits":
        """Ensure the minimum does not exceed the maximum."""
        if self.min_duration_minutes > self.max_duration_minutes:
            raise ValueError("min_duration_minutes must not exceed max_duration_minutes")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = DEFAULT_TIMEZONE
    hold_ttl_minutes: int = 15
    availability_days: int = 14
    booking: BookingLimits = Field(default_factory=BookingLimits)
    log_level: str = "WARNING"
    reservations_file: Optional[Path] = None
    providers: List[ProviderConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the operating timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @field_validator("hold_ttl_minutes", "availability_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @field_validator("providers")
    @classmethod
    def validate_providers(cls, value: List[ProviderConfig]) -> List[ProviderConfig]:
        """Ensure provider ids are unique."""
        seen_ids: set[str] = set()
        for provider in value:
            if provider.id in seen_ids:
                raise ValueError(f"Duplicate provider id detected: {provider.id}")
            seen_ids.add(provider.id)
        return value

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
                f"Copy config.example.yaml to config.yaml and list your providers there."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)

        # Seed files are resolved next to the config file
        if config.reservations_file and not config.reservations_file.is_absolute():
            config.reservations_file = config_path.parent / config.reservations_file

        return config

    def find_provider(self, provider_id: str) -> Optional[ProviderConfig]:
        """Find a provider by id."""
        for provider in self.providers:
            if provider.id == provider_id:
                return provider
        return None


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
