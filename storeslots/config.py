"""
Configuration management using Pydantic models loaded from YAML.
"""

import re
from datetime import time
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import END_OF_DAY, OperatingWindow, StaffMember, StoreProfile
from .domain.zone_resolver import ZoneResolver

ALLOWED_GRID_INTERVALS = (5, 10, 15, 20, 30, 60)

HOURS_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


class AvailabilityConfig(BaseModel):
    """Settings for slot computation."""
    grid_interval_minutes: int = 15
    allow_past_slots_for_today: bool = False
    default_timezone: Optional[str] = None

    @field_validator("grid_interval_minutes")
    @classmethod
    def validate_grid_interval(cls, value: int) -> int:
        """Only intervals that divide an hour evenly are supported."""
        if value not in ALLOWED_GRID_INTERVALS:
            raise ValueError(
                f"grid_interval_minutes must be one of {ALLOWED_GRID_INTERVALS}, got {value}"
            )
        return value

    @field_validator("default_timezone")
    @classmethod
    def validate_default_timezone(cls, value: Optional[str]) -> Optional[str]:
        """A fallback zone has to exist, otherwise it would hide the real problem."""
        if value is None:
            return value
        if not ZoneResolver().is_valid(value):
            raise ValueError(f"Unknown default_timezone: '{value}'")
        return value


class WindowConfig(BaseModel):
    """Opening hours for one weekday (0=Monday, 6=Sunday)."""
    weekday: int
    start: time
    end: time

    @field_validator("weekday")
    @classmethod
    def validate_weekday(cls, value: int) -> int:
        if value not in range(7):
            raise ValueError(f"weekday must be between 0 and 6, got {value}")
        return value

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_hours(cls, value: Any) -> time:
        """
        Accept ``"HH:MM"`` strings or naive ``time`` values. ``"24:00"`` closes
        at the next local midnight.

        YAML 1.1 reads an unquoted ``10:00`` as the base-60 integer 600, so
        numbers are rejected instead of being taken as seconds.
        """
        if isinstance(value, time):
            if value.tzinfo is not None:
                raise ValueError(f"hours must be local times without a UTC offset, got {value}")
            return value

        if not isinstance(value, str):
            raise ValueError(
                f"hours must be quoted 'HH:MM' strings, got {value!r}. "
                "Quote times in YAML, e.g. start: \"10:00\""
            )

        text = value.strip()
        if text == "24:00":
            return END_OF_DAY

        match = HOURS_PATTERN.match(text)
        if not match:
            raise ValueError(f"hours must look like 'HH:MM', got '{value}'")

        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError(f"'{value}' is not a valid time of day")
        return time(hour, minute)

    @model_validator(mode="after")
    def validate_order(self) -> "WindowConfig":
        """Ensure the window opens before it closes."""
        if self.end <= self.start:
            raise ValueError("end must be later than start")
        return self

    def to_window(self) -> OperatingWindow:
        return OperatingWindow(weekday=self.weekday, start=self.start, end=self.end)


class StoreConfig(BaseModel):
    """Store configuration."""
    id: int
    name: str = ""
    timezone: Optional[str] = None
    hours: List[WindowConfig] = Field(default_factory=list)

    def to_profile(self) -> StoreProfile:
        return StoreProfile(
            store_id=self.id,
            name=self.name,
            timezone=self.timezone,
            windows=[window.to_window() for window in self.hours],
        )


class StaffConfig(BaseModel):
    """Staff member configuration. Without ``hours`` the store hours apply."""
    id: int
    name: str
    store_id: int
    hours: List[WindowConfig] = Field(default_factory=list)

    def to_member(self) -> StaffMember:
        return StaffMember(
            staff_id=self.id,
            name=self.name,
            store_id=self.store_id,
            windows=[window.to_window() for window in self.hours],
        )


class AppConfig(BaseModel):
    """Application configuration."""
    backend_url: Optional[str] = None
    appointments_file: Optional[Path] = None
    availability: AvailabilityConfig = Field(default_factory=AvailabilityConfig)
    stores: List[StoreConfig] = Field(default_factory=list)
    staff: List[StaffConfig] = Field(default_factory=list)

    @field_validator("stores")
    @classmethod
    def validate_stores(cls, value: List[StoreConfig]) -> List[StoreConfig]:
        """Ensure store ids are unique."""
        seen: set[int] = set()
        for store in value:
            if store.id in seen:
                raise ValueError(f"Duplicate store id detected: {store.id}")
            seen.add(store.id)
        return value

    @field_validator("staff")
    @classmethod
    def validate_staff(cls, value: List[StaffConfig]) -> List[StaffConfig]:
        """Ensure staff ids are unique."""
        seen: set[int] = set()
        for member in value:
            if member.id in seen:
                raise ValueError(f"Duplicate staff id detected: {member.id}")
            seen.add(member.id)
        return value

    @model_validator(mode="after")
    def validate_staff_stores(self) -> "AppConfig":
        """Every staff member must belong to a configured store."""
        store_ids = {store.id for store in self.stores}
        orphans = sorted(m.id for m in self.staff if m.store_id not in store_ids)
        if orphans:
            raise ValueError(f"Staff member(s) {orphans} reference unknown stores")
        return self

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

        config = cls(**data)

        # Relative data files are resolved against the config file location
        if config.appointments_file and not config.appointments_file.is_absolute():
            config.appointments_file = config_path.parent / config.appointments_file

        return config

    def find_store(self, store_id: int) -> StoreConfig | None:
        for store in self.stores:
            if store.id == store_id:
                return store
        return None

    def store_profiles(self) -> List[StoreProfile]:
        return [store.to_profile() for store in self.stores]

    def staff_members(self) -> List[StaffMember]:
        return [member.to_member() for member in self.staff]


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
