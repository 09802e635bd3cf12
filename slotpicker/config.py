"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List

import pendulum
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .domain.exceptions import ConfigurationError
from .domain.models import BusinessHours
from .services.availability import MAX_SLOT_MINUTES, MIN_SLOT_MINUTES


class BusinessHoursConfig(BaseModel):
    """Open hours per business day and the default slot size."""
    start_hour: int = 8
    end_hour: int = 18
    slot_minutes: int = 30

    @field_validator("start_hour")
    @classmethod
    def validate_start_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"start_hour must be between 0 and 23, got {v}")
        return v

    @field_validator("end_hour")
    @classmethod
    def validate_end_hour(cls, v: int) -> int:
        """Validate hour is between 1 and 24 (24 = midnight)."""
        if not 1 <= v <= 24:
            raise ValueError(f"end_hour must be between 1 and 24, got {v}")
        return v

    @field_validator("slot_minutes")
    @classmethod
    def validate_slot_minutes(cls, v: int) -> int:
        if not MIN_SLOT_MINUTES <= v <= MAX_SLOT_MINUTES:
            raise ValueError(
                f"slot_minutes must be between {MIN_SLOT_MINUTES} and {MAX_SLOT_MINUTES}, got {v}"
            )
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "BusinessHoursConfig":
        """Ensure the configured window opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self


class CalendarConfig(BaseModel):
    """Calendar provider (Microsoft Graph) settings."""
    calendar_id: str
    client_id: str = ""
    tenant_id: str = "common"

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class SmtpConfig(BaseModel):
    """Outgoing mail server settings."""
    host: str = ""
    port: int = 587
    user: str = ""
    password: str = ""
    mail_from: str = ""

    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    def sender(self) -> str:
        return self.mail_from or self.user or "no-reply@example.com"


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str
    business_hours: BusinessHoursConfig
    calendar: CalendarConfig
    exclude_days: List[int] = Field(default_factory=lambda: [5, 6])  # Saturday, Sunday
    smtp: SmtpConfig = Field(default_factory=SmtpConfig)
    notify_to: str = ""
    proposals_path: Path = Path("data/proposals.json")
    max_proposals: int = 10

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA identifier."""
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("exclude_days")
    @classmethod
    def validate_exclude_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"exclude_days must be between 0 and 6, got {invalid_days}")
        return list(dict.fromkeys(value))

    @field_validator("max_proposals")
    @classmethod
    def validate_max_proposals(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_proposals must be greater than zero")
        return value

    def get_business_hours(self) -> BusinessHours:
        """Build the domain-level business hours definition."""
        return BusinessHours(
            start_hour=self.business_hours.start_hour,
            end_hour=self.business_hours.end_hour,
            timezone=self.timezone,
            exclude_weekdays=tuple(self.exclude_days),
        )

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid
        """
        if not config_path.exists():
            raise ConfigurationError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError("Config file must contain a mapping at the root level.")

        try:
            return cls(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration in {config_path}:\n{exc}") from exc


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
