"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import ConfigError, InvalidTimezone
from .domain.timezones import local_timezone, validate_timezone


class DefaultsConfig(BaseModel):
    """Default settings for suggestion requests."""
    duration_minutes: int = 120
    buffer_minutes: int = 15
    max_suggestions: int = 5
    max_mutual_slots: int = 10
    history_window_days: int = 30

    @field_validator("duration_minutes", "max_suggestions", "max_mutual_slots", "history_window_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("buffer_minutes")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        if value < 0:
            raise ValueError("buffer_minutes must not be negative")
        return value


class ScoringConfig(BaseModel):
    """Scoring switches."""
    # Score "both preferred" against each user's own preferred ranges
    # instead of the fixed 09:00-18:00 window.
    use_profile_preferences: bool = False


class StoreConfig(BaseModel):
    """Where availability, events and hangouts are read from."""
    backend: Literal["json", "rest"] = "json"
    data_file: Optional[Path] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = 30.0
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_attempts must be at least 1")
        return value

    @model_validator(mode="after")
    def validate_backend_settings(self) -> "StoreConfig":
        """The REST backend needs an endpoint and a key."""
        if self.backend == "rest" and not (self.base_url and self.api_key):
            raise ValueError("store.base_url and store.api_key are required for the rest backend")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = Field(default_factory=local_timezone)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone_name(cls, value: str) -> str:
        """Ensure the fallback timezone is a known IANA zone."""
        try:
            return validate_timezone(value)
        except InvalidTimezone as exc:
            raise ValueError(str(exc)) from exc

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
            ConfigError: If the file is not valid YAML or not a mapping
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
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a mapping at the root level.")

        return cls(**data)

    @classmethod
    def load_or_default(cls, config_path: Optional[Path] = None) -> "AppConfig":
        """Load the given or default config file, falling back to defaults if absent."""
        path = config_path or get_default_config_path()
        if config_path is None and not path.exists():
            return cls()
        return cls.load_from_yaml(path)


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
