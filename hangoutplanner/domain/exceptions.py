"""
Domain-specific exception hierarchy for the hangout planner.
"""


class HangoutPlannerError(Exception):
    """Base class for all application-level errors."""


class InvalidTimezone(HangoutPlannerError, ValueError):
    """Raised when a timezone identifier is not a known IANA zone."""

    def __init__(self, timezone: str):
        super().__init__(f"Unknown timezone identifier: '{timezone}'")
        self.timezone = timezone


class StoreError(HangoutPlannerError):
    """Raised when store data cannot be fetched or parsed."""


class SuggestionGenerationFailed(HangoutPlannerError):
    """Raised when availability or calendar data needed for suggestions is unavailable."""


class ConfigError(HangoutPlannerError, ValueError):
    """Raised when the configuration file cannot be read."""
