"""Configuration management for Notedeck."""

import logging
import math
import warnings
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Keys of the persisted settings table that drive scheduling
REQUEST_RETENTION_KEY = "request_retention"
MAXIMUM_INTERVAL_KEY = "maximum_interval"
BURY_SIBLING_CARDS_KEY = "bury_sibling_cards"
REVIEW_NEW_CARDS_FIRST_KEY = "review_new_cards_first"

SCHEDULER_SETTING_KEYS = (
    REQUEST_RETENTION_KEY,
    MAXIMUM_INTERVAL_KEY,
    BURY_SIBLING_CARDS_KEY,
    REVIEW_NEW_CARDS_FIRST_KEY,
)

MIN_REQUEST_RETENTION = 0.01
MAX_REQUEST_RETENTION = 0.99
MIN_MAXIMUM_INTERVAL = 1

DEFAULT_REQUEST_RETENTION = 0.9
DEFAULT_MAXIMUM_INTERVAL = 36500


class ConfigurationWarning(UserWarning):
    """A configuration value was out of range or unreadable and has been replaced."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOTEDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_path: Path = Field(
        default=Path("data/notedeck.db"),
        description="Path to SQLite database file",
    )

    log_level: str = Field(default="WARNING", description="Root logging level")

    # Scheduler defaults (overridden by the persisted settings table)
    request_retention: float = Field(
        default=DEFAULT_REQUEST_RETENTION,
        description="Target probability of recall at the due date",
    )
    maximum_interval: int = Field(
        default=DEFAULT_MAXIMUM_INTERVAL,
        description="Longest interval in days the scheduler may produce",
    )
    bury_sibling_cards: bool = Field(
        default=False,
        description="Hide the reverse card of a note until tomorrow after a review",
    )
    review_new_cards_first: bool = Field(
        default=False,
        description="Show never-reviewed cards before due reviews",
    )
    learning_steps: list[float] = Field(
        default_factory=lambda: [1.0, 10.0],
        description="Learning steps in minutes",
    )
    relearning_steps: list[float] = Field(
        default_factory=lambda: [10.0],
        description="Relearning steps in minutes",
    )
    burial_timezone: Optional[str] = Field(
        default=None,
        description="IANA time zone for the burial midnight (default: system local time)",
    )

    @property
    def database_url(self) -> str:
        """SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@dataclass(frozen=True)
class SchedulerParameters:
    """Inputs of the memory model that come from configuration."""

    request_retention: float = DEFAULT_REQUEST_RETENTION
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL
    learning_steps: tuple[float, ...] = (1.0, 10.0)  # minutes
    relearning_steps: tuple[float, ...] = (10.0,)  # minutes

    def clamped(self) -> "SchedulerParameters":
        """Return a copy with retention in (0, 1) and maximum interval >= 1.

        Out-of-range values are replaced by the nearest valid bound and
        non-finite ones by the defaults; either way a ConfigurationWarning
        is emitted.
        """
        retention = self.request_retention
        if not math.isfinite(retention):
            retention = DEFAULT_REQUEST_RETENTION
            _warn(
                f"request_retention {self.request_retention} is not finite, "
                f"using {retention}"
            )
        elif not MIN_REQUEST_RETENTION <= retention <= MAX_REQUEST_RETENTION:
            retention = min(max(retention, MIN_REQUEST_RETENTION), MAX_REQUEST_RETENTION)
            _warn(
                f"request_retention {self.request_retention} is outside (0, 1), "
                f"using {retention}"
            )

        if math.isfinite(self.maximum_interval):
            maximum_interval = int(self.maximum_interval)
        else:
            maximum_interval = DEFAULT_MAXIMUM_INTERVAL
            _warn(
                f"maximum_interval {self.maximum_interval} is not finite, "
                f"using {maximum_interval}"
            )
        if maximum_interval < MIN_MAXIMUM_INTERVAL:
            maximum_interval = MIN_MAXIMUM_INTERVAL
            _warn(
                f"maximum_interval {self.maximum_interval} is below "
                f"{MIN_MAXIMUM_INTERVAL}, using {maximum_interval}"
            )

        learning_steps = tuple(s for s in self.learning_steps if _valid_step(s))
        relearning_steps = tuple(s for s in self.relearning_steps if _valid_step(s))

        if (
            retention == self.request_retention
            and maximum_interval == self.maximum_interval
            and learning_steps == self.learning_steps
            and relearning_steps == self.relearning_steps
        ):
            return self
        return replace(
            self,
            request_retention=retention,
            maximum_interval=maximum_interval,
            learning_steps=learning_steps,
            relearning_steps=relearning_steps,
        )


@dataclass(frozen=True)
class ReviewConfig:
    """Everything a review event needs to know, read fresh for each event."""

    scheduler: SchedulerParameters = field(default_factory=SchedulerParameters)
    bury_sibling_cards: bool = False
    review_new_cards_first: bool = False
    burial_timezone: Optional[ZoneInfo] = None


def load_review_config(settings: Settings, stored: Mapping[str, str]) -> ReviewConfig:
    """Fold persisted setting values over the environment defaults.

    Args:
        settings: Process-level settings supplying the defaults
        stored: Values from the settings table, keyed by setting name

    Returns:
        A ReviewConfig with validated scheduler parameters
    """
    retention = _parse_number(
        stored.get(REQUEST_RETENTION_KEY), float, settings.request_retention,
        REQUEST_RETENTION_KEY,
    )
    maximum_interval = _parse_number(
        stored.get(MAXIMUM_INTERVAL_KEY), int, settings.maximum_interval,
        MAXIMUM_INTERVAL_KEY,
    )

    scheduler = SchedulerParameters(
        request_retention=retention,
        maximum_interval=maximum_interval,
        learning_steps=tuple(settings.learning_steps),
        relearning_steps=tuple(settings.relearning_steps),
    ).clamped()

    return ReviewConfig(
        scheduler=scheduler,
        bury_sibling_cards=_parse_flag(
            stored.get(BURY_SIBLING_CARDS_KEY), settings.bury_sibling_cards
        ),
        review_new_cards_first=_parse_flag(
            stored.get(REVIEW_NEW_CARDS_FIRST_KEY), settings.review_new_cards_first
        ),
        burial_timezone=_parse_timezone(settings.burial_timezone),
    )


def _parse_number(raw: Optional[str], kind: type, default, key: str):
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        _warn(f"{key} value {raw!r} is not a number, using {default}")
        return default
    if not math.isfinite(value):
        _warn(f"{key} value {raw!r} is not a finite number, using {default}")
        return default
    return int(value) if kind is int else value


def _parse_timezone(name: Optional[str]) -> Optional[ZoneInfo]:
    # None means the system local time zone
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        _warn(f"burial_timezone {name!r} is not a known time zone, using local time")
        return None


def _valid_step(minutes: float) -> bool:
    return math.isfinite(minutes) and minutes > 0


def _parse_flag(raw: Optional[str], default: bool) -> bool:
    # Stored as the strings "true"/"false"
    if raw is None or raw == "":
        return default
    return raw.strip().lower() == "true"


def _warn(message: str) -> None:
    logger.warning(message)
    warnings.warn(message, ConfigurationWarning, stacklevel=3)
