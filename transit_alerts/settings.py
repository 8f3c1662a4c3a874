"""Engine configuration.

Settings are read once at startup (``EngineSettings.from_env()``) and passed
to the components that need them.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

ENV_PREFIX = "TRANSIT_"

# Lahiri ayanamsa around J2000.
DEFAULT_AYANAMSA = 23.85


class EngineSettings(BaseModel):
    default_ayanamsa: float = Field(DEFAULT_AYANAMSA, ge=0, lt=360)

    cache_capacity: int = Field(4096, ge=1)
    cache_ttl_seconds: Optional[float] = Field(None, gt=0)
    cache_key_decimals: int = Field(5, ge=0, le=9)
    cache_dir: Optional[str] = None

    registry_max_providers: int = Field(8, ge=1)
    registry_max_charts: int = Field(1024, ge=1)

    poll_interval_seconds: float = Field(60.0, gt=0)
    subscriber_queue_size: int = Field(16, ge=1)

    default_orb: float = Field(5.0, ge=0, le=15)
    series_step_days: float = Field(1.0, gt=0)

    immediate_days: float = Field(1.0, ge=0)
    soon_days: float = Field(7.0, ge=0)
    upcoming_days: float = Field(30.0, ge=0)
    advance_days: float = Field(90.0, ge=0)

    notify_log_enabled: bool = True
    notify_webhook_enabled: bool = False
    webhook_url: Optional[str] = None
    webhook_timeout_seconds: float = Field(5.0, gt=0)

    log_level: str = "INFO"
    logging_enabled: bool = False

    @model_validator(mode="after")
    def _check(self) -> "EngineSettings":
        if not self.immediate_days <= self.soon_days <= self.upcoming_days <= self.advance_days:
            raise ValueError("alert thresholds must ascend: immediate <= soon <= upcoming <= advance")
        if self.notify_webhook_enabled and not self.webhook_url:
            raise ValueError("webhook_url is required when the webhook channel is enabled")
        if logging.getLevelName(self.log_level.upper()) not in (
            logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL,
        ):
            raise ValueError(f"unknown log level {self.log_level!r}")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, dotenv: bool = True) -> "EngineSettings":
        """Build settings from ``TRANSIT_*`` variables (``.env`` is loaded first)."""

        if environ is None:
            if dotenv:
                load_dotenv()
            environ = dict(os.environ)
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            values[name] = raw
        return cls(**values)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger().setLevel(level.upper())
