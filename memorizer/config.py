"""
Runtime configuration.

Settings come from environment variables (a local .env file is loaded first).
The scheduler policy values below are empirically tuned repair heuristics,
not derived constants: change them only with evidence from real review data.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


DEFAULT_DATABASE_URL = "sqlite:///word_memorizer.db"
DEFAULT_STORAGE_KEY = "word_memorizer.deck.v1"


@dataclass(frozen=True)
class SchedulerPolicy:
    """
    Calibrated constants used to detect and repair corrupted timelines.

    Attributes:
        review_outlier_multiplier: A review due further than
            stability * multiplier days out is treated as corrupted
        review_outlier_floor_days: The outlier window is never narrower than this
        jitter_tolerance_minutes: Slack used for on-time detection and rounding
        clock_skew_hours: Largest clock disagreement accepted as drift
        plausibility_years: Largest distance from the wall clock accepted
            for creation and review instants
    """
    review_outlier_multiplier: float = 12.0
    review_outlier_floor_days: float = 120.0
    jitter_tolerance_minutes: float = 1.0
    clock_skew_hours: float = 12.0
    plausibility_years: float = 20.0

    @property
    def jitter_tolerance_days(self) -> float:
        return self.jitter_tolerance_minutes / 1440

    @property
    def clock_skew(self) -> timedelta:
        return timedelta(hours=self.clock_skew_hours)

    @property
    def plausibility_window(self) -> timedelta:
        return timedelta(days=365 * self.plausibility_years)

    @classmethod
    def from_env(cls) -> "SchedulerPolicy":
        """
        Build a policy from MEMORIZER_* environment variables.

        Each field maps to MEMORIZER_<FIELD_NAME_UPPER>, e.g.
        MEMORIZER_CLOCK_SKEW_HOURS=6. Values that are not positive finite
        numbers are ignored and the default is kept.
        """
        overrides = {}
        for field in fields(cls):
            env_name = f"MEMORIZER_{field.name.upper()}"
            raw = os.getenv(env_name)
            if raw is None:
                continue
            try:
                value = float(raw)
            except ValueError:
                logger.warning("Ignoring %s=%r: not a number", env_name, raw)
                continue
            if not (0 < value < float("inf")):
                logger.warning("Ignoring %s=%r: must be positive and finite", env_name, raw)
                continue
            overrides[field.name] = value
        return cls(**overrides)


DEFAULT_POLICY = SchedulerPolicy()


def get_database_url() -> str:
    """Database URL for the deck repository."""
    return os.getenv("MEMORIZER_DATABASE_URL", DEFAULT_DATABASE_URL)


def get_storage_key() -> str:
    """Key under which the deck snapshot is stored."""
    return os.getenv("MEMORIZER_STORAGE_KEY", DEFAULT_STORAGE_KEY)
