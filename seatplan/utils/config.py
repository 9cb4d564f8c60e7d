"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration.

    Every field can be overridden with a ``SEATPLAN_<FIELD>`` environment
    variable. Tests build variants with ``dataclasses.replace``.
    """

    app_name: str = "Seat Allocation Engine"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    database_path: Path = Path("data/seatplan.db")
    seed_demo_roster: bool = True

    engine_max_iterations: int = 10
    engine_adjacency_threshold: float = 1.5
    engine_gender_enforcement: str = "must"
    engine_religious_enforcement: str = "must"
    engine_accessibility_enforcement: str = "must"
    engine_schedule_enforcement: str = "must"

    date_regex: str = r"^\d{4}-\d{2}-\d{2}$"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    defaults = Settings()
    return Settings(
        app_name=_env_str("SEATPLAN_APP_NAME", defaults.app_name),
        app_version=_env_str("SEATPLAN_APP_VERSION", defaults.app_version),
        log_level=_env_str("SEATPLAN_LOG_LEVEL", defaults.log_level),
        database_path=Path(
            _env_str("SEATPLAN_DATABASE_PATH", str(defaults.database_path))
        ),
        seed_demo_roster=_env_bool("SEATPLAN_SEED_DEMO_ROSTER", defaults.seed_demo_roster),
        engine_max_iterations=_env_int(
            "SEATPLAN_ENGINE_MAX_ITERATIONS",
            defaults.engine_max_iterations,
        ),
        engine_adjacency_threshold=_env_float(
            "SEATPLAN_ENGINE_ADJACENCY_THRESHOLD",
            defaults.engine_adjacency_threshold,
        ),
        engine_gender_enforcement=_env_str(
            "SEATPLAN_ENGINE_GENDER_ENFORCEMENT",
            defaults.engine_gender_enforcement,
        ),
        engine_religious_enforcement=_env_str(
            "SEATPLAN_ENGINE_RELIGIOUS_ENFORCEMENT",
            defaults.engine_religious_enforcement,
        ),
        engine_accessibility_enforcement=_env_str(
            "SEATPLAN_ENGINE_ACCESSIBILITY_ENFORCEMENT",
            defaults.engine_accessibility_enforcement,
        ),
        engine_schedule_enforcement=_env_str(
            "SEATPLAN_ENGINE_SCHEDULE_ENFORCEMENT",
            defaults.engine_schedule_enforcement,
        ),
    )
