"""Runtime settings resolved from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    synthetic_random_seed: int

    facility_weight: float
    capacity_weight: float
    availability_weight: float
    location_weight: float
    capacity_decay_rate: float
    exact_capacity_bonus: float
    unavailable_penalty: float
    unavailable_weighted_score: float
    unknown_capacity_factor: float
    unknown_capacity_score: float
    facility_score_floor: float
    best_fit_tie_tolerance: float
    weighted_good_match_threshold: float
    best_fit_good_match_threshold: float

    default_capacity_result_cap: int
    default_result_limit: int
    facility_search_limit: int
    facility_list_limit: int
    name_search_limit: int
    availability_check_limit: int
    availability_max_workers: int
    availability_timeout_seconds: float

    meeting_capable_kind: str
    default_day_start_hour: int
    default_day_end_hour: int
    default_duration_minutes: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests derive variants with ``replace``."""
    return Settings(
        app_name=os.getenv("APP_NAME", "roomfinder"),
        app_version=os.getenv("APP_VERSION", "0.1.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=Path(
            os.getenv("DATABASE_PATH", str(PROJECT_ROOT / "data" / "roomfinder.db"))
        ),
        synthetic_random_seed=_env_int("SYNTHETIC_RANDOM_SEED", 42),
        facility_weight=_env_float("RANKING_FACILITY_WEIGHT", 0.4),
        capacity_weight=_env_float("RANKING_CAPACITY_WEIGHT", 0.25),
        availability_weight=_env_float("RANKING_AVAILABILITY_WEIGHT", 0.25),
        location_weight=_env_float("RANKING_LOCATION_WEIGHT", 0.1),
        capacity_decay_rate=_env_float("RANKING_CAPACITY_DECAY_RATE", 0.15),
        exact_capacity_bonus=1.2,
        unavailable_penalty=0.5,
        unavailable_weighted_score=30.0,
        unknown_capacity_factor=0.75,
        unknown_capacity_score=50.0,
        facility_score_floor=0.1,
        best_fit_tie_tolerance=0.01,
        weighted_good_match_threshold=60.0,
        best_fit_good_match_threshold=0.5,
        default_capacity_result_cap=3,
        default_result_limit=_env_int("SEARCH_DEFAULT_RESULT_LIMIT", 10),
        facility_search_limit=20,
        facility_list_limit=_env_int("FACILITY_LIST_LIMIT", 50),
        name_search_limit=_env_int("NAME_SEARCH_LIMIT", 50),
        availability_check_limit=_env_int("AVAILABILITY_CHECK_LIMIT", 10),
        availability_max_workers=_env_int("AVAILABILITY_MAX_WORKERS", 4),
        availability_timeout_seconds=_env_float("AVAILABILITY_TIMEOUT_SECONDS", 5.0),
        meeting_capable_kind=os.getenv("MEETING_CAPABLE_KIND", "MEETING_SPACE"),
        default_day_start_hour=9,
        default_day_end_hour=18,
        default_duration_minutes=60,
    )
