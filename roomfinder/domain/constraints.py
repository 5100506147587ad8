"""Domain-level validation rules for ranking configuration."""

from __future__ import annotations

import math
from dataclasses import dataclass

from roomfinder.utils.config import Settings


WEIGHT_SUM_TOLERANCE = 1e-6


@dataclass(frozen=True)
class RankingConfig:
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

    @classmethod
    def from_settings(cls, settings: Settings) -> "RankingConfig":
        return cls(
            facility_weight=settings.facility_weight,
            capacity_weight=settings.capacity_weight,
            availability_weight=settings.availability_weight,
            location_weight=settings.location_weight,
            capacity_decay_rate=settings.capacity_decay_rate,
            exact_capacity_bonus=settings.exact_capacity_bonus,
            unavailable_penalty=settings.unavailable_penalty,
            unavailable_weighted_score=settings.unavailable_weighted_score,
            unknown_capacity_factor=settings.unknown_capacity_factor,
            unknown_capacity_score=settings.unknown_capacity_score,
            facility_score_floor=settings.facility_score_floor,
            best_fit_tie_tolerance=settings.best_fit_tie_tolerance,
            weighted_good_match_threshold=settings.weighted_good_match_threshold,
            best_fit_good_match_threshold=settings.best_fit_good_match_threshold,
        )


def validate_ranking_config(config: RankingConfig) -> None:
    weights = (
        config.facility_weight,
        config.capacity_weight,
        config.availability_weight,
        config.location_weight,
    )
    if any(weight < 0.0 for weight in weights):
        raise ValueError("ranking weights must be >= 0")
    if not math.isclose(sum(weights), 1.0, abs_tol=WEIGHT_SUM_TOLERANCE):
        raise ValueError("ranking weights must sum to 1.0")
    if config.capacity_decay_rate <= 0.0:
        raise ValueError("capacity_decay_rate must be > 0")
    if config.exact_capacity_bonus < 1.0:
        raise ValueError("exact_capacity_bonus must be >= 1")
    if not 0.0 < config.unavailable_penalty <= 1.0:
        raise ValueError("unavailable_penalty must be in (0, 1]")
    if not 0.0 <= config.unavailable_weighted_score <= 100.0:
        raise ValueError("unavailable_weighted_score must be between 0 and 100")
    if not 0.0 < config.unknown_capacity_factor <= 1.0:
        raise ValueError("unknown_capacity_factor must be in (0, 1]")
    if not 0.0 <= config.unknown_capacity_score <= 100.0:
        raise ValueError("unknown_capacity_score must be between 0 and 100")
    if not 0.0 <= config.facility_score_floor <= 1.0:
        raise ValueError("facility_score_floor must be between 0 and 1")
    if config.best_fit_tie_tolerance < 0.0:
        raise ValueError("best_fit_tie_tolerance must be >= 0")
