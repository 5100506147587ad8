"""Tests for composite scoring under both ranking strategies."""

from __future__ import annotations

import math

import pytest

from roomfinder.domain.constraints import RankingConfig
from roomfinder.domain.models import (
    AvailabilityInfo,
    Facility,
    Location,
    ParsedRequirements,
    ScoreComponents,
)
from roomfinder.services.scoring_service import (
    BestFitRankingStrategy,
    ScoringEngine,
    WeightedRankingStrategy,
    build_strategy,
    capacity_efficiency,
    discrete_capacity_score,
    location_hint_score,
)
from roomfinder.utils.config import get_settings


@pytest.fixture()
def config() -> RankingConfig:
    get_settings.cache_clear()
    return RankingConfig.from_settings(get_settings())


def _room(capacity, facilities=(), **kwargs) -> Location:
    return Location(
        id=kwargs.pop("location_id", 1),
        name=kwargs.pop("name", "Meeting Room 2.01"),
        kind="ROOM",
        capacity=capacity,
        facilities=tuple(Facility(item) for item in facilities),
        **kwargs,
    )


def test_capacity_efficiency_is_one_at_exact_fit() -> None:
    assert capacity_efficiency(6, 6) == 1.0


def test_capacity_efficiency_strictly_decreases_with_oversize() -> None:
    values = [capacity_efficiency(6, actual) for actual in range(6, 20)]

    assert all(earlier > later for earlier, later in zip(values, values[1:]))


def test_undersized_capacity_scores_zero() -> None:
    assert capacity_efficiency(6, 4) == 0.0
    assert discrete_capacity_score(6, 4) == 0.0


@pytest.mark.parametrize(
    ("actual", "expected"),
    [(6, 100.0), (9, 90.0), (12, 70.0), (13, 50.0), (None, 50.0)],
)
def test_discrete_capacity_steps(actual, expected: float) -> None:
    assert discrete_capacity_score(6, actual) == expected


def test_location_hint_score_is_fraction_found() -> None:
    location = _room(6, description="3rd floor, east wing")

    assert location_hint_score(location, ()) == 50.0
    assert location_hint_score(location, ("3rd floor", "building B")) == 50.0
    assert location_hint_score(location, ("3rd floor", "east wing")) == 100.0


def test_best_fit_oversized_room_with_exact_facility(config: RankingConfig) -> None:
    engine = ScoringEngine(BestFitRankingStrategy(config))
    requirements = ParsedRequirements(capacity=6, facilities=("whiteboard",))

    candidate = engine.evaluate(_room(8, ["Whiteboard"]), requirements)

    assert candidate.score == pytest.approx(math.exp(-0.3))
    assert candidate.score == pytest.approx(0.741, abs=1e-3)
    assert candidate.capacity_info is not None and candidate.capacity_info.is_match
    assert "✓ whiteboard: Whiteboard (exact match)" in candidate.match_details


def test_best_fit_exact_capacity_gets_bonus(config: RankingConfig) -> None:
    strategy = BestFitRankingStrategy(config)

    exact = strategy.composite(ScoreComponents(requested_capacity=6, actual_capacity=6))
    unknown = strategy.composite(ScoreComponents(requested_capacity=6, actual_capacity=None))

    assert exact == pytest.approx(1.2)
    assert unknown == pytest.approx(0.75)


def test_best_fit_floors_missing_facilities(config: RankingConfig) -> None:
    strategy = BestFitRankingStrategy(config)

    score = strategy.composite(ScoreComponents(facility_score=0.0))

    assert score == pytest.approx(0.1)


def test_weighted_strategy_normalises_over_applied_components(config: RankingConfig) -> None:
    strategy = WeightedRankingStrategy(config)

    full = strategy.composite(
        ScoreComponents(facility_score=100.0, requested_capacity=6, actual_capacity=6)
    )
    unconstrained = strategy.composite(ScoreComponents())
    half_hints = strategy.composite(
        ScoreComponents(requested_capacity=6, actual_capacity=6, hint_score=50.0, has_hints=True)
    )

    assert full == pytest.approx(100.0)
    assert unconstrained == pytest.approx(100.0)
    assert half_hints == pytest.approx((25.0 + 5.0) / 0.35)


def test_weighted_perfect_fit_clears_good_match_threshold(config: RankingConfig) -> None:
    strategy = WeightedRankingStrategy(config)

    capacity_only = strategy.composite(ScoreComponents(requested_capacity=6, actual_capacity=6))
    oversized = strategy.composite(ScoreComponents(requested_capacity=6, actual_capacity=13))

    assert capacity_only == pytest.approx(100.0)
    assert capacity_only >= strategy.good_match_threshold
    assert oversized < strategy.good_match_threshold


def test_weighted_availability_component(config: RankingConfig) -> None:
    strategy = WeightedRankingStrategy(config)

    available = strategy.composite(ScoreComponents(available=True))
    unavailable = strategy.composite(ScoreComponents(available=False))
    with_capacity = strategy.composite(
        ScoreComponents(requested_capacity=6, actual_capacity=6, available=False)
    )

    assert available == pytest.approx(100.0)
    assert unavailable == pytest.approx(30.0)
    assert with_capacity == pytest.approx((25.0 + 7.5) / 0.5)


def test_empty_facility_set_is_neutral(config: RankingConfig) -> None:
    engine = ScoringEngine(WeightedRankingStrategy(config))

    candidate = engine.evaluate(_room(6, ["Whiteboard"]), ParsedRequirements())

    assert candidate.components.facility_score is None
    assert not any(detail.startswith("✗") for detail in candidate.match_details)


def test_missing_facilities_are_listed(config: RankingConfig) -> None:
    engine = ScoringEngine(WeightedRankingStrategy(config))

    candidate = engine.evaluate(
        _room(6, ["Whiteboard"]),
        ParsedRequirements(facilities=("whiteboard", "kitchen")),
    )

    assert "✗ Missing: kitchen" in candidate.match_details
    assert candidate.components.facility_score == pytest.approx(65.0)


def test_unavailable_candidate_is_penalised(config: RankingConfig) -> None:
    engine = ScoringEngine(BestFitRankingStrategy(config))
    candidate = engine.evaluate(_room(6), ParsedRequirements(capacity=6))

    penalised = engine.apply_availability(candidate, AvailabilityInfo(is_available=False))
    unchecked = engine.apply_availability(
        candidate,
        AvailabilityInfo(is_available=False, checked=False, note="Could not check availability"),
    )

    assert penalised.score == pytest.approx(candidate.score * 0.5)
    assert "✗ Not available at requested time" in penalised.match_details
    assert unchecked.match_details[-1] == "⚠ Could not check availability"


def test_build_strategy_rejects_unknown_intent(config: RankingConfig) -> None:
    assert build_strategy("general", config).name == "general"
    assert build_strategy("best_fit", config).name == "best_fit"
    with pytest.raises(ValueError):
        build_strategy("cheapest", config)
