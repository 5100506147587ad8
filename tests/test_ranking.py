from __future__ import annotations

import pytest

from roomfinder.domain.constraints import RankingConfig
from roomfinder.domain.models import (
    AvailabilityInfo,
    Facility,
    Location,
    ParsedRequirements,
    ScoredCandidate,
    TimeConstraints,
)
from roomfinder.services.ranking_service import Ranker
from roomfinder.services.scoring_service import BestFitRankingStrategy, WeightedRankingStrategy
from roomfinder.utils.config import get_settings


@pytest.fixture()
def config() -> RankingConfig:
    get_settings.cache_clear()
    return RankingConfig.from_settings(get_settings())


def _candidate(location_id: int, score: float, capacity=None, **kwargs) -> ScoredCandidate:
    location = Location(
        id=location_id,
        name=f"Room {location_id}",
        kind="ROOM",
        capacity=capacity,
        facilities=kwargs.pop("facilities", ()),
    )
    return ScoredCandidate(location=location, score=score, **kwargs)


def test_rank_orders_by_score_descending(config: RankingConfig) -> None:
    ranker = Ranker(WeightedRankingStrategy(config))

    ranked = ranker.rank([_candidate(1, 40.0), _candidate(2, 75.0), _candidate(3, 60.0)])

    assert [item.location.id for item in ranked] == [2, 3, 1]


def test_near_tie_prefers_smaller_capacity(config: RankingConfig) -> None:
    ranker = Ranker(BestFitRankingStrategy(config))
    larger = _candidate(1, 0.505, capacity=10)
    smaller = _candidate(2, 0.500, capacity=6)

    ranked = ranker.rank([larger, smaller], requested_capacity=6)

    assert [item.location.id for item in ranked] == [2, 1]


def test_tie_break_needs_requested_capacity(config: RankingConfig) -> None:
    ranker = Ranker(BestFitRankingStrategy(config))

    ranked = ranker.rank([_candidate(1, 0.505, capacity=10), _candidate(2, 0.500, capacity=6)])

    assert [item.location.id for item in ranked] == [1, 2]


def test_tie_break_counts_undeclared_desk_as_one_seat(config: RankingConfig) -> None:
    ranker = Ranker(BestFitRankingStrategy(config))
    room = _candidate(1, 0.75, capacity=4)
    desk = ScoredCandidate(location=Location(id=2, name="Desk A1", kind="DESK"), score=0.75)

    ranked = ranker.rank([room, desk], requested_capacity=1)

    assert [item.location.id for item in ranked] == [2, 1]


def test_weighted_ties_require_exact_equality(config: RankingConfig) -> None:
    ranker = Ranker(WeightedRankingStrategy(config))

    near = ranker.rank([_candidate(1, 70.004, capacity=10), _candidate(2, 70.0, capacity=6)], 6)
    equal = ranker.rank([_candidate(1, 70.0, capacity=10), _candidate(2, 70.0, capacity=6)], 6)

    assert [item.location.id for item in near] == [1, 2]
    assert [item.location.id for item in equal] == [2, 1]


def test_result_limit_rules(config: RankingConfig) -> None:
    ranker = Ranker(BestFitRankingStrategy(config))

    assert ranker.result_limit(6, viable_count=5) == 3
    assert ranker.result_limit(6, viable_count=3) == 10
    assert ranker.result_limit(None, viable_count=50) == 10
    assert ranker.result_limit(6, viable_count=5, explicit_limit=5) == 5


def test_strong_results_need_no_suggestions(config: RankingConfig) -> None:
    ranker = Ranker(BestFitRankingStrategy(config))

    suggestions = ranker.build_suggestions([_candidate(1, 1.2, capacity=6)], ParsedRequirements(capacity=6))

    assert suggestions == ()


def test_weak_results_suggest_loosening_constraints(config: RankingConfig) -> None:
    ranker = Ranker(BestFitRankingStrategy(config))
    requirements = ParsedRequirements(
        capacity=12,
        facilities=("projector",),
        location_hints=("building B",),
        time_constraints=TimeConstraints("2024-06-01T09:00:00.000", "2024-06-01T10:00:00.000"),
    )
    searched = [
        Location(id=9, name="Room 9", facilities=(Facility("Whiteboard"), Facility("Wifi"))),
    ]

    suggestions = ranker.build_suggestions(
        [],
        requirements,
        searched_locations=searched,
        parent_scoped=True,
    )

    text = " ".join(suggestions)
    assert "projector" in suggestions[0]
    assert "Whiteboard, Wifi" in text
    assert "smaller capacity than 12" in text
    assert "time window" in text
    assert "building B" in text
    assert "all buildings" in text


def test_all_unavailable_names_the_window(config: RankingConfig) -> None:
    ranker = Ranker(BestFitRankingStrategy(config))
    window = TimeConstraints("2024-06-01T09:00:00.000", "2024-06-01T10:00:00.000")
    unavailable = _candidate(1, 0.3, capacity=6, availability=AvailabilityInfo(is_available=False))

    suggestions = ranker.build_suggestions([unavailable], ParsedRequirements(time_constraints=window))

    assert any("2024-06-01T09:00:00.000" in item for item in suggestions)


def test_outage_suggests_retry(config: RankingConfig) -> None:
    ranker = Ranker(WeightedRankingStrategy(config))

    suggestions = ranker.build_suggestions([], ParsedRequirements(), directory_unavailable=True)

    assert suggestions
    assert "retry" in suggestions[0]


def test_empty_results_without_constraints_get_generic_advice(config: RankingConfig) -> None:
    ranker = Ranker(WeightedRankingStrategy(config))

    suggestions = ranker.build_suggestions([], ParsedRequirements())

    assert len(suggestions) == 1
    assert suggestions[0].startswith("Broaden the search")
