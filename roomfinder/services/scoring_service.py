"""Composite relevance scoring behind a pluggable ranking strategy.

Two strategies share the same inputs (``ScoreComponents``):

* ``WeightedRankingStrategy`` blends 0-100 component scores with weights that
  sum to 1.0, renormalised over the components a request actually uses.
  Used for general multi-factor searches.
* ``BestFitRankingStrategy`` starts at 1.0 and multiplies in a factor per
  component, so a tight capacity fit dominates. Used for booking flows.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Optional

from roomfinder.domain.constraints import RankingConfig, validate_ranking_config
from roomfinder.domain.models import (
    INTENT_BEST_FIT,
    INTENT_GENERAL,
    AvailabilityInfo,
    CapacityInfo,
    Location,
    ParsedRequirements,
    ScoreComponents,
    ScoredCandidate,
)
from roomfinder.services.candidate_filter import effective_capacity
from roomfinder.services.facility_matcher import FacilityMatcher, aggregate_score


NEUTRAL_HINT_SCORE = 50.0
AVAILABLE_SCORE = 100.0
MAX_WEIGHTED_SCORE = 100.0


def discrete_capacity_score(
    requested: int,
    actual: Optional[int],
    unknown_score: float = 50.0,
) -> float:
    """Stepwise capacity fit on a 0-100 scale."""
    if actual is None:
        return unknown_score
    if actual < requested:
        return 0.0
    if actual == requested:
        return 100.0
    oversize = (actual - requested) / requested
    if oversize <= 0.5:
        return 90.0
    if oversize <= 1.0:
        return 70.0
    return 50.0


def capacity_efficiency(requested: int, actual: int, decay_rate: float = 0.15) -> float:
    """Exponential penalty for unused seats; 1.0 at an exact fit."""
    if actual < requested:
        return 0.0
    return math.exp(-decay_rate * (actual - requested))


def location_hint_score(location: Location, hints: tuple[str, ...]) -> float:
    if not hints:
        return NEUTRAL_HINT_SCORE
    text = location.search_text
    found = sum(1 for hint in hints if hint.lower() in text)
    return found / len(hints) * 100.0


class RankingStrategy(ABC):
    """Folds score components into one comparable number."""

    name: str = ""

    def __init__(self, config: RankingConfig) -> None:
        validate_ranking_config(config)
        self._config = config

    @property
    def config(self) -> RankingConfig:
        return self._config

    @property
    @abstractmethod
    def tie_tolerance(self) -> float:
        """Scores closer than this are considered equal by the ranker."""

    @property
    @abstractmethod
    def good_match_threshold(self) -> float:
        """Scores below this trigger fallback suggestions."""

    @abstractmethod
    def composite(self, components: ScoreComponents) -> float:
        raise NotImplementedError


class WeightedRankingStrategy(RankingStrategy):
    name = INTENT_GENERAL

    @property
    def tie_tolerance(self) -> float:
        return 0.0

    @property
    def good_match_threshold(self) -> float:
        return self._config.weighted_good_match_threshold

    def composite(self, components: ScoreComponents) -> float:
        """Weighted mean of the components that apply, on a 0-100 scale.

        Only requested components count towards the weight total, so a
        candidate that satisfies everything asked of it scores 100 whichever
        subset of facilities, capacity, availability and hints was requested.
        """
        config = self._config
        total = 0.0
        applied_weight = 0.0
        if components.facility_score is not None:
            total += components.facility_score * config.facility_weight
            applied_weight += config.facility_weight
        if components.requested_capacity is not None:
            capacity_score = discrete_capacity_score(
                components.requested_capacity,
                components.actual_capacity,
                unknown_score=config.unknown_capacity_score,
            )
            total += capacity_score * config.capacity_weight
            applied_weight += config.capacity_weight
        if components.available is not None:
            availability_score = (
                AVAILABLE_SCORE if components.available else config.unavailable_weighted_score
            )
            total += availability_score * config.availability_weight
            applied_weight += config.availability_weight
        if components.has_hints:
            total += components.hint_score * config.location_weight
            applied_weight += config.location_weight
        if applied_weight <= 0.0:
            return MAX_WEIGHTED_SCORE
        return total / applied_weight


class BestFitRankingStrategy(RankingStrategy):
    name = INTENT_BEST_FIT

    @property
    def tie_tolerance(self) -> float:
        return self._config.best_fit_tie_tolerance

    @property
    def good_match_threshold(self) -> float:
        return self._config.best_fit_good_match_threshold

    def capacity_factor(self, requested: int, actual: Optional[int]) -> float:
        config = self._config
        if actual is None:
            return config.unknown_capacity_factor
        if actual == requested:
            return config.exact_capacity_bonus
        return capacity_efficiency(requested, actual, config.capacity_decay_rate)

    def composite(self, components: ScoreComponents) -> float:
        config = self._config
        score = 1.0
        if components.facility_score is not None:
            score *= max(components.facility_score / 100.0, config.facility_score_floor)
        if components.requested_capacity is not None:
            score *= self.capacity_factor(
                components.requested_capacity,
                components.actual_capacity,
            )
        if components.available is False:
            score *= config.unavailable_penalty
        return score


def build_strategy(intent: str, config: RankingConfig) -> RankingStrategy:
    if intent == INTENT_GENERAL:
        return WeightedRankingStrategy(config)
    if intent == INTENT_BEST_FIT:
        return BestFitRankingStrategy(config)
    raise ValueError(f"Unknown ranking intent: {intent}")


class ScoringEngine:
    """Evaluates one candidate against a requirement set."""

    def __init__(self, strategy: RankingStrategy, matcher: Optional[FacilityMatcher] = None) -> None:
        self._strategy = strategy
        self._matcher = matcher or FacilityMatcher()

    @property
    def strategy(self) -> RankingStrategy:
        return self._strategy

    def score(self, location: Location, requirements: ParsedRequirements) -> float:
        return self.evaluate(location, requirements).score

    def evaluate(self, location: Location, requirements: ParsedRequirements) -> ScoredCandidate:
        terms = requirements.facilities
        matches = self._matcher.match_all(terms, location.facilities)
        details: list[str] = []

        facility_score: Optional[float] = None
        if terms:
            facility_score = aggregate_score(len(terms), matches)
            matched_terms = {match.search_term for match in matches}
            for match in matches:
                details.append(
                    f"✓ {match.search_term}: {match.facility.label} ({match.match_type} match)"
                )
            for term in terms:
                if term not in matched_terms:
                    details.append(f"✗ Missing: {term}")

        requested = requirements.capacity
        actual = effective_capacity(location)
        capacity_info: Optional[CapacityInfo] = None
        if requested is not None:
            capacity_info = CapacityInfo(
                requested=requested,
                actual=actual,
                is_match=actual is not None and actual >= requested,
            )
            if actual is None:
                details.append("Capacity unknown")
            elif actual == requested:
                details.append(f"✓ Exact capacity match ({requested})")
            else:
                details.append(f"✓ Capacity {actual} (fits {requested})")

        hints = requirements.location_hints
        hint_score = location_hint_score(location, hints)
        if hints and hint_score > 0:
            details.append(f"✓ Near {', '.join(h for h in hints if h.lower() in location.search_text)}")

        if location.kind:
            details.append(f"Type: {location.kind}")
        if location.qualified_name:
            details.append(f"Location: {location.qualified_name}")

        components = ScoreComponents(
            facility_score=facility_score,
            requested_capacity=requested,
            actual_capacity=actual,
            hint_score=hint_score,
            has_hints=bool(hints),
        )
        return ScoredCandidate(
            location=location,
            score=self._strategy.composite(components),
            match_details=tuple(details),
            facility_matches=matches,
            capacity_info=capacity_info,
            components=components,
            facility_info=(
                self._matcher.summarize(location.facilities, matches)
                if location.facilities
                else None
            ),
        )

    def apply_availability(
        self,
        candidate: ScoredCandidate,
        availability: AvailabilityInfo,
    ) -> ScoredCandidate:
        """Fold an availability outcome into the candidate's score and details."""
        components = replace(candidate.components, available=availability.is_available)
        if not availability.checked:
            note = f"⚠ {availability.note or 'Could not check availability'}"
        elif availability.is_available:
            note = "✓ Available at requested time"
        else:
            note = "✗ Not available at requested time"
        return replace(
            candidate,
            score=self._strategy.composite(components),
            match_details=candidate.match_details + (note,),
            availability=availability,
            components=components,
        )
