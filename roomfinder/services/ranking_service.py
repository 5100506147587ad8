"""Ordering, truncation and fallback suggestions for scored candidates."""

from __future__ import annotations

from functools import cmp_to_key
from typing import Iterable, Optional, Sequence

from roomfinder.domain.models import Location, ParsedRequirements, ScoredCandidate
from roomfinder.services.candidate_filter import effective_capacity
from roomfinder.services.facility_matcher import known_facility_names
from roomfinder.services.scoring_service import RankingStrategy
from roomfinder.utils.config import Settings, get_settings


MAX_LISTED_FACILITIES = 8


class Ranker:
    def __init__(self, strategy: RankingStrategy, settings: Optional[Settings] = None) -> None:
        self._strategy = strategy
        self._settings = settings or get_settings()

    def rank(
        self,
        candidates: Iterable[ScoredCandidate],
        requested_capacity: Optional[int] = None,
    ) -> list[ScoredCandidate]:
        """Sort by score descending; near-ties prefer the smaller effective capacity."""
        tolerance = self._strategy.tie_tolerance

        def compare(left: ScoredCandidate, right: ScoredCandidate) -> int:
            difference = left.score - right.score
            tied = abs(difference) < tolerance if tolerance > 0 else difference == 0
            if not tied:
                return -1 if difference > 0 else 1
            left_capacity = effective_capacity(left.location)
            right_capacity = effective_capacity(right.location)
            if (
                requested_capacity is not None
                and left_capacity is not None
                and right_capacity is not None
                and left_capacity != right_capacity
            ):
                return -1 if left_capacity < right_capacity else 1
            return 0

        return sorted(candidates, key=cmp_to_key(compare))

    def result_limit(
        self,
        requested_capacity: Optional[int],
        viable_count: int,
        explicit_limit: Optional[int] = None,
    ) -> int:
        if explicit_limit is not None:
            return explicit_limit
        cap = self._settings.default_capacity_result_cap
        if requested_capacity is not None and viable_count > cap:
            return cap
        return self._settings.default_result_limit

    def is_weak(self, results: Sequence[ScoredCandidate]) -> bool:
        threshold = self._strategy.good_match_threshold
        return not results or all(item.score < threshold for item in results)

    def build_suggestions(
        self,
        results: Sequence[ScoredCandidate],
        requirements: ParsedRequirements,
        searched_locations: Iterable[Location] = (),
        parent_scoped: bool = False,
        directory_unavailable: bool = False,
    ) -> tuple[str, ...]:
        if directory_unavailable:
            return (
                "The location directory could not be reached; retry the search shortly.",
                "If the problem persists, relax the constraints and search again.",
            )
        if not self.is_weak(results):
            return ()

        suggestions: list[str] = []
        if requirements.facilities:
            matched = {
                match.search_term.lower()
                for item in results
                for match in item.facility_matches
            }
            missing = [term for term in requirements.facilities if term.lower() not in matched]
            loosen = missing or list(requirements.facilities)
            suggestions.append(
                "Try removing or loosening facility requirements: " + ", ".join(loosen)
            )
            known = known_facility_names(searched_locations)
            if known:
                listed = ", ".join(known[:MAX_LISTED_FACILITIES])
                suggestions.append(f"Facilities available in this area include: {listed}")
        if requirements.capacity is not None and requirements.capacity > 1:
            suggestions.append(
                f"Try a smaller capacity than {requirements.capacity} or split into several spaces"
            )
        window = requirements.time_constraints
        if window.has_window:
            unavailable = [
                item for item in results
                if item.availability is not None and not item.availability.is_available
            ]
            if unavailable and len(unavailable) == len(results):
                suggestions.append(
                    f"None of the matches is free between {window.date_from} and "
                    f"{window.date_to}; try a different time window"
                )
            else:
                suggestions.append("Try a different time window")
        if requirements.location_hints:
            suggestions.append(
                "Try searching without the location hints: "
                + ", ".join(requirements.location_hints)
            )
        if parent_scoped:
            suggestions.append("Search across all buildings instead of a single parent location")
        if not suggestions:
            suggestions.append("Broaden the search by describing the space with fewer constraints")
        return tuple(suggestions)
