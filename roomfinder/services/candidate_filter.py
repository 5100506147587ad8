"""Narrows a location collection down to viable candidates."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Optional

from roomfinder.domain.models import Location, ParsedRequirements
from roomfinder.domain.vocabulary import SINGLE_OCCUPANT_KINDS
from roomfinder.services.facility_matcher import FacilityMatcher
from roomfinder.utils.config import Settings, get_settings
from roomfinder.utils.logger import get_logger


logger = get_logger(__name__)


def flatten_locations(roots: Iterable[Location]) -> list[Location]:
    """Breadth-first walk of the location tree returning bookable nodes once.

    The upstream hierarchy is expected to be acyclic; a repeated id is
    skipped and logged rather than walked again.
    """
    flattened: list[Location] = []
    visited: set[int] = set()
    queue: deque[Location] = deque(roots)
    while queue:
        location = queue.popleft()
        if location.id in visited:
            logger.warning("Location visited twice; skipping | location_id=%s", location.id)
            continue
        visited.add(location.id)
        if location.is_bookable:
            flattened.append(location)
        queue.extend(location.locations)
    return flattened


def effective_capacity(location: Location) -> Optional[int]:
    """Declared capacity, or 1 for single-occupant kinds that declare none."""
    if location.capacity is not None:
        return location.capacity
    if location.kind in SINGLE_OCCUPANT_KINDS:
        return 1
    return None


class CandidateFilter:
    """Kind, capacity, location-hint and explicit-facility filters."""

    def __init__(
        self,
        matcher: Optional[FacilityMatcher] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._matcher = matcher or FacilityMatcher()
        self._settings = settings or get_settings()

    def filter(
        self,
        locations: Iterable[Location],
        requirements: ParsedRequirements,
        explicit_kind: Optional[str] = None,
        apply_hints: bool = False,
        applied_filters: Optional[list[str]] = None,
    ) -> list[Location]:
        filters = applied_filters if applied_filters is not None else []
        candidates = list(locations)

        candidates = self.filter_by_kind(candidates, explicit_kind, filters)
        if requirements.capacity is not None and requirements.capacity > 0:
            candidates = self.filter_by_capacity(candidates, requirements.capacity)
            filters.append(f"capacity>={requirements.capacity}")
        if apply_hints and requirements.location_hints:
            candidates = self.filter_by_hints(candidates, requirements.location_hints, filters)
        if requirements.explicit_facilities:
            candidates = self.filter_by_facilities(candidates, requirements.explicit_facilities)
            filters.append("facilities:" + ",".join(requirements.explicit_facilities))

        logger.debug(
            "Candidates filtered | remaining=%s | filters=%s",
            len(candidates),
            filters,
        )
        return candidates

    def filter_by_kind(
        self,
        candidates: list[Location],
        kind: Optional[str],
        filters: list[str],
    ) -> list[Location]:
        if not kind:
            return candidates
        wanted = kind.upper()
        if wanted == self._settings.meeting_capable_kind.upper():
            # Capacity filtering keeps single-seat spaces out of meeting searches.
            filters.append(f"kind:{wanted}(any)")
            return candidates
        filters.append(f"kind:{wanted}")
        return [location for location in candidates if location.kind == wanted]

    def filter_by_capacity(self, candidates: list[Location], requested: int) -> list[Location]:
        kept = []
        for location in candidates:
            actual = effective_capacity(location)
            if actual is None or actual >= requested:
                kept.append(location)
        return kept

    def filter_by_hints(
        self,
        candidates: list[Location],
        hints: tuple[str, ...],
        filters: list[str],
    ) -> list[Location]:
        lowered = [hint.lower() for hint in hints]
        kept = [
            location
            for location in candidates
            if any(hint in location.search_text for hint in lowered)
        ]
        if not kept and candidates:
            logger.info("No candidate matched location hints; keeping all | hints=%s", hints)
            filters.append("hints:relaxed")
            return candidates
        filters.append("hints:" + ",".join(hints))
        return kept

    def filter_by_facilities(
        self,
        candidates: list[Location],
        terms: tuple[str, ...],
    ) -> list[Location]:
        return [
            location
            for location in candidates
            if self._matcher.match_all(terms, location.facilities)
        ]
