"""Search orchestration: parse, fetch, filter, score, rank, overlay, assemble."""

from __future__ import annotations

import re
import time
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from roomfinder.domain.constraints import RankingConfig, validate_ranking_config
from roomfinder.domain.models import (
    INTENT_BEST_FIT,
    INTENT_GENERAL,
    Location,
    ParsedRequirements,
    ScoredCandidate,
    SearchMetadata,
    SearchRequest,
    SearchResponse,
    locations_from_payload,
)
from roomfinder.domain.vocabulary import (
    DEFAULT_VOCABULARY,
    KIND_DESK,
    KIND_DESK_BANK,
    KIND_ROOM,
    FacilityVocabulary,
    booking_category_for_kind,
)
from roomfinder.services.availability_service import AvailabilityOverlay
from roomfinder.services.candidate_filter import CandidateFilter, flatten_locations
from roomfinder.services.collaborators import AvailabilityProvider, LocationProvider
from roomfinder.services.facility_matcher import FacilityMatcher, known_facility_names
from roomfinder.services.ranking_service import Ranker
from roomfinder.services.requirement_parser import RequirementParser
from roomfinder.services.scoring_service import ScoringEngine, build_strategy
from roomfinder.utils.config import Settings, get_settings
from roomfinder.utils.logger import get_logger
from roomfinder.utils.timestamps import parse_timestamp


logger = get_logger(__name__)

_INTENTS = (INTENT_GENERAL, INTENT_BEST_FIT)

_NAME_SEARCH_TYPES = ("any", "room", "desk")
_NAME_PREFIX = re.compile(r"^(?:room|desk)\s+", re.IGNORECASE)
_ROOM_NUMBER = re.compile(r"^\d{3,4}$")
_DESK_NAME = re.compile(r"^(\d{1,2})-([A-Z])$", re.IGNORECASE)
_DESK_BANK_NUMBER = re.compile(r"^\d{1,2}$")


class SearchError(Exception):
    """Base exception for search workflow failures."""


class SearchValidationError(SearchError):
    """Raised when a search request is malformed."""


class DirectoryUnavailableError(SearchError):
    """Raised internally when the location collaborator cannot be read."""


def _validate_timestamp(name: str, value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise SearchValidationError(f"{name} must be an ISO-8601 timestamp")
    return parsed


def _kind_for_name(term: str, search_type: str) -> Optional[str]:
    if search_type == "room" or _ROOM_NUMBER.match(term):
        return KIND_ROOM
    if search_type == "desk" or _DESK_NAME.match(term):
        return KIND_DESK
    if _DESK_BANK_NUMBER.match(term):
        return KIND_DESK_BANK
    return None


def validate_request(request: SearchRequest) -> None:
    if request.limit is not None and request.limit <= 0:
        raise SearchValidationError("limit must be a positive integer")
    if request.capacity is not None and request.capacity <= 0:
        raise SearchValidationError("capacity must be a positive integer")
    if request.duration is not None and request.duration <= 0:
        raise SearchValidationError("duration must be a positive number of minutes")
    if request.intent is not None and request.intent not in _INTENTS:
        raise SearchValidationError(f"intent must be one of {', '.join(_INTENTS)}")
    start = _validate_timestamp("date_from", request.date_from)
    end = _validate_timestamp("date_to", request.date_to)
    if start is not None and end is not None:
        if (start.tzinfo is None) != (end.tzinfo is None):
            start, end = start.replace(tzinfo=None), end.replace(tzinfo=None)
        if end <= start:
            raise SearchValidationError("date_to must be after date_from")


class LocationSearchService:
    """Entry point for space searches over the location directory."""

    def __init__(
        self,
        location_provider: LocationProvider,
        availability_provider: Optional[AvailabilityProvider] = None,
        settings: Optional[Settings] = None,
        vocabulary: FacilityVocabulary = DEFAULT_VOCABULARY,
    ) -> None:
        self._settings = settings or get_settings()
        self._config = RankingConfig.from_settings(self._settings)
        validate_ranking_config(self._config)
        self._location_provider = location_provider
        self._parser = RequirementParser(vocabulary, self._settings)
        self._matcher = FacilityMatcher(vocabulary)
        self._filter = CandidateFilter(self._matcher, self._settings)
        self._overlay = (
            AvailabilityOverlay(availability_provider, self._settings)
            if availability_provider is not None
            else None
        )

    @property
    def parser(self) -> RequirementParser:
        return self._parser

    def search(
        self,
        request: SearchRequest,
        reference_time: Optional[datetime] = None,
    ) -> SearchResponse:
        """Run a search from a free-text query, structured fields, or both."""
        validate_request(request)
        intent = request.intent
        if intent is None:
            intent = (
                INTENT_GENERAL
                if request.query and not request.has_structured_fields
                else INTENT_BEST_FIT
            )
        return self._run(request, intent, reference_time)

    def search_by_query(
        self,
        query: str,
        reference_time: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> SearchResponse:
        """Free-text path ranked with the weighted strategy."""
        if not query or not query.strip():
            raise SearchValidationError("query must be a non-empty string")
        lowered = query.lower()
        kind = None
        if "room" in lowered:
            kind = KIND_ROOM
        elif "desk" in lowered:
            kind = KIND_DESK
        request = SearchRequest(
            query=query,
            location_kind=kind,
            limit=limit,
            intent=INTENT_GENERAL,
        )
        return self.search(request, reference_time)

    def search_locations_by_requirements(self, request: SearchRequest) -> SearchResponse:
        """Structured path ranked with the best-fit strategy."""
        return self.search(replace(request, intent=request.intent or INTENT_BEST_FIT))

    def find_locations_with_facilities(
        self,
        facilities: Iterable[str],
        limit: Optional[int] = None,
    ) -> list[Location]:
        request = SearchRequest(
            requirements=tuple(facilities),
            limit=limit if limit is not None else self._settings.facility_search_limit,
            intent=INTENT_BEST_FIT,
        )
        return [item.location for item in self.search(request).results]

    def list_available_facilities(self, parent_location_id: Optional[int] = None) -> list[str]:
        """Distinct facility names across bookable locations, for discovery.

        Raises ``DirectoryUnavailableError`` when the directory cannot be read.
        """
        locations = self._fetch_locations(ParsedRequirements(), None, parent_location_id)
        names = known_facility_names(locations)
        logger.info(
            "Facilities listed | locations=%s | facilities=%s",
            len(locations),
            len(names),
        )
        return names[: self._settings.facility_list_limit]

    def find_location_by_name(
        self,
        name: str,
        search_type: str = "any",
        parent_location_id: Optional[int] = None,
    ) -> list[Location]:
        """Exact case-insensitive name matches first, then substring matches.

        A leading "room"/"desk" word is ignored. Bare 3-4 digit terms are read
        as room numbers, ``37-A`` style terms as desks and 1-2 digit terms as
        desk banks; ``search_type`` ("room", "desk" or "any") overrides that.
        """
        if not name or not name.strip():
            raise SearchValidationError("name must be a non-empty string")
        if search_type not in _NAME_SEARCH_TYPES:
            raise SearchValidationError(
                f"search_type must be one of {', '.join(_NAME_SEARCH_TYPES)}"
            )
        term = _NAME_PREFIX.sub("", name.strip()).strip() or name.strip()
        kind = _kind_for_name(term, search_type)

        locations = self._fetch_locations(ParsedRequirements(), None, parent_location_id)
        if kind is not None:
            locations = [item for item in locations if (item.kind or "").upper() == kind]

        wanted = term.lower()
        exact: list[Location] = []
        partial: list[Location] = []
        for location in locations:
            candidate = location.name.lower()
            if candidate == wanted:
                exact.append(location)
            elif wanted in candidate:
                partial.append(location)

        logger.info(
            "Name lookup completed | term=%s | kind=%s | exact=%s | partial=%s",
            term,
            kind,
            len(exact),
            len(partial),
        )
        return (exact + partial)[: self._settings.name_search_limit]

    def _fetch_locations(
        self,
        requirements: ParsedRequirements,
        kind: Optional[str],
        parent_id: Optional[int],
    ) -> list[Location]:
        window = requirements.time_constraints
        try:
            if window.has_window:
                category = None
                if kind and kind.upper() != self._settings.meeting_capable_kind.upper():
                    category = booking_category_for_kind(kind)
                payload = self._location_provider.get_all_bookings(
                    category=category,
                    date_from=window.date_from,
                    date_to=window.date_to,
                    parent_location_id=parent_id,
                )
            else:
                payload = self._location_provider.get_location_hierarchy(
                    parent_id=parent_id,
                    include_facilities=True,
                    include_children=True,
                    is_bookable=True,
                )
            return flatten_locations(locations_from_payload(payload))
        except Exception as exc:
            logger.exception("Location lookup failed | parent_id=%s", parent_id)
            raise DirectoryUnavailableError(str(exc)) from exc

    def _run(
        self,
        request: SearchRequest,
        intent: str,
        reference_time: Optional[datetime],
    ) -> SearchResponse:
        started = time.perf_counter()
        applied_filters: list[str] = []

        parsed = self._parser.parse(request.query, reference_time) if request.query else None
        requirements = self._parser.merge(request, parsed)
        strategy = build_strategy(intent, self._config)
        engine = ScoringEngine(strategy, self._matcher)
        ranker = Ranker(strategy, self._settings)
        apply_hints = intent == INTENT_GENERAL and parsed is not None
        parent_scoped = request.parent_location_id is not None

        def _respond(
            results: list[ScoredCandidate],
            total: int,
            searched: list[Location],
            checked: int,
            unavailable: bool = False,
        ) -> SearchResponse:
            elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
            suggestions = ranker.build_suggestions(
                results,
                requirements,
                searched_locations=searched,
                parent_scoped=parent_scoped,
                directory_unavailable=unavailable,
            )
            logger.info(
                (
                    "Search completed | strategy=%s | searched=%s | matches=%s | "
                    "returned=%s | availability_checked=%s | elapsed_ms=%.2f"
                ),
                strategy.name,
                len(searched),
                total,
                len(results),
                checked,
                elapsed_ms,
            )
            return SearchResponse(
                results=tuple(results),
                total_matches=total,
                metadata=SearchMetadata(
                    search_time=elapsed_ms,
                    locations_searched=len(searched),
                    availability_checked=checked,
                    applied_filters=tuple(applied_filters),
                    strategy=strategy.name,
                ),
                suggestions=suggestions,
            )

        try:
            locations = self._fetch_locations(
                requirements, request.location_kind, request.parent_location_id
            )
        except DirectoryUnavailableError:
            if not parent_scoped:
                return _respond([], 0, [], 0, unavailable=True)
            # An unknown or unreachable parent still gets the global retry below.
            logger.warning(
                "Parent-scoped lookup failed | parent_id=%s",
                request.parent_location_id,
            )
            locations = []

        candidates = self._filter.filter(
            locations,
            requirements,
            explicit_kind=request.location_kind,
            apply_hints=apply_hints,
            applied_filters=applied_filters,
        )

        if not candidates and parent_scoped:
            logger.info(
                "No candidates under parent; retrying globally | parent_id=%s",
                request.parent_location_id,
            )
            try:
                locations = self._fetch_locations(requirements, request.location_kind, None)
            except DirectoryUnavailableError:
                return _respond([], 0, [], 0, unavailable=True)
            applied_filters.clear()
            applied_filters.append("scope:global-fallback")
            parent_scoped = False
            candidates = self._filter.filter(
                locations,
                requirements,
                explicit_kind=request.location_kind,
                apply_hints=apply_hints,
                applied_filters=applied_filters,
            )

        ranked = ranker.rank(
            (engine.evaluate(location, requirements) for location in candidates),
            requirements.capacity,
        )

        checked = 0
        window = requirements.time_constraints
        if window.has_window and self._overlay is not None and ranked:
            overlay = self._overlay.apply(ranked, engine, window.date_from, window.date_to)
            ranked = (
                ranker.rank(overlay.checked_candidates, requirements.capacity)
                + overlay.unchecked_candidates
            )
            checked = overlay.checked

        limit = ranker.result_limit(requirements.capacity, len(ranked), request.limit)
        return _respond(ranked[:limit], len(ranked), locations, checked)
