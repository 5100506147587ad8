"""Turns a free-text space request into a canonical requirement set.

Parsing is best effort: anything the patterns do not recognise is simply left
out of the result. Nothing in this module raises on user input and nothing
performs I/O, so ``parse`` is deterministic for a fixed ``reference_time``.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, Optional

from roomfinder.domain.models import ParsedRequirements, SearchRequest, TimeConstraints
from roomfinder.domain.vocabulary import DEFAULT_VOCABULARY, FacilityVocabulary
from roomfinder.utils.config import Settings, get_settings
from roomfinder.utils.logger import get_logger
from roomfinder.utils.timestamps import format_timestamp, parse_timestamp


logger = get_logger(__name__)

_DURATION_OR_UNIT = r"(?!\s*(?:hours?|hrs?|h\b|minutes?|mins?|[\"'”]|inch|am\b|pm\b|:|\.\d))"

# Tried in order; the first pattern that yields a positive number wins.
_CAPACITY_PATTERNS = (
    re.compile(r"(\d+)\s*people\b", re.IGNORECASE),
    re.compile(r"(\d+)\s*persons?\b", re.IGNORECASE),
    re.compile(r"(\d+)\s*attendees?\b", re.IGNORECASE),
    re.compile(r"capacity\s+(?:of\s+)?(\d+)", re.IGNORECASE),
    re.compile(r"space\s+for\s+(\d+)", re.IGNORECASE),
    re.compile(r"seats?\s+(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s*seats?\b", re.IGNORECASE),
    re.compile(r"\bfor\s+(\d+)\b" + _DURATION_OR_UNIT, re.IGNORECASE),
)

_SCREEN_SIZE_PATTERN = re.compile(
    r"(\d{1,3})\s*(?:[\"'”]|-?\s*inch(?:es)?)\s*(?:screens?|monitors?|displays?|tvs?)\b",
    re.IGNORECASE,
)

_LOCATION_HINT_PATTERNS = (
    re.compile(
        r"\b(?:\d+(?:st|nd|rd|th)|ground|first|second|third|fourth|fifth|top)\s+floor\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:floor|level)\s+\d+\b", re.IGNORECASE),
    re.compile(r"\bbuilding\s+(?:[a-z]|\d+)\b", re.IGNORECASE),
    re.compile(r"\b(?:main|north|south|east|west|new|old)\s+building\b", re.IGNORECASE),
    re.compile(r"\b(?:zone|wing|block)\s+(?:[a-z]|\d+)\b", re.IGNORECASE),
    re.compile(r"\b(?:north|south|east|west)\s+wing\b", re.IGNORECASE),
    re.compile(r"\broom\s+[a-z]?\d+(?:\.\d+)?[a-z]?\b", re.IGNORECASE),
)

_EXPLICIT_DATE_PATTERN = re.compile(r"\bon\s+(\d{4}-\d{2}-\d{2})\b", re.IGNORECASE)
_TOMORROW_PATTERN = re.compile(r"\btomorrow\b", re.IGNORECASE)
_TODAY_PATTERN = re.compile(r"\b(?:today|now)\b", re.IGNORECASE)
_HOURS_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(?:hours?|hrs?)\b", re.IGNORECASE)
_MINUTES_PATTERN = re.compile(r"(\d+)\s*(?:minutes?|mins?)\b", re.IGNORECASE)


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        cleaned = value.strip()
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        ordered.append(cleaned)
    return tuple(ordered)


class RequirementParser:
    """Extracts capacity, facilities, hints, category and timing from text."""

    def __init__(
        self,
        vocabulary: FacilityVocabulary = DEFAULT_VOCABULARY,
        settings: Optional[Settings] = None,
    ) -> None:
        self._vocabulary = vocabulary
        self._settings = settings or get_settings()

    def parse(
        self,
        query: str,
        reference_time: Optional[datetime] = None,
    ) -> ParsedRequirements:
        text = query or ""
        requirements = ParsedRequirements(
            capacity=self.extract_capacity(text),
            facilities=self.extract_facilities(text),
            location_hints=self.extract_location_hints(text),
            category=self.infer_category(text),
            time_constraints=self.extract_time_constraints(text, reference_time),
            original_query=text,
        )
        logger.debug(
            "Query parsed | capacity=%s | facilities=%s | hints=%s | category=%s",
            requirements.capacity,
            requirements.facilities,
            requirements.location_hints,
            requirements.category,
        )
        return requirements

    def extract_capacity(self, text: str) -> Optional[int]:
        for pattern in _CAPACITY_PATTERNS:
            match = pattern.search(text)
            if match is None:
                continue
            value = int(match.group(1))
            if value > 0:
                return value
        return None

    def extract_facilities(self, text: str) -> tuple[str, ...]:
        lowered = text.lower()
        found = [
            canonical
            for canonical, triggers in self._vocabulary.keywords.items()
            if any(trigger in lowered for trigger in triggers)
        ]
        for match in _SCREEN_SIZE_PATTERN.finditer(text):
            found.append(f'{int(match.group(1))}" screen')
        return _dedupe(found)

    def extract_location_hints(self, text: str) -> tuple[str, ...]:
        spans: list[tuple[int, int, str]] = []
        for pattern in _LOCATION_HINT_PATTERNS:
            for match in pattern.finditer(text):
                spans.append((match.start(), match.end(), match.group(0)))
        spans.sort(key=lambda item: (item[0], -item[1]))

        hints: list[str] = []
        last_end = -1
        for start, end, fragment in spans:
            if start < last_end:
                continue
            hints.append(fragment)
            last_end = end
        return _dedupe(hints)

    def infer_category(self, text: str) -> Optional[str]:
        lowered = text.lower()
        for category, keywords in self._vocabulary.booking_categories.items():
            if any(keyword in lowered for keyword in keywords):
                return category
        return None

    def extract_duration(self, text: str) -> Optional[int]:
        hours = _HOURS_PATTERN.search(text)
        if hours is not None:
            minutes = int(round(float(hours.group(1)) * 60))
            return minutes if minutes > 0 else None
        minutes_match = _MINUTES_PATTERN.search(text)
        if minutes_match is not None:
            minutes = int(minutes_match.group(1))
            return minutes if minutes > 0 else None
        return None

    def extract_time_constraints(
        self,
        text: str,
        reference_time: Optional[datetime] = None,
    ) -> TimeConstraints:
        duration = self.extract_duration(text)

        explicit = _EXPLICIT_DATE_PATTERN.search(text)
        if explicit is not None:
            try:
                day = datetime.strptime(explicit.group(1), "%Y-%m-%d")
            except ValueError:
                day = None
            if day is not None:
                start = day.replace(hour=self._settings.default_day_start_hour)
                end = day.replace(hour=self._settings.default_day_end_hour)
                return TimeConstraints(
                    date_from=format_timestamp(start),
                    date_to=format_timestamp(end),
                    duration=duration,
                )

        now = reference_time or datetime.now()
        span = timedelta(minutes=duration or self._settings.default_duration_minutes)
        if _TOMORROW_PATTERN.search(text):
            start = (now + timedelta(days=1)).replace(
                hour=self._settings.default_day_start_hour,
                minute=0,
                second=0,
                microsecond=0,
            )
            return TimeConstraints(
                date_from=format_timestamp(start),
                date_to=format_timestamp(start + span),
                duration=duration,
            )
        if _TODAY_PATTERN.search(text):
            return TimeConstraints(
                date_from=format_timestamp(now),
                date_to=format_timestamp(now + span),
                duration=duration,
            )
        return TimeConstraints(duration=duration)

    def merge(
        self,
        request: SearchRequest,
        parsed: Optional[ParsedRequirements] = None,
    ) -> ParsedRequirements:
        """Combine structured fields with parsed values; explicit fields win."""
        base = parsed or ParsedRequirements()
        explicit = _dedupe(request.requirements)
        parsed_time = base.time_constraints

        date_from = request.date_from or parsed_time.date_from
        date_to = request.date_to or parsed_time.date_to
        duration = request.duration if request.duration is not None else parsed_time.duration
        if request.date_from and not request.date_to and duration:
            start = parse_timestamp(request.date_from)
            if start is not None:
                date_to = format_timestamp(start + timedelta(minutes=duration))

        return replace(
            base,
            capacity=request.capacity if request.capacity is not None else base.capacity,
            facilities=_dedupe((*explicit, *base.facilities)),
            category=request.category or base.category,
            time_constraints=TimeConstraints(
                date_from=date_from,
                date_to=date_to,
                duration=duration,
            ),
            original_query=request.query or base.original_query,
            explicit_facilities=explicit,
        )
