"""Per-term facility matching, the aggregate facility score and facility metadata."""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

from roomfinder.domain.models import (
    MATCH_EXACT,
    MATCH_PARTIAL,
    MATCH_RELATED,
    Facility,
    FacilityInfo,
    FacilityMatch,
    FacilityMetadata,
    Location,
)
from roomfinder.domain.vocabulary import DEFAULT_VOCABULARY, FacilityVocabulary


EXACT_SCORE = 100.0
PARTIAL_SCORE = 75.0
RELATED_SCORE = 50.0
NEUTRAL_FACILITY_SCORE = 100.0

COVERAGE_WEIGHT = 0.7
QUALITY_WEIGHT = 0.3

_SIZE_PATTERN = re.compile(
    r"(\d{1,3})\s*(?:[\"'”]|-?\s*inch(?:es)?)\s*(screen|monitor|tv|display)?",
    re.IGNORECASE,
)


def _screen_size(text: str) -> Optional[int]:
    match = _SIZE_PATTERN.search(text)
    return int(match.group(1)) if match else None


def facility_metadata(
    text: str,
    vocabulary: FacilityVocabulary = DEFAULT_VOCABULARY,
) -> FacilityMetadata:
    """Read size and feature tags out of a free-text facility name.

    ``55" Screen`` gives type ``Screen`` and size ``55"``; a size with no
    display word is typed ``Screen``. Names without a size keep their own
    text as the type.
    """
    match = _SIZE_PATTERN.search(text)
    if match:
        facility_type = match.group(2) or "Screen"
        size: Optional[str] = f'{match.group(1)}"'
    else:
        facility_type = text.strip()
        size = None
    return FacilityMetadata(
        type=facility_type,
        size=size,
        features=tuple(vocabulary.features_in(text)),
    )


class FacilityMatcher:
    """Matches requested facility terms against a location's facility list."""

    def __init__(self, vocabulary: FacilityVocabulary = DEFAULT_VOCABULARY) -> None:
        self._vocabulary = vocabulary

    def facility_category(self, facility: Facility) -> Optional[str]:
        if facility.category:
            return facility.category.lower()
        return self._vocabulary.infer_facility_category(facility.label)

    def _is_related(self, term: str, facility: Facility) -> bool:
        label = facility.label.lower()
        if self._vocabulary.are_related(term, label):
            return True
        term_size = _screen_size(term)
        if term_size is not None and term_size == _screen_size(label):
            return True
        term_category = self._vocabulary.infer_facility_category(term)
        return term_category is not None and term_category == self.facility_category(facility)

    def match(
        self,
        term: str,
        facilities: Sequence[Facility],
    ) -> Optional[FacilityMatch]:
        """Return the first facility satisfying ``term``, or ``None``.

        Each facility is tried in order against exact, partial and related
        rules; the first facility that satisfies any rule wins even if a later
        facility would match more strongly.
        """
        wanted = term.lower().strip()
        if not wanted:
            return None
        for facility in facilities:
            label = facility.label.lower().strip()
            names = {label, facility.name.lower().strip()}
            if wanted in names:
                return FacilityMatch(facility, MATCH_EXACT, EXACT_SCORE, term)
            if any(name and (wanted in name or name in wanted) for name in names):
                return FacilityMatch(facility, MATCH_PARTIAL, PARTIAL_SCORE, term)
            if self._is_related(wanted, facility):
                return FacilityMatch(facility, MATCH_RELATED, RELATED_SCORE, term)
        return None

    def match_all(
        self,
        terms: Iterable[str],
        facilities: Sequence[Facility],
    ) -> tuple[FacilityMatch, ...]:
        matches = []
        for term in terms:
            match = self.match(term, facilities)
            if match is not None:
                matches.append(match)
        return tuple(matches)

    def summarize(
        self,
        facilities: Sequence[Facility],
        matches: Sequence[FacilityMatch] = (),
    ) -> FacilityInfo:
        amenities: set[str] = set()
        features: dict[str, None] = {}
        sizes: list[int] = []
        for facility in facilities:
            for name in self._vocabulary.amenities_in(facility.label):
                amenities.add(name)
            metadata = facility_metadata(facility.label, self._vocabulary)
            for tag in metadata.features:
                features.setdefault(tag)
            size = _screen_size(facility.label)
            if size is not None:
                sizes.append(size)
        return FacilityInfo(
            amenities=tuple(sorted(amenities)),
            screen_size=f'{max(sizes)}"' if sizes else None,
            features=tuple(features),
            matched_facilities=tuple(dict.fromkeys(match.facility.label for match in matches)),
        )


def aggregate_score(required_count: int, matches: Sequence[FacilityMatch]) -> float:
    """0.7 x coverage + 0.3 x mean match score; 100 when nothing was required."""
    if required_count <= 0:
        return NEUTRAL_FACILITY_SCORE
    coverage = min(len(matches), required_count) / required_count * 100.0
    average = sum(match.score for match in matches) / len(matches) if matches else 0.0
    return COVERAGE_WEIGHT * coverage + QUALITY_WEIGHT * average


def known_facility_names(locations: Iterable[Location]) -> list[str]:
    """Distinct facility labels across ``locations``, sorted case-insensitively."""
    names: dict[str, str] = {}
    for location in locations:
        for facility in location.facilities:
            label = facility.label.strip()
            if label:
                names.setdefault(label.lower(), label)
    return sorted(names.values(), key=str.lower)
