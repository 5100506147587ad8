"""Domain models for requirement parsing, candidate scoring and search responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


MATCH_EXACT = "exact"
MATCH_PARTIAL = "partial"
MATCH_RELATED = "related"

INTENT_GENERAL = "general"
INTENT_BEST_FIT = "best_fit"


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _record_id(record: Any) -> Optional[int]:
    if isinstance(record, Location):
        return record.id
    return _optional_int(record.get("id"))


@dataclass(frozen=True)
class Facility:
    name: str
    category: Optional[str] = None
    text: Optional[str] = None

    @property
    def label(self) -> str:
        return self.text or self.name

    @classmethod
    def from_record(cls, record: Any) -> "Facility":
        if isinstance(record, Facility):
            return record
        if isinstance(record, str):
            return cls(name=record)
        name = record.get("name") or record.get("text") or ""
        return cls(
            name=str(name),
            category=record.get("category"),
            text=record.get("text"),
        )


@dataclass(frozen=True)
class Location:
    """A node of the location tree supplied by the directory collaborator."""

    id: int
    name: str
    kind: Optional[str] = None
    capacity: Optional[int] = None
    facilities: tuple[Facility, ...] = ()
    qualified_name: Optional[str] = None
    description: Optional[str] = None
    locations: tuple["Location", ...] = ()
    is_bookable: bool = True

    @property
    def search_text(self) -> str:
        """Lowercased text that location hints are matched against."""
        parts = [self.name, self.description or "", self.qualified_name or ""]
        return " ".join(part for part in parts if part).lower()

    @classmethod
    def from_record(cls, record: Any, ancestors: frozenset[int] = frozenset()) -> "Location":
        """Build a location from a collaborator record (camelCase or snake_case).

        A child whose id already appears on its own ancestor path is dropped,
        so cyclic payloads terminate.
        """
        if isinstance(record, Location):
            return record
        location_id = int(record["id"])
        lineage = ancestors | {location_id}
        children = record.get("locations") or record.get("children") or ()
        capacity = _optional_int(record.get("capacity"))
        if capacity is not None and capacity < 0:
            capacity = None
        is_bookable = record.get("isBookable", record.get("is_bookable", True))
        return cls(
            id=location_id,
            name=str(record.get("name") or ""),
            kind=(str(record["kind"]).upper() if record.get("kind") else None),
            capacity=capacity,
            facilities=tuple(
                Facility.from_record(item) for item in (record.get("facilities") or ())
            ),
            qualified_name=record.get("qualifiedName") or record.get("qualified_name"),
            description=record.get("description"),
            locations=tuple(
                cls.from_record(child, lineage)
                for child in children
                if _record_id(child) not in lineage
            ),
            is_bookable=bool(is_bookable) if is_bookable is not None else True,
        )


@dataclass(frozen=True)
class TimeConstraints:
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    duration: Optional[int] = None

    @property
    def has_window(self) -> bool:
        return bool(self.date_from and self.date_to)


@dataclass(frozen=True)
class SearchRequest:
    query: Optional[str] = None
    capacity: Optional[int] = None
    requirements: tuple[str, ...] = ()
    location_kind: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    duration: Optional[int] = None
    category: Optional[str] = None
    parent_location_id: Optional[int] = None
    limit: Optional[int] = None
    intent: Optional[str] = None

    @property
    def has_structured_fields(self) -> bool:
        return any(
            value is not None and value != ()
            for value in (
                self.capacity,
                self.requirements,
                self.location_kind,
                self.date_from,
                self.date_to,
                self.duration,
                self.category,
                self.parent_location_id,
            )
        )


@dataclass(frozen=True)
class ParsedRequirements:
    capacity: Optional[int] = None
    facilities: tuple[str, ...] = ()
    location_hints: tuple[str, ...] = ()
    category: Optional[str] = None
    time_constraints: TimeConstraints = field(default_factory=TimeConstraints)
    original_query: str = ""
    explicit_facilities: tuple[str, ...] = ()


@dataclass(frozen=True)
class FacilityMatch:
    facility: Facility
    match_type: str
    score: float
    search_term: str


@dataclass(frozen=True)
class FacilityMetadata:
    """Type, size and feature tags read out of one facility's free text."""

    type: str
    size: Optional[str] = None
    features: tuple[str, ...] = ()


@dataclass(frozen=True)
class FacilityInfo:
    """Facility summary attached to each scored result."""

    amenities: tuple[str, ...] = ()
    screen_size: Optional[str] = None
    features: tuple[str, ...] = ()
    matched_facilities: tuple[str, ...] = ()


@dataclass(frozen=True)
class CapacityInfo:
    requested: int
    actual: Optional[int]
    is_match: bool


@dataclass(frozen=True)
class AvailabilitySlot:
    start: str
    end: str


@dataclass(frozen=True)
class AvailabilityInfo:
    is_available: bool
    available_slots: tuple[AvailabilitySlot, ...] = ()
    checked: bool = True
    note: Optional[str] = None


@dataclass(frozen=True)
class ScoreComponents:
    """Raw per-candidate inputs a ranking strategy folds into one score."""

    facility_score: Optional[float] = None
    requested_capacity: Optional[int] = None
    actual_capacity: Optional[int] = None
    hint_score: float = 50.0
    has_hints: bool = False
    available: Optional[bool] = None


@dataclass(frozen=True)
class ScoredCandidate:
    location: Location
    score: float
    match_details: tuple[str, ...] = ()
    facility_matches: tuple[FacilityMatch, ...] = ()
    capacity_info: Optional[CapacityInfo] = None
    availability: Optional[AvailabilityInfo] = None
    components: ScoreComponents = field(default_factory=ScoreComponents)
    facility_info: Optional[FacilityInfo] = None


@dataclass(frozen=True)
class SearchMetadata:
    search_time: float
    locations_searched: int
    availability_checked: int
    applied_filters: tuple[str, ...]
    strategy: str


@dataclass(frozen=True)
class SearchResponse:
    results: tuple[ScoredCandidate, ...]
    total_matches: int
    metadata: SearchMetadata
    suggestions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [_candidate_to_dict(item) for item in self.results],
            "total_matches": self.total_matches,
            "metadata": {
                "search_time": self.metadata.search_time,
                "locations_searched": self.metadata.locations_searched,
                "availability_checked": self.metadata.availability_checked,
                "applied_filters": list(self.metadata.applied_filters),
                "strategy": self.metadata.strategy,
            },
            "suggestions": list(self.suggestions),
        }


def _location_to_dict(location: Location) -> dict[str, Any]:
    return {
        "id": location.id,
        "name": location.name,
        "kind": location.kind,
        "capacity": location.capacity,
        "qualified_name": location.qualified_name,
        "description": location.description,
        "facilities": [
            {"name": item.name, "category": item.category} for item in location.facilities
        ],
    }


def _candidate_to_dict(candidate: ScoredCandidate) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "location": _location_to_dict(candidate.location),
        "score": candidate.score,
        "match_details": list(candidate.match_details),
        "facility_matches": [
            {
                "facility": match.facility.label,
                "match_type": match.match_type,
                "score": match.score,
                "search_term": match.search_term,
            }
            for match in candidate.facility_matches
        ],
        "capacity_info": None,
        "availability": None,
        "facility_info": None,
    }
    if candidate.capacity_info is not None:
        payload["capacity_info"] = {
            "requested": candidate.capacity_info.requested,
            "actual": candidate.capacity_info.actual,
            "is_match": candidate.capacity_info.is_match,
        }
    if candidate.availability is not None:
        payload["availability"] = {
            "is_available": candidate.availability.is_available,
            "available_slots": [
                {"start": slot.start, "end": slot.end}
                for slot in candidate.availability.available_slots
            ],
            "checked": candidate.availability.checked,
            "note": candidate.availability.note,
        }
    if candidate.facility_info is not None:
        payload["facility_info"] = {
            "amenities": list(candidate.facility_info.amenities),
            "screen_size": candidate.facility_info.screen_size,
            "features": list(candidate.facility_info.features),
            "matched_facilities": list(candidate.facility_info.matched_facilities),
        }
    return payload


def locations_from_payload(payload: Optional[Mapping[str, Any]]) -> list[Location]:
    """Read the ``locations`` list out of a collaborator response."""
    if not payload:
        return []
    return [Location.from_record(record) for record in payload.get("locations") or ()]
