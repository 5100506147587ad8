"""HTTP controller layer for space search."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from roomfinder.controllers.dependencies import get_search_service
from roomfinder.domain.models import Location, SearchRequest
from roomfinder.services.search_service import (
    DirectoryUnavailableError,
    LocationSearchService,
    SearchValidationError,
)
from roomfinder.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["search"])


class SearchRequestBody(BaseModel):
    """Input DTO validated before entering service layer."""

    query: Optional[str] = None
    capacity: Optional[int] = None
    requirements: list[str] = Field(default_factory=list)
    location_kind: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    duration: Optional[int] = None
    category: Optional[str] = None
    parent_location_id: Optional[int] = None
    limit: Optional[int] = None
    intent: Optional[str] = None

    @field_validator("requirements")
    @classmethod
    def strip_blank_requirements(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item and item.strip()]

    def to_domain(self) -> SearchRequest:
        return SearchRequest(
            query=self.query,
            capacity=self.capacity,
            requirements=tuple(self.requirements),
            location_kind=self.location_kind,
            date_from=self.date_from,
            date_to=self.date_to,
            duration=self.duration,
            category=self.category,
            parent_location_id=self.parent_location_id,
            limit=self.limit,
            intent=self.intent,
        )


class FacilitySearchBody(BaseModel):
    facilities: list[str] = Field(min_length=1)
    limit: Optional[int] = None


class FacilityResponse(BaseModel):
    name: str
    category: Optional[str] = None


class LocationResponse(BaseModel):
    id: int
    name: str
    kind: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    qualified_name: Optional[str] = None
    description: Optional[str] = None
    facilities: list[FacilityResponse] = Field(default_factory=list)


class FacilityMatchResponse(BaseModel):
    facility: str
    match_type: str
    score: float = Field(ge=0.0, le=100.0)
    search_term: str


class CapacityInfoResponse(BaseModel):
    requested: int
    actual: Optional[int] = None
    is_match: bool


class AvailabilitySlotResponse(BaseModel):
    start: str
    end: str


class AvailabilityResponse(BaseModel):
    is_available: bool
    available_slots: list[AvailabilitySlotResponse] = Field(default_factory=list)
    checked: bool = True
    note: Optional[str] = None


class FacilityInfoResponse(BaseModel):
    amenities: list[str] = Field(default_factory=list)
    screen_size: Optional[str] = None
    features: list[str] = Field(default_factory=list)
    matched_facilities: list[str] = Field(default_factory=list)


class ScoredLocationResponse(BaseModel):
    location: LocationResponse
    score: float = Field(ge=0.0)
    match_details: list[str]
    facility_matches: list[FacilityMatchResponse]
    capacity_info: Optional[CapacityInfoResponse] = None
    availability: Optional[AvailabilityResponse] = None
    facility_info: Optional[FacilityInfoResponse] = None


class SearchMetadataResponse(BaseModel):
    search_time: float = Field(ge=0.0)
    locations_searched: int = Field(ge=0)
    availability_checked: int = Field(ge=0)
    applied_filters: list[str]
    strategy: str


class SearchResponseBody(BaseModel):
    results: list[ScoredLocationResponse]
    total_matches: int = Field(ge=0)
    metadata: SearchMetadataResponse
    suggestions: list[str]


class FacilitySearchResponse(BaseModel):
    locations: list[LocationResponse]


class FacilityListResponse(BaseModel):
    facilities: list[str]
    count: int = Field(ge=0)


class LocationLookupResponse(BaseModel):
    query: str
    locations: list[LocationResponse]


def _bad_request(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _directory_unavailable(exc: Exception) -> HTTPException:
    logger.warning("Location directory unavailable | error=%s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Location directory unavailable",
    )


def _location_response(location: Location) -> LocationResponse:
    return LocationResponse(
        id=location.id,
        name=location.name,
        kind=location.kind,
        capacity=location.capacity,
        qualified_name=location.qualified_name,
        description=location.description,
        facilities=[
            FacilityResponse(name=item.name, category=item.category)
            for item in location.facilities
        ],
    )


@router.post(
    "/search",
    response_model=SearchResponseBody,
    status_code=status.HTTP_200_OK,
)
async def search(
    payload: SearchRequestBody,
    service: LocationSearchService = Depends(get_search_service),
) -> SearchResponseBody:
    """Rank locations for a free-text query, structured fields, or both."""
    try:
        result = service.search(payload.to_domain())
        return SearchResponseBody(**result.to_dict())
    except SearchValidationError as exc:
        raise _bad_request(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected search failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run search",
        ) from exc


@router.get(
    "/search",
    response_model=SearchResponseBody,
    status_code=status.HTTP_200_OK,
)
async def search_by_query(
    q: str = Query(default=""),
    limit: Optional[int] = Query(default=None),
    service: LocationSearchService = Depends(get_search_service),
) -> SearchResponseBody:
    """Free-text search ranked with the weighted strategy."""
    try:
        result = service.search_by_query(q, limit=limit)
        return SearchResponseBody(**result.to_dict())
    except SearchValidationError as exc:
        raise _bad_request(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected query search failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run search",
        ) from exc


@router.post(
    "/search/facilities",
    response_model=FacilitySearchResponse,
    status_code=status.HTTP_200_OK,
)
async def find_locations_with_facilities(
    payload: FacilitySearchBody,
    service: LocationSearchService = Depends(get_search_service),
) -> FacilitySearchResponse:
    try:
        locations = service.find_locations_with_facilities(payload.facilities, payload.limit)
        return FacilitySearchResponse(
            locations=[_location_response(location) for location in locations]
        )
    except SearchValidationError as exc:
        raise _bad_request(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected facility search failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to find locations",
        ) from exc


@router.get(
    "/facilities",
    response_model=FacilityListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_available_facilities(
    parent_location_id: Optional[int] = Query(default=None),
    service: LocationSearchService = Depends(get_search_service),
) -> FacilityListResponse:
    """Facility names that can be used as search requirements."""
    try:
        facilities = service.list_available_facilities(parent_location_id)
        return FacilityListResponse(facilities=facilities, count=len(facilities))
    except DirectoryUnavailableError as exc:
        raise _directory_unavailable(exc) from exc


@router.get(
    "/locations",
    response_model=LocationLookupResponse,
    status_code=status.HTTP_200_OK,
)
async def find_location_by_name(
    name: str = Query(default=""),
    search_type: str = Query(default="any"),
    parent_location_id: Optional[int] = Query(default=None),
    service: LocationSearchService = Depends(get_search_service),
) -> LocationLookupResponse:
    try:
        locations = service.find_location_by_name(name, search_type, parent_location_id)
        return LocationLookupResponse(
            query=name,
            locations=[_location_response(location) for location in locations],
        )
    except SearchValidationError as exc:
        raise _bad_request(exc) from exc
    except DirectoryUnavailableError as exc:
        raise _directory_unavailable(exc) from exc
