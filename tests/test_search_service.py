"""End-to-end tests for the search pipeline with in-memory collaborators."""

from __future__ import annotations

import time
from dataclasses import replace
from datetime import datetime

import pytest

from roomfinder.domain.models import SearchRequest
from roomfinder.services.availability_service import (
    COULD_NOT_CHECK,
    AvailabilityOverlay,
    normalize_availability,
)
from roomfinder.services.search_service import (
    DirectoryUnavailableError,
    LocationSearchService,
    SearchError,
    SearchValidationError,
)
from roomfinder.utils.config import get_settings


WINDOW_FROM = "2024-06-01T09:00:00.000"
WINDOW_TO = "2024-06-01T10:00:00.000"


def _record(location_id: int, name: str, capacity, facilities=(), kind="ROOM", **extra) -> dict:
    record = {
        "id": location_id,
        "name": name,
        "kind": kind,
        "capacity": capacity,
        "facilities": [{"name": item} for item in facilities],
        "isBookable": True,
        "locations": [],
    }
    record.update(extra)
    return record


class FakeDirectory:
    """Serves a flat list of locations, optionally scoped by parent id."""

    def __init__(self, locations, by_parent=None, fail: bool = False, missing_parents=()) -> None:
        self.locations = locations
        self.by_parent = by_parent or {}
        self.fail = fail
        self.missing_parents = set(missing_parents)
        self.calls: list[tuple[str, object]] = []

    def _scoped(self, parent_id):
        if self.fail:
            raise ConnectionError("directory unreachable")
        if parent_id in self.missing_parents:
            raise LookupError(f"Unknown parent location: {parent_id}")
        if parent_id is None:
            return {"locations": self.locations}
        return {"locations": self.by_parent.get(parent_id, [])}

    def get_location_hierarchy(
        self,
        parent_id=None,
        include_facilities=True,
        include_children=True,
        is_bookable=True,
    ):
        self.calls.append(("hierarchy", parent_id))
        return self._scoped(parent_id)

    def get_all_bookings(self, category=None, date_from=None, date_to=None, parent_location_id=None):
        self.calls.append(("bookings", parent_location_id))
        return self._scoped(parent_location_id)


class FakeAvailability:
    def __init__(self, failing=(), busy=(), slow=(), delay: float = 0.0) -> None:
        self.failing = set(failing)
        self.busy = set(busy)
        self.slow = set(slow)
        self.delay = delay
        self.checked: list[int] = []

    def check_availability(self, location_id, date_from, date_to, booking_category=None):
        self.checked.append(location_id)
        if location_id in self.slow:
            time.sleep(self.delay)
        if location_id in self.failing:
            raise TimeoutError("availability backend timed out")
        if location_id in self.busy:
            return {"available": []}
        return {"available": [{"timeFrom": date_from, "timeTo": date_to}]}


@pytest.fixture()
def settings():
    get_settings.cache_clear()
    return get_settings()


def _office() -> list[dict]:
    return [
        _record(1, "Meeting Room 1.01", 4, ["Whiteboard"], description="Ground floor"),
        _record(2, "Meeting Room 2.01", 6, ["Whiteboard", '55" Screen'], description="2nd floor"),
        _record(3, "Meeting Room 2.02", 8, ["Projector"], description="2nd floor"),
        _record(4, "Boardroom", 12, ["Projector", "Whiteboard"], description="3rd floor"),
        _record(5, "Training Room", 20, ["Projector"], description="3rd floor"),
        _record(6, "Desk A1", None, ["Adjustable Desk"], kind="DESK", description="Ground floor"),
    ]


def test_zero_survivors_returns_suggestions(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    response = service.search(SearchRequest(capacity=50))

    assert response.results == ()
    assert response.total_matches == 0
    assert response.suggestions
    assert response.metadata.locations_searched == 6


def test_capacity_search_truncates_to_three(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    response = service.search(SearchRequest(capacity=6))

    assert response.metadata.strategy == "best_fit"
    assert response.total_matches == 4
    assert len(response.results) == 3
    assert [item.location.id for item in response.results] == [2, 3, 4]
    assert response.total_matches >= len(response.results)


def test_explicit_limit_overrides_truncation(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    response = service.search(SearchRequest(capacity=6, limit=4))

    assert len(response.results) == 4


def test_query_only_search_uses_weighted_strategy(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    response = service.search(SearchRequest(query="room for 6 people with a whiteboard"))

    assert response.metadata.strategy == "general"
    assert response.results[0].location.id == 2
    assert response.results[0].score == pytest.approx(100.0)


def test_exact_capacity_match_needs_no_suggestions(settings) -> None:
    service = LocationSearchService(
        FakeDirectory([_record(2, "Meeting Room 2.01", 6, ["Whiteboard"])]),
        settings=settings,
    )

    response = service.search_by_query("room for 6 people")

    assert [item.location.id for item in response.results] == [2]
    assert response.results[0].score == pytest.approx(100.0)
    assert response.suggestions == ()


def test_search_by_query_infers_room_kind(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    response = service.search_by_query("desk or room with adjustable desk")

    assert "kind:ROOM" in response.metadata.applied_filters
    assert all(item.location.kind == "ROOM" for item in response.results)


def test_search_by_query_applies_location_hints(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    response = service.search_by_query("room with a projector on the 3rd floor")

    assert {item.location.id for item in response.results} == {4, 5}
    assert "hints:3rd floor" in response.metadata.applied_filters


def test_structured_facilities_filter_candidates(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    response = service.search_locations_by_requirements(
        SearchRequest(requirements=("projector",), capacity=8)
    )

    assert [item.location.id for item in response.results] == [3, 4, 5]
    assert "facilities:projector" in response.metadata.applied_filters


def test_one_failing_availability_lookup_is_isolated(settings) -> None:
    availability = FakeAvailability(failing={3})
    service = LocationSearchService(
        FakeDirectory(_office()[:3]),
        availability_provider=availability,
        settings=settings,
    )

    response = service.search(
        SearchRequest(capacity=4, date_from=WINDOW_FROM, date_to=WINDOW_TO)
    )

    by_id = {item.location.id: item for item in response.results}
    assert sorted(availability.checked) == [1, 2, 3]
    assert response.metadata.availability_checked == 3
    assert by_id[1].availability.is_available
    assert by_id[2].availability.is_available
    failed = by_id[3].availability
    assert not failed.is_available
    assert not failed.checked
    assert COULD_NOT_CHECK in failed.note
    assert any(COULD_NOT_CHECK in detail for detail in by_id[3].match_details)
    assert [item.location.id for item in response.results] == [1, 2, 3]


def test_availability_checks_share_one_deadline(settings) -> None:
    availability = FakeAvailability(slow={1, 2, 3, 4, 5}, delay=1.5)
    service = LocationSearchService(
        FakeDirectory(_office()[:5]),
        availability_provider=availability,
        settings=replace(settings, availability_timeout_seconds=0.25),
    )

    started = time.perf_counter()
    response = service.search(
        SearchRequest(capacity=4, limit=5, date_from=WINDOW_FROM, date_to=WINDOW_TO)
    )
    elapsed = time.perf_counter() - started

    assert elapsed < 0.9
    assert len(response.results) == 5
    for item in response.results:
        assert not item.availability.checked
        assert "timed out" in item.availability.note


def test_slow_lookup_times_out_without_blocking_the_rest(settings) -> None:
    availability = FakeAvailability(slow={3}, delay=1.5)
    service = LocationSearchService(
        FakeDirectory(_office()[:3]),
        availability_provider=availability,
        settings=replace(settings, availability_timeout_seconds=0.5),
    )

    response = service.search(
        SearchRequest(capacity=4, date_from=WINDOW_FROM, date_to=WINDOW_TO)
    )

    by_id = {item.location.id: item for item in response.results}
    assert by_id[1].availability.checked and by_id[1].availability.is_available
    assert by_id[2].availability.checked and by_id[2].availability.is_available
    assert not by_id[3].availability.checked
    assert by_id[3].availability.note == f"{COULD_NOT_CHECK} (timed out)"
    assert "⚠ Could not check availability (timed out)" in by_id[3].match_details


def test_availability_cap_leaves_tail_unchecked_and_in_order(settings) -> None:
    availability = FakeAvailability(busy={1, 2})
    service = LocationSearchService(
        FakeDirectory(_office()[:4]),
        availability_provider=availability,
        settings=replace(settings, availability_check_limit=2),
    )

    response = service.search(
        SearchRequest(capacity=4, limit=4, date_from=WINDOW_FROM, date_to=WINDOW_TO)
    )

    assert sorted(availability.checked) == [1, 2]
    assert response.metadata.availability_checked == 2
    assert [item.location.id for item in response.results] == [1, 2, 3, 4]
    assert response.results[2].score > response.results[1].score
    assert response.results[2].availability is None
    assert response.results[3].availability is None


def test_overlay_check_without_candidates_makes_no_lookups(settings) -> None:
    availability = FakeAvailability()
    overlay = AvailabilityOverlay(availability, settings)

    assert overlay.check([], WINDOW_FROM, WINDOW_TO) == {}
    assert availability.checked == []


def test_unavailable_candidates_drop_below_free_ones(settings) -> None:
    availability = FakeAvailability(busy={2})
    service = LocationSearchService(
        FakeDirectory(_office()[:3]),
        availability_provider=availability,
        settings=settings,
    )

    response = service.search(
        SearchRequest(capacity=6, date_from=WINDOW_FROM, date_to=WINDOW_TO)
    )

    assert [item.location.id for item in response.results] == [3, 2]
    assert response.results[1].score == pytest.approx(0.6)


def test_time_window_fetches_bookings(settings) -> None:
    directory = FakeDirectory(_office())
    service = LocationSearchService(directory, settings=settings)

    service.search(SearchRequest(query="room for 4 people tomorrow"), reference_time=datetime(2024, 6, 3))

    assert directory.calls == [("bookings", None)]


def test_directory_outage_returns_empty_response(settings) -> None:
    service = LocationSearchService(FakeDirectory([], fail=True), settings=settings)

    response = service.search(SearchRequest(query="room for 4 people"))

    assert response.results == ()
    assert response.total_matches == 0
    assert any("retry" in item for item in response.suggestions)


def test_parent_scope_falls_back_to_global_search(settings) -> None:
    directory = FakeDirectory(_office(), by_parent={100: [_record(7, "Tiny Pod", 1, kind="POD")]})
    service = LocationSearchService(directory, settings=settings)

    response = service.search(SearchRequest(capacity=10, parent_location_id=100))

    assert directory.calls == [("hierarchy", 100), ("hierarchy", None)]
    assert response.metadata.applied_filters[0] == "scope:global-fallback"
    assert [item.location.id for item in response.results] == [4, 5]


def test_unknown_parent_falls_back_to_global_search(settings) -> None:
    directory = FakeDirectory(_office(), missing_parents={999})
    service = LocationSearchService(directory, settings=settings)

    response = service.search(SearchRequest(capacity=12, parent_location_id=999))

    assert directory.calls == [("hierarchy", 999), ("hierarchy", None)]
    assert response.metadata.applied_filters[0] == "scope:global-fallback"
    assert [item.location.id for item in response.results] == [4, 5]
    assert not any("retry" in item for item in response.suggestions)


def test_outage_after_parent_failure_is_reported(settings) -> None:
    directory = FakeDirectory(_office(), fail=True)
    service = LocationSearchService(directory, settings=settings)

    response = service.search(SearchRequest(capacity=4, parent_location_id=100))

    assert directory.calls == [("hierarchy", 100), ("hierarchy", None)]
    assert response.results == ()
    assert any("retry" in item for item in response.suggestions)


def test_find_locations_with_facilities(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    locations = service.find_locations_with_facilities(["projector"])

    ids = [location.id for location in locations]
    assert ids[:3] == [3, 4, 5]
    assert 1 not in ids


def test_results_carry_facility_info(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    response = service.search(SearchRequest(capacity=6, requirements=("whiteboard",)))

    top = response.results[0]
    assert top.location.id == 2
    assert top.facility_info.amenities == ("screen", "whiteboard")
    assert top.facility_info.screen_size == '55"'
    assert top.facility_info.matched_facilities == ("Whiteboard",)
    assert response.to_dict()["results"][0]["facility_info"]["screen_size"] == '55"'


def test_list_available_facilities_is_sorted_and_distinct(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    facilities = service.list_available_facilities()

    assert facilities == ['55" Screen', "Adjustable Desk", "Projector", "Whiteboard"]


def test_list_available_facilities_respects_limit(settings) -> None:
    service = LocationSearchService(
        FakeDirectory(_office()),
        settings=replace(settings, facility_list_limit=2),
    )

    assert service.list_available_facilities() == ['55" Screen', "Adjustable Desk"]


def test_list_available_facilities_reports_outage(settings) -> None:
    service = LocationSearchService(FakeDirectory([], fail=True), settings=settings)

    with pytest.raises(DirectoryUnavailableError):
        service.list_available_facilities()


def test_find_location_by_name_prefers_exact_matches(settings) -> None:
    directory = FakeDirectory([_record(7, "Boardroom Annex", 20), _record(4, "Boardroom", 12)])
    service = LocationSearchService(directory, settings=settings)

    locations = service.find_location_by_name("boardroom")

    assert [location.id for location in locations] == [4, 7]


@pytest.mark.parametrize(
    ("name", "search_type", "expected"),
    [
        ("Meeting Room 2", "any", [2, 3]),
        ("Room 2.01", "any", [2]),
        ("desk A1", "desk", [6]),
        ("A1", "room", []),
    ],
)
def test_find_location_by_name_strips_prefix_and_filters_kind(
    settings, name: str, search_type: str, expected: list[int]
) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    locations = service.find_location_by_name(name, search_type)

    assert [location.id for location in locations] == expected


@pytest.mark.parametrize(("name", "search_type"), [("  ", "any"), ("Boardroom", "pod")])
def test_find_location_by_name_rejects_bad_input(settings, name: str, search_type: str) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    with pytest.raises(SearchValidationError):
        service.find_location_by_name(name, search_type)


@pytest.mark.parametrize(
    "request_",
    [
        SearchRequest(query="room", limit=-1),
        SearchRequest(query="room", limit=0),
        SearchRequest(capacity=0),
        SearchRequest(query="room", intent="cheapest"),
        SearchRequest(date_from="next tuesday", date_to=WINDOW_TO),
        SearchRequest(date_from=WINDOW_TO, date_to=WINDOW_FROM),
    ],
)
def test_invalid_requests_raise(settings, request_: SearchRequest) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    with pytest.raises(SearchValidationError):
        service.search(request_)


def test_empty_query_raises(settings) -> None:
    service = LocationSearchService(FakeDirectory(_office()), settings=settings)

    with pytest.raises(SearchError):
        service.search_by_query("   ")


def test_invalid_weights_fail_at_construction(settings) -> None:
    broken = replace(settings, facility_weight=0.9)

    with pytest.raises(ValueError):
        LocationSearchService(FakeDirectory(_office()), settings=broken)


def test_normalize_availability_accepts_slots_and_flags() -> None:
    slots = normalize_availability(
        {"available": [{"from": WINDOW_FROM, "to": WINDOW_TO}, {"available": False}]}
    )
    flag = normalize_availability({"available": True})
    empty = normalize_availability({"available": []})

    assert slots.is_available
    assert slots.available_slots[0].start == WINDOW_FROM
    assert len(slots.available_slots) == 1
    assert flag.is_available and flag.available_slots == ()
    assert not empty.is_available
    assert not normalize_availability(None).is_available
