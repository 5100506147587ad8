"""Interfaces of the location directory and availability lookup."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol


class LocationProvider(Protocol):
    def get_location_hierarchy(
        self,
        parent_id: Optional[int] = None,
        include_facilities: bool = True,
        include_children: bool = True,
        is_bookable: bool = True,
    ) -> Mapping[str, Any]:
        """Static location tree: ``{"locations": [...]}``."""
        ...

    def get_all_bookings(
        self,
        category: Optional[int] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        parent_location_id: Optional[int] = None,
    ) -> Mapping[str, Any]:
        """Locations annotated with live booking context for a time window."""
        ...


class AvailabilityProvider(Protocol):
    def check_availability(
        self,
        location_id: int,
        date_from: str,
        date_to: str,
        booking_category: Optional[int] = None,
    ) -> Mapping[str, Any]:
        """``{"available": [slot, ...]}`` or ``{"available": bool}``."""
        ...
