"""Concurrent availability checks folded into candidate scores."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from roomfinder.domain.models import AvailabilityInfo, AvailabilitySlot, ScoredCandidate
from roomfinder.domain.vocabulary import booking_category_for_kind
from roomfinder.services.collaborators import AvailabilityProvider
from roomfinder.services.scoring_service import ScoringEngine
from roomfinder.utils.config import Settings, get_settings
from roomfinder.utils.logger import get_logger


logger = get_logger(__name__)

COULD_NOT_CHECK = "Could not check availability"


@dataclass(frozen=True)
class OverlayResult:
    checked_candidates: list[ScoredCandidate]
    unchecked_candidates: list[ScoredCandidate]
    checked: int
    failed: int


def _slot_from_record(record: Any) -> Optional[AvailabilitySlot]:
    if not isinstance(record, Mapping):
        return None
    if record.get("available") is False:
        return None
    start = record.get("timeFrom") or record.get("from") or record.get("start")
    end = record.get("timeTo") or record.get("to") or record.get("end")
    if not start or not end:
        return None
    return AvailabilitySlot(start=str(start), end=str(end))


def normalize_availability(payload: Optional[Mapping[str, Any]]) -> AvailabilityInfo:
    """Interpret ``{"available": [slots] | bool}`` from the availability collaborator."""
    if not payload:
        return AvailabilityInfo(is_available=False)
    available = payload.get("available")
    if isinstance(available, bool):
        slots = tuple(
            slot
            for slot in (_slot_from_record(item) for item in payload.get("slots") or ())
            if slot is not None
        )
        return AvailabilityInfo(is_available=available, available_slots=slots)
    slots = tuple(
        slot
        for slot in (_slot_from_record(item) for item in available or ())
        if slot is not None
    )
    return AvailabilityInfo(is_available=bool(slots), available_slots=slots)


class AvailabilityOverlay:
    """Checks the top candidates against the availability collaborator.

    Lookups run on a thread pool under one shared deadline. A lookup that
    raises or misses the deadline marks only its own candidate as
    unavailable; the rest of the batch is unaffected.
    """

    def __init__(
        self,
        provider: AvailabilityProvider,
        settings: Optional[Settings] = None,
    ) -> None:
        self._provider = provider
        self._settings = settings or get_settings()

    def _lookup(self, candidate: ScoredCandidate, date_from: str, date_to: str) -> AvailabilityInfo:
        payload = self._provider.check_availability(
            location_id=candidate.location.id,
            date_from=date_from,
            date_to=date_to,
            booking_category=booking_category_for_kind(candidate.location.kind),
        )
        return normalize_availability(payload)

    def check(
        self,
        candidates: Sequence[ScoredCandidate],
        date_from: str,
        date_to: str,
    ) -> dict[int, AvailabilityInfo]:
        """Availability per location id; failures become unchecked entries.

        The whole batch shares one deadline of ``availability_timeout_seconds``.
        Lookups still running or queued when it passes are reported as timed out.
        """
        outcomes: dict[int, AvailabilityInfo] = {}
        if not candidates:
            return outcomes

        timeout = self._settings.availability_timeout_seconds
        workers = max(1, min(self._settings.availability_max_workers, len(candidates)))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="availability")
        try:
            futures = {
                candidate.location.id: pool.submit(self._lookup, candidate, date_from, date_to)
                for candidate in candidates
            }
            done, _ = wait(futures.values(), timeout=timeout)
            for location_id, future in futures.items():
                if future not in done:
                    logger.warning(
                        "Availability lookup timed out | location_id=%s | timeout=%.1fs",
                        location_id,
                        timeout,
                    )
                    outcomes[location_id] = AvailabilityInfo(
                        is_available=False,
                        checked=False,
                        note=f"{COULD_NOT_CHECK} (timed out)",
                    )
                    continue
                try:
                    outcomes[location_id] = future.result()
                except Exception as exc:
                    logger.warning(
                        "Availability lookup failed | location_id=%s | error=%s",
                        location_id,
                        exc,
                    )
                    outcomes[location_id] = AvailabilityInfo(
                        is_available=False,
                        checked=False,
                        note=COULD_NOT_CHECK,
                    )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return outcomes

    def apply(
        self,
        ranked: Sequence[ScoredCandidate],
        engine: ScoringEngine,
        date_from: str,
        date_to: str,
    ) -> OverlayResult:
        """Overlay the top ``availability_check_limit`` candidates only."""
        head = list(ranked[: self._settings.availability_check_limit])
        tail = list(ranked[len(head):])
        outcomes = self.check(head, date_from, date_to)

        overlaid = [
            engine.apply_availability(candidate, outcomes[candidate.location.id])
            for candidate in head
        ]
        failed = sum(1 for info in outcomes.values() if not info.checked)
        logger.info(
            "Availability overlay completed | checked=%s | failed=%s | unchecked=%s",
            len(head),
            failed,
            len(tail),
        )
        return OverlayResult(
            checked_candidates=overlaid,
            unchecked_candidates=tail,
            checked=len(head),
            failed=failed,
        )
