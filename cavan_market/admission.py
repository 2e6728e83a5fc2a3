from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
import logging
import threading

from .booking import STATUS_PENDING, calculate_price, validate_range
from .errors import MarketplaceError, ValidationError
from .models import Listing, Reservation, User
from .yaml_store import MarketplaceYamlStore, find_conflicts

_log = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AdmissionResult:
    reservation: Reservation | None = None
    error: MarketplaceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ReservationAdmission:
    """Accepts or rejects booking requests and persists the admitted ones.

    Conflict check and write for one listing run inside that listing's lock,
    so two overlapping requests can never both be admitted. Requests for
    different listings do not wait on each other.
    """

    def __init__(
        self,
        store: MarketplaceYamlStore,
        now_provider: Callable[[], datetime] | None = None,
        cancelled_blocks: bool = True,
    ) -> None:
        self.store = store
        self.clock: Callable[[], datetime] = now_provider or utc_now
        self.cancelled_blocks = cancelled_blocks
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _listing_lock(self, listing_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(listing_id)
            if lock is None:
                lock = self._locks[listing_id] = threading.Lock()
            return lock

    def create_reservation(self, guest_id: str, listing_id: str, start: datetime, end: datetime) -> Reservation:
        self.store.get(User.kind, guest_id)
        listing: Listing = self.store.get(Listing.kind, listing_id)

        now = self.clock()
        requested = validate_range(start, end, now)

        with self._listing_lock(listing_id):
            conflicts = find_conflicts(
                self.store,
                listing_id,
                requested,
                include_cancelled=self.cancelled_blocks,
            )
            if conflicts:
                raise ValidationError("The listing is already reserved for the selected dates.")

            reservation = Reservation(
                guest_id=guest_id,
                listing_id=listing_id,
                range=requested,
                total_price=calculate_price(requested, listing.daily_rate),
                created_at=now,
                status=STATUS_PENDING,
            )
            saved = self.store.save(reservation)

        self.store.log_event(
            "RESERVATION_CREATED",
            {
                "reservation_id": saved.id,
                "guest_id": guest_id,
                "listing_id": listing_id,
                "start": saved.range.start.isoformat(),
                "end": saved.range.end.isoformat(),
                "total_price": str(saved.total_price),
            },
            now,
        )
        return saved

    def admit(self, guest_id: str, listing_id: str, start: datetime, end: datetime) -> AdmissionResult:
        """Same as ``create_reservation`` but reports rejections as a value."""
        try:
            reservation = self.create_reservation(guest_id, listing_id, start, end)
        except MarketplaceError as error:
            _log.info("Reservation rejected for listing %s: %s", listing_id, error.message)
            return AdmissionResult(error=error)
        return AdmissionResult(reservation=reservation)
