from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable

from .errors import InPast, InvalidRange

if TYPE_CHECKING:
    from .models import Reservation

ONE_DAY = timedelta(days=1)

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
STATUS_COMPLETED = "completed"
RESERVATION_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_COMPLETED)


def as_aware(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", as_aware(self.start))
        object.__setattr__(self, "end", as_aware(self.end))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        return has_time_overlap(self.start, self.end, other.start, other.end)


def validate_range(start: datetime, end: datetime, now: datetime) -> TimeRange:
    """Check a requested stay and return it as a TimeRange.

    Only ordering and the past-start rule are enforced; any positive
    duration is accepted.
    """
    start, end, now = as_aware(start), as_aware(end), as_aware(now)
    if start >= end:
        raise InvalidRange("Start date must be before end date.")
    if start < now:
        raise InPast("Start date cannot be in the past.")
    return TimeRange(start, end)


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two intervals share at least one instant.

    Intervals are treated as half-open ranges: [start, end)
    so a checkout on day 5 and a check-in on day 5 do not overlap.
    """
    return new_start < exist_end and new_end > exist_start


def conflicting_reservations(
    listing_id: str,
    requested: TimeRange,
    reservations: Iterable["Reservation"],
    include_cancelled: bool = True,
) -> list["Reservation"]:
    """Every reservation of ``listing_id`` whose range overlaps ``requested``."""
    conflicts: list["Reservation"] = []
    for reservation in reservations:
        if reservation.listing_id != listing_id:
            continue
        if not include_cancelled and reservation.status == STATUS_CANCELLED:
            continue
        if requested.overlaps(reservation.range):
            conflicts.append(reservation)
    return conflicts


def billable_days(requested: TimeRange) -> int:
    days, remainder = divmod(requested.duration, ONE_DAY)
    if remainder:
        days += 1
    # minimum one day rental
    return max(1, days)


def calculate_price(requested: TimeRange, daily_rate: Decimal) -> Decimal:
    """Total price for a stay; any partial day is billed as a full day."""
    return billable_days(requested) * Decimal(daily_rate)
