from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar

from .booking import STATUS_PENDING, TimeRange

LISTING_AVAILABLE = "available"
LISTING_RESERVED = "reserved"
LISTING_MAINTENANCE = "maintenance"
LISTING_STATUSES = (LISTING_AVAILABLE, LISTING_RESERVED, LISTING_MAINTENANCE)

ROLE_HOST = "host"
ROLE_GUEST = "guest"


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Coordinate":
        return Coordinate(lat=float(data["lat"]), lng=float(data["lng"]))


@dataclass(frozen=True)
class User:
    kind: ClassVar[str] = "user"

    name: str
    role: str = ROLE_GUEST
    contact: str = ""
    photo_url: str = ""
    is_verified: bool = False
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "contact": self.contact,
            "photo_url": self.photo_url,
            "is_verified": self.is_verified,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "User":
        return User(
            id=str(data["id"]),
            name=str(data["name"]),
            role=str(data.get("role", ROLE_GUEST)),
            contact=str(data.get("contact") or ""),
            photo_url=str(data.get("photo_url") or ""),
            is_verified=bool(data.get("is_verified", False)),
        )


@dataclass(frozen=True)
class Listing:
    kind: ClassVar[str] = "listing"

    name: str
    host_id: str
    capacity: int
    location: Coordinate
    daily_rate: Decimal
    amenities: frozenset[str] = field(default_factory=frozenset)
    photos: tuple[str, ...] = ()
    status: str = LISTING_AVAILABLE
    liked_by: frozenset[str] = field(default_factory=frozenset)
    id: str | None = None

    @property
    def likes(self) -> int:
        return len(self.liked_by)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "host_id": self.host_id,
            "capacity": self.capacity,
            "amenities": sorted(self.amenities),
            "photos": list(self.photos),
            "location": self.location.to_dict(),
            "status": self.status,
            "daily_rate": str(self.daily_rate),
            "liked_by": sorted(self.liked_by),
            "likes": self.likes,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Listing":
        return Listing(
            id=str(data["id"]),
            name=str(data["name"]),
            host_id=str(data["host_id"]),
            capacity=int(data["capacity"]),
            amenities=frozenset(str(item) for item in data.get("amenities") or []),
            photos=tuple(str(item) for item in data.get("photos") or []),
            location=Coordinate.from_dict(data["location"]),
            status=str(data.get("status", LISTING_AVAILABLE)),
            daily_rate=Decimal(str(data["daily_rate"])),
            liked_by=frozenset(str(item) for item in data.get("liked_by") or []),
        )


@dataclass(frozen=True)
class Reservation:
    kind: ClassVar[str] = "reservation"

    guest_id: str
    listing_id: str
    range: TimeRange
    total_price: Decimal
    created_at: datetime
    status: str = STATUS_PENDING
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "guest_id": self.guest_id,
            "listing_id": self.listing_id,
            "start": self.range.start.isoformat(),
            "end": self.range.end.isoformat(),
            "status": self.status,
            "total_price": str(self.total_price),
            "created_at": self.created_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Reservation":
        return Reservation(
            id=str(data["id"]),
            guest_id=str(data["guest_id"]),
            listing_id=str(data["listing_id"]),
            range=TimeRange(
                start=datetime.fromisoformat(str(data["start"])),
                end=datetime.fromisoformat(str(data["end"])),
            ),
            status=str(data.get("status", STATUS_PENDING)),
            total_price=Decimal(str(data["total_price"])),
            created_at=datetime.fromisoformat(str(data["created_at"])),
        )


@dataclass(frozen=True)
class RankedListing:
    listing: Listing
    distance: int | None = None
    transaction_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload = self.listing.to_dict()
        payload["distance"] = self.distance
        payload["transaction_count"] = self.transaction_count
        return payload


ENTITY_TYPES: dict[str, type] = {
    User.kind: User,
    Listing.kind: Listing,
    Reservation.kind: Reservation,
}
