from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from .errors import Forbidden, ValidationError
from .models import LISTING_AVAILABLE, Coordinate, Listing, User
from .yaml_store import MarketplaceYamlStore, count_completed


@dataclass(frozen=True)
class ListingDetails:
    listing: Listing
    host: User
    transactions: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "cavan": self.listing.to_dict(),
            "host": self.host.to_dict(),
            "transactions": self.transactions,
        }


def create_listing(
    store: MarketplaceYamlStore,
    *,
    name: str,
    host_id: str,
    capacity: int,
    location: Coordinate,
    daily_rate: Decimal | str | int,
    amenities: Iterable[str] = (),
    photos: Iterable[str] = (),
) -> Listing:
    store.get(User.kind, host_id)

    name = name.strip() if name else ""
    if not name:
        raise ValidationError("name must not be empty")
    if capacity <= 0:
        raise ValidationError("capacity must be greater than zero")
    try:
        rate = Decimal(str(daily_rate))
    except InvalidOperation:
        raise ValidationError("daily_rate must be a number") from None
    if not rate.is_finite() or rate <= 0:
        raise ValidationError("daily_rate must be greater than zero")

    listing = Listing(
        name=name,
        host_id=host_id,
        capacity=capacity,
        location=location,
        daily_rate=rate,
        amenities=frozenset(amenities),
        photos=tuple(photos),
        status=LISTING_AVAILABLE,
    )
    return store.save(listing)


def toggle_like(store: MarketplaceYamlStore, listing_id: str, user_id: str) -> Listing:
    def flip(listing: Listing) -> Listing:
        if user_id in listing.liked_by:
            return replace(listing, liked_by=listing.liked_by - {user_id})
        return replace(listing, liked_by=listing.liked_by | {user_id})

    return store.update(Listing.kind, listing_id, flip)


def liked_listings(store: MarketplaceYamlStore, user_id: str) -> list[Listing]:
    return [listing for listing in store.all(Listing.kind) if user_id in listing.liked_by]


def registered_listings(store: MarketplaceYamlStore, host_id: str) -> list[Listing]:
    return [listing for listing in store.all(Listing.kind) if listing.host_id == host_id]


def listing_details(store: MarketplaceYamlStore, listing_id: str) -> ListingDetails:
    """Listing, its host and the host's completed stays across all listings."""
    listing: Listing = store.get(Listing.kind, listing_id)
    host: User = store.get(User.kind, listing.host_id)
    host_listing_ids = [str(item.id) for item in registered_listings(store, str(host.id))]
    return ListingDetails(
        listing=listing,
        host=host,
        transactions=count_completed(store, host_listing_ids),
    )


def delete_listing(store: MarketplaceYamlStore, listing_id: str, user_id: str) -> bool:
    listing: Listing = store.get(Listing.kind, listing_id)
    if listing.host_id != user_id:
        raise Forbidden("User is not authorized to delete this cavan.")
    return store.delete(Listing.kind, listing_id)
