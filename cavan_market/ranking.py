from __future__ import annotations

from typing import Protocol, Sequence
import logging

from .errors import ValidationError
from .models import Coordinate, Listing, RankedListing
from .yaml_store import MarketplaceYamlStore, completed_counts

_log = logging.getLogger(__name__)

SORT_DISTANCE = "distance"
SORT_LIKES = "likes"
SORT_PRICE = "price"
SORT_KEYS = (SORT_DISTANCE, SORT_LIKES, SORT_PRICE)


class DistanceSource(Protocol):
    def distances(self, origin: Coordinate, targets: Sequence[Coordinate]) -> list[int | None]: ...


def rank_listings(
    store: MarketplaceYamlStore,
    oracle: DistanceSource,
    sort_key: str = SORT_DISTANCE,
    origin: Coordinate | None = None,
) -> list[RankedListing]:
    """Return every listing enriched with transaction count and distance.

    Distances are looked up in a single batched oracle call, and only when an
    origin is given. Sorting is stable, so listings with equal keys keep
    their stored order. Unknown distances sort after all known ones. A
    distance sort without an origin returns the enriched list unsorted.
    """
    if sort_key not in SORT_KEYS:
        raise ValidationError(f"Invalid sort key. Must be one of: {', '.join(SORT_KEYS)}")

    listings: list[Listing] = store.all(Listing.kind)
    counts = completed_counts(store)

    distances: list[int | None] = [None] * len(listings)
    if origin is not None and listings:
        distances = oracle.distances(origin, [listing.location for listing in listings])
        if len(distances) != len(listings):
            _log.warning(
                "Distance oracle returned %d results for %d listings, distances unknown",
                len(distances),
                len(listings),
            )
            distances = [None] * len(listings)

    ranked = [
        RankedListing(
            listing=listing,
            distance=distance,
            transaction_count=counts.get(str(listing.id), 0),
        )
        for listing, distance in zip(listings, distances)
    ]

    if sort_key == SORT_PRICE:
        return sorted(ranked, key=lambda item: item.listing.daily_rate)
    if sort_key == SORT_LIKES:
        return sorted(ranked, key=lambda item: -item.listing.likes)
    if origin is None:
        return ranked
    return sorted(ranked, key=_distance_key)


def _distance_key(item: RankedListing) -> tuple[bool, int]:
    return (item.distance is None, item.distance or 0)
