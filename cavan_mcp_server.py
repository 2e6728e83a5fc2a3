from __future__ import annotations

from datetime import datetime
from typing import Any

from mcp.server.fastmcp import FastMCP

from cavan_market import Coordinate, DistanceOracle, MarketplaceYamlStore, ReservationAdmission, rank_listings
from cavan_market.config import Settings
from cavan_market.models import Listing, Reservation

mcp = FastMCP(
    "Cavan Marketplace MCP Server",
    instructions="Rank cavan listings and create reservations through the cavan_market pipelines.",
    json_response=True,
)

SETTINGS = Settings.from_env()
STORE = MarketplaceYamlStore(SETTINGS.data_dir)
ORACLE = DistanceOracle(SETTINGS.google_maps_api_key, timeout=SETTINGS.distance_timeout)
ADMISSION = ReservationAdmission(STORE, cancelled_blocks=SETTINGS.cancelled_blocks)


@mcp.resource("cavan://listings")
async def list_listings() -> list[dict[str, Any]]:
    """List every cavan listing."""
    return [listing.to_dict() for listing in STORE.all(Listing.kind)]


@mcp.tool()
def rank_cavans(sort_by: str = "price", lat: float | None = None, lng: float | None = None) -> list[dict[str, Any]]:
    """Rank listings by distance, likes or price.

    A distance ranking without lat/lng returns the listings unsorted.
    """
    origin = Coordinate(lat, lng) if lat is not None and lng is not None else None
    return [item.to_dict() for item in rank_listings(STORE, ORACLE, sort_by, origin)]


@mcp.tool()
def reserve_cavan(guest_id: str, cavan_id: str, start_iso: str, end_iso: str) -> dict[str, Any]:
    """Create a reservation using ISO timestamps."""
    try:
        start = datetime.fromisoformat(start_iso)
        end = datetime.fromisoformat(end_iso)
    except ValueError:
        return {"ok": False, "name": "ValidationError", "message": "start_iso and end_iso must be ISO 8601 timestamps."}

    result = ADMISSION.admit(guest_id, cavan_id, start, end)
    if result.error is not None:
        return {"ok": False, "name": result.error.name, "message": result.error.message}
    return {"ok": True, "reservation": result.reservation.to_dict()}


@mcp.tool()
def list_reservations(cavan_id: str | None = None) -> list[dict[str, Any]]:
    """Return reservations, optionally filtered by cavan."""
    records = STORE.all(Reservation.kind)
    return [record.to_dict() for record in records if cavan_id is None or record.listing_id == cavan_id]


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
