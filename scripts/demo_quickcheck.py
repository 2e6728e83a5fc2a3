from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
import traceback

from cavan_market import Coordinate, DistanceOracle, MarketplaceYamlStore, ReservationAdmission, rank_listings
from cavan_market.config import Settings


def main() -> int:
    print("[INFO] Cavan Marketplace Quick Check")
    settings = Settings.from_env()
    store = MarketplaceYamlStore(settings.data_dir)
    now = datetime.now(timezone.utc)

    listings = store.seed_demo_data(now=now, overwrite=True)
    print(f"[OK] Demo data seeded: {len(listings)} listings")

    admission = ReservationAdmission(store, cancelled_blocks=settings.cancelled_blocks)
    check_in = (now + timedelta(days=7)).replace(hour=15, minute=0, second=0, microsecond=0)
    created = admission.create_reservation("guest-1", "cavan-1", check_in, check_in + timedelta(days=2))
    print(f"[OK] Reserved cavan-1 {created.range.start.isoformat()} ~ {created.range.end.isoformat()} for {created.total_price}")

    retry = admission.admit("guest-1", "cavan-1", check_in + timedelta(days=1), check_in + timedelta(days=3))
    print(f"[OK] Overlapping request rejected: {retry.error.message if retry.error else 'NOT REJECTED'}")

    oracle = DistanceOracle(settings.google_maps_api_key, timeout=settings.distance_timeout)
    seoul = Coordinate(37.5665, 126.9780)
    for item in rank_listings(store, oracle, "distance", seoul):
        print(f"[OK] {item.listing.id}: distance={item.distance} transactions={item.transaction_count}")

    print(f"[OK] Data directory: {Path(settings.data_dir).resolve()}")
    print("[DONE] Quick check completed successfully.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception:
        print("[ERROR] Quick check failed.")
        traceback.print_exc()
        raise SystemExit(1)
