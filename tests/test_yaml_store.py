import tempfile
import unittest
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

from cavan_market import Coordinate, Listing, MarketplaceYamlStore, NotFound, Reservation, TimeRange, User, count_completed, find_conflicts
from cavan_market.booking import STATUS_COMPLETED
from cavan_market.yaml_store import DEMO_LISTINGS, completed_counts, generate_demo_history

UTC = timezone.utc
NOW = datetime(2025, 10, 1, 9, 0, tzinfo=UTC)


def _listing(**overrides) -> Listing:
    values = dict(
        name="Forest Cabin",
        host_id="host-1",
        capacity=4,
        location=Coordinate(37.5, 127.0),
        daily_rate=Decimal("150"),
        amenities=frozenset({"Kitchen", "Wi-Fi"}),
        photos=("https://example.com/a.jpg", "https://example.com/b.jpg"),
    )
    values.update(overrides)
    return Listing(**values)


def _reservation(listing_id: str, start_day: int, end_day: int, status: str = "pending") -> Reservation:
    return Reservation(
        guest_id="guest-1",
        listing_id=listing_id,
        range=TimeRange(datetime(2025, 10, start_day, tzinfo=UTC), datetime(2025, 10, end_day, tzinfo=UTC)),
        total_price=Decimal("300"),
        created_at=NOW,
        status=status,
    )


class TestMarketplaceYamlStore(unittest.TestCase):
    def test_save_assigns_id_and_round_trips_listing(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = MarketplaceYamlStore(Path(temp_dir) / "data")
            saved = store.save(_listing(liked_by=frozenset({"guest-1"})))

            self.assertIsNotNone(saved.id)
            loaded = store.get(Listing.kind, saved.id)
            self.assertEqual(loaded, saved)
            self.assertEqual(loaded.amenities, frozenset({"Kitchen", "Wi-Fi"}))
            self.assertEqual(loaded.photos, ("https://example.com/a.jpg", "https://example.com/b.jpg"))
            self.assertEqual(loaded.daily_rate, Decimal("150"))
            self.assertEqual(loaded.likes, 1)

    def test_save_upserts_by_id(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = MarketplaceYamlStore(Path(temp_dir) / "data")
            saved = store.save(_listing(id="cavan-1"))
            store.save(replace(saved, name="Renamed Cabin"))

            listings = store.all(Listing.kind)
            self.assertEqual(len(listings), 1)
            self.assertEqual(listings[0].name, "Renamed Cabin")

    def test_reservation_round_trip_keeps_timezone(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = MarketplaceYamlStore(Path(temp_dir) / "data")
            saved = store.save(_reservation("cavan-1", 10, 15))

            loaded = store.get(Reservation.kind, saved.id)
            self.assertEqual(loaded.range.start, datetime(2025, 10, 10, tzinfo=UTC))
            self.assertEqual(loaded.total_price, Decimal("300"))
            self.assertEqual(loaded.status, "pending")

    def test_get_missing_entity_raises_not_found(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = MarketplaceYamlStore(Path(temp_dir) / "data")
            with self.assertRaises(NotFound) as context:
                store.get(Listing.kind, "nope")

            self.assertEqual(context.exception.kind, "Cavan")
            self.assertEqual(context.exception.entity_id, "nope")
            self.assertIsNone(store.find(User.kind, "nope"))

    def test_unknown_kind_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = MarketplaceYamlStore(Path(temp_dir) / "data")
            with self.assertRaises(ValueError):
                store.all("payment")

    def test_delete_reports_whether_entity_existed(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = MarketplaceYamlStore(Path(temp_dir) / "data")
            saved = store.save(_listing())

            self.assertTrue(store.delete(Listing.kind, saved.id))
            self.assertFalse(store.delete(Listing.kind, saved.id))
            self.assertEqual(store.all(Listing.kind), [])

    def test_logs_save_and_delete_events(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = MarketplaceYamlStore(Path(temp_dir) / "data")
            saved = store.save(_listing())
            store.delete(Listing.kind, saved.id)

            event_types = [event["event_type"] for event in store.read_events()]
            self.assertEqual(event_types, ["ENTITY_SAVED", "ENTITY_DELETED"])

    def test_corrupted_yaml_is_recovered(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            store = MarketplaceYamlStore(data_dir)
            listings_path = data_dir / "listings.yaml"
            listings_path.write_text("this: [is: invalid", encoding="utf-8")

            self.assertEqual(store.all(Listing.kind), [])
            self.assertIn("[]", listings_path.read_text(encoding="utf-8"))
            self.assertTrue(list(data_dir.glob("listings.corrupt.*.yaml")))
            self.assertIn("YAML_RECOVERED", [event["event_type"] for event in store.read_events()])

    def test_non_mapping_rows_are_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            store = MarketplaceYamlStore(data_dir)
            (data_dir / "users.yaml").write_text("- just a string\n- id: guest-1\n  name: Guest\n", encoding="utf-8")

            users = store.all(User.kind)
            self.assertEqual([user.id for user in users], ["guest-1"])
            self.assertIn("YAML_ROW_SKIPPED", [event["event_type"] for event in store.read_events()])


class TestReservationQueries(unittest.TestCase):
    def test_find_conflicts_scans_only_requested_listing(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = MarketplaceYamlStore(Path(temp_dir) / "data")
            existing = store.save(_reservation("cavan-1", 10, 15))
            store.save(_reservation("cavan-2", 10, 15))

            requested = TimeRange(datetime(2025, 10, 12, tzinfo=UTC), datetime(2025, 10, 20, tzinfo=UTC))
            conflicts = find_conflicts(store, "cavan-1", requested)

            self.assertEqual([item.id for item in conflicts], [existing.id])

    def test_count_completed_sums_requested_listings(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = MarketplaceYamlStore(Path(temp_dir) / "data")
            store.save(_reservation("cavan-1", 2, 3, status=STATUS_COMPLETED))
            store.save(_reservation("cavan-1", 4, 5, status=STATUS_COMPLETED))
            store.save(_reservation("cavan-2", 2, 3, status=STATUS_COMPLETED))
            store.save(_reservation("cavan-2", 6, 7, status="cancelled"))
            store.save(_reservation("cavan-3", 2, 3, status=STATUS_COMPLETED))

            self.assertEqual(completed_counts(store), {"cavan-1": 2, "cavan-2": 1, "cavan-3": 1})
            self.assertEqual(count_completed(store, ["cavan-1", "cavan-2"]), 3)
            self.assertEqual(count_completed(store, ["cavan-1", "cavan-1"]), 2)
            self.assertEqual(count_completed(store, []), 0)


class TestDemoData(unittest.TestCase):
    def test_seed_demo_data_writes_users_listings_and_history(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = MarketplaceYamlStore(Path(temp_dir) / "data")
            listings = store.seed_demo_data(now=NOW)

            self.assertEqual([listing.id for listing in listings], ["cavan-1", "cavan-2", "cavan-3"])
            self.assertEqual(len(store.all(User.kind)), 3)
            reservations = store.all(Reservation.kind)
            self.assertGreaterEqual(len(reservations), 3)
            self.assertTrue(all(item.status == STATUS_COMPLETED for item in reservations))
            self.assertTrue(all(item.range.end <= NOW for item in reservations))

    def test_demo_history_is_deterministic_and_non_overlapping(self) -> None:
        first = generate_demo_history(date(2025, 10, 1), DEMO_LISTINGS)
        second = generate_demo_history(date(2025, 10, 1), DEMO_LISTINGS)

        self.assertEqual([item.range for item in first], [item.range for item in second])
        for listing in DEMO_LISTINGS:
            stays = [item.range for item in first if item.listing_id == listing.id]
            for index, stay in enumerate(stays):
                for other in stays[index + 1:]:
                    self.assertFalse(stay.overlaps(other))

    def test_demo_history_rejects_invalid_params(self) -> None:
        with self.assertRaises(ValueError):
            generate_demo_history(date(2025, 10, 1), DEMO_LISTINGS, stays_per_listing=0)


if __name__ == "__main__":
    unittest.main()
