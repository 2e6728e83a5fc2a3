import asyncio
import os
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

from cavan_market import DistanceOracle, MarketplaceYamlStore, ReservationAdmission

# the server wires its store from the environment at import time
os.environ.setdefault("CAVAN_DATA_DIR", tempfile.mkdtemp(prefix="cavan-mcp-"))

import cavan_mcp_server  # noqa: E402

NOW = datetime(2025, 10, 1, 9, 0, tzinfo=timezone.utc)


class TestMcpTools(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        store = MarketplaceYamlStore(Path(self._temp_dir.name) / "data")
        store.seed_demo_data(now=NOW)
        admission = ReservationAdmission(store, now_provider=lambda: NOW)

        patches = [
            mock.patch.object(cavan_mcp_server, "STORE", store),
            mock.patch.object(cavan_mcp_server, "ADMISSION", admission),
            mock.patch.object(cavan_mcp_server, "ORACLE", DistanceOracle(api_key="")),
        ]
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def test_listing_resource(self) -> None:
        listings = asyncio.run(cavan_mcp_server.list_listings())
        self.assertEqual(sorted(item["id"] for item in listings), ["cavan-1", "cavan-2", "cavan-3"])

    def test_rank_by_price_and_by_distance(self) -> None:
        by_price = cavan_mcp_server.rank_cavans("price")
        by_distance = cavan_mcp_server.rank_cavans("distance", lat=35.1, lng=129.0)

        self.assertEqual([item["id"] for item in by_price], ["cavan-2", "cavan-1", "cavan-3"])
        self.assertEqual(by_distance[0]["id"], "cavan-2")
        self.assertTrue(all(item["distance"] is not None for item in by_distance))

    def test_reserve_then_conflict(self) -> None:
        first = cavan_mcp_server.reserve_cavan("guest-1", "cavan-3", "2025-10-10T00:00:00+00:00", "2025-10-12T00:00:00+00:00")
        second = cavan_mcp_server.reserve_cavan("guest-1", "cavan-3", "2025-10-11T00:00:00+00:00", "2025-10-13T00:00:00+00:00")

        self.assertTrue(first["ok"])
        self.assertEqual(first["reservation"]["total_price"], "400")
        self.assertFalse(second["ok"])
        self.assertEqual(second["name"], "ValidationError")

    def test_reserve_rejects_unparsable_timestamps(self) -> None:
        result = cavan_mcp_server.reserve_cavan("guest-1", "cavan-3", "tomorrow", "2025-10-12")
        self.assertFalse(result["ok"])

    def test_list_reservations_filters_by_cavan(self) -> None:
        cavan_mcp_server.reserve_cavan("guest-1", "cavan-1", "2025-10-10T00:00:00+00:00", "2025-10-11T00:00:00+00:00")

        filtered = cavan_mcp_server.list_reservations("cavan-1")

        self.assertTrue(filtered)
        self.assertTrue(all(item["listing_id"] == "cavan-1" for item in filtered))
        self.assertGreater(len(cavan_mcp_server.list_reservations()), len(filtered))


if __name__ == "__main__":
    unittest.main()
