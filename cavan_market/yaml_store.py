from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Iterable
import random
import shutil
import threading
from uuid import uuid4

import yaml

from .booking import STATUS_COMPLETED, TimeRange, calculate_price, conflicting_reservations
from .errors import NotFound, StorageError
from .models import ENTITY_TYPES, ROLE_GUEST, ROLE_HOST, Coordinate, Listing, Reservation, User

_KIND_LABELS = {
    User.kind: "User",
    Listing.kind: "Cavan",
    Reservation.kind: "Reservation",
}


class MarketplaceYamlStore:
    """Key-value entity store with one YAML list file per entity kind.

    ``save`` upserts by id and assigns a uuid4 when the entity has none.
    Every returned entity is an immutable copy of what is on disk.
    """

    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.files = {kind: self.base_dir / f"{kind}s.yaml" for kind in ENTITY_TYPES}
        self.log_file = self.base_dir / "marketplace_events.yaml"
        self._lock = threading.RLock()
        self._ensure_files()

    def _ensure_files(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        for path in (*self.files.values(), self.log_file):
            if not path.exists():
                path.write_text("[]\n", encoding="utf-8")

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path != self.log_file:
                self.log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise StorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            pass

        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self.log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _file_for(self, kind: str) -> Path:
        try:
            return self.files[kind]
        except KeyError:
            raise ValueError(f"unknown entity kind: {kind}") from None

    def log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now(timezone.utc)).isoformat(timespec="seconds")
        with self._lock:
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events)

    def read_events(self) -> list[dict[str, Any]]:
        return self._read_yaml_list(self.log_file)

    def all(self, kind: str) -> list[Any]:
        rows = self._read_yaml_list(self._file_for(kind))
        entity_type = ENTITY_TYPES[kind]
        return [entity_type.from_dict(row) for row in rows]

    def find(self, kind: str, entity_id: str) -> Any | None:
        for row in self._read_yaml_list(self._file_for(kind)):
            if str(row.get("id")) == entity_id:
                return ENTITY_TYPES[kind].from_dict(row)
        return None

    def get(self, kind: str, entity_id: str) -> Any:
        entity = self.find(kind, entity_id)
        if entity is None:
            raise NotFound(_KIND_LABELS.get(kind, kind), entity_id)
        return entity

    def save(self, entity: Any) -> Any:
        if entity.id is None:
            entity = replace(entity, id=str(uuid4()))

        path = self._file_for(entity.kind)
        with self._lock:
            rows = self._read_yaml_list(path)
            payload = entity.to_dict()
            for index, row in enumerate(rows):
                if str(row.get("id")) == entity.id:
                    rows[index] = payload
                    break
            else:
                rows.append(payload)
            self._write_yaml_list(path, rows)

        self.log_event("ENTITY_SAVED", {"kind": entity.kind, "id": entity.id})
        return ENTITY_TYPES[entity.kind].from_dict(payload)

    def update(self, kind: str, entity_id: str, change: Callable[[Any], Any]) -> Any:
        """Apply ``change`` to the stored entity and save the result atomically."""
        with self._lock:
            return self.save(change(self.get(kind, entity_id)))

    def delete(self, kind: str, entity_id: str) -> bool:
        path = self._file_for(kind)
        with self._lock:
            rows = self._read_yaml_list(path)
            remaining = [row for row in rows if str(row.get("id")) != entity_id]
            if len(remaining) == len(rows):
                return False
            self._write_yaml_list(path, remaining)

        self.log_event("ENTITY_DELETED", {"kind": kind, "id": entity_id})
        return True

    def seed_demo_data(self, now: datetime | None = None, overwrite: bool = True) -> list[Listing]:
        effective_now = now or datetime.now(timezone.utc)
        if overwrite:
            with self._lock:
                for path in self.files.values():
                    self._write_yaml_list(path, [])

        for user in DEMO_USERS:
            self.save(user)
        listings = [self.save(listing) for listing in DEMO_LISTINGS]
        history = generate_demo_history(effective_now.date(), listings)
        for reservation in history:
            self.save(reservation)

        self.log_event(
            "DEMO_DATA_SEEDED",
            {
                "users": len(DEMO_USERS),
                "listings": len(listings),
                "completed_reservations": len(history),
                "overwrite": overwrite,
            },
            effective_now,
        )
        return listings


def find_conflicts(
    store: MarketplaceYamlStore,
    listing_id: str,
    requested: TimeRange,
    include_cancelled: bool = True,
) -> list[Reservation]:
    return conflicting_reservations(
        listing_id,
        requested,
        store.all(Reservation.kind),
        include_cancelled=include_cancelled,
    )


def completed_counts(store: MarketplaceYamlStore) -> dict[str, int]:
    counts: dict[str, int] = {}
    for reservation in store.all(Reservation.kind):
        if reservation.status == STATUS_COMPLETED:
            counts[reservation.listing_id] = counts.get(reservation.listing_id, 0) + 1
    return counts


def count_completed(store: MarketplaceYamlStore, listing_ids: Iterable[str]) -> int:
    counts = completed_counts(store)
    return sum(counts.get(listing_id, 0) for listing_id in set(listing_ids))


DEMO_USERS = [
    User(id="guest-1", name="Test Guest", role=ROLE_GUEST, contact="guest@test.com", is_verified=True,
         photo_url="https://i.pravatar.cc/150?u=guest-1"),
    User(id="host-1", name="Host One", role=ROLE_HOST, contact="host1@test.com", is_verified=True,
         photo_url="https://i.pravatar.cc/150?u=host-1"),
    User(id="host-2", name="Host Two", role=ROLE_HOST, contact="host2@test.com", is_verified=True,
         photo_url="https://i.pravatar.cc/150?u=host-2"),
]

DEMO_LISTINGS = [
    Listing(
        id="cavan-1",
        name="Modern & Cozy Cavan",
        host_id="host-1",
        capacity=4,
        amenities=frozenset({"Kitchen", "Wi-Fi", "Air Conditioner"}),
        photos=tuple(f"https://picsum.photos/seed/cavan-1-{suffix}/800/600" for suffix in "ABC"),
        location=Coordinate(37.5665, 126.9780),
        daily_rate=Decimal("150"),
        liked_by=frozenset({"guest-1", "host-2"}),
    ),
    Listing(
        id="cavan-2",
        name="Vintage Style Camper",
        host_id="host-2",
        capacity=2,
        amenities=frozenset({"Kitchen"}),
        photos=tuple(f"https://picsum.photos/seed/cavan-2-{suffix}/800/600" for suffix in "ABC"),
        location=Coordinate(35.1796, 129.0756),
        daily_rate=Decimal("120"),
        liked_by=frozenset({"guest-1", "host-1", "host-2"}),
    ),
    Listing(
        id="cavan-3",
        name="Family Friendly RV",
        host_id="host-1",
        capacity=6,
        amenities=frozenset({"Kitchen", "Wi-Fi", "TV"}),
        photos=tuple(f"https://picsum.photos/seed/cavan-3-{suffix}/800/600" for suffix in "ABC"),
        location=Coordinate(33.4996, 126.5312),
        daily_rate=Decimal("200"),
        liked_by=frozenset({"guest-1"}),
    ),
]


def generate_demo_history(today: date, listings: list[Listing], stays_per_listing: int = 3) -> list[Reservation]:
    """Back-to-back completed stays in the weeks before ``today``."""
    if stays_per_listing <= 0:
        raise ValueError("stays_per_listing must be greater than zero")

    rng = random.Random(f"demo:{today.isoformat()}")
    created_at = datetime(today.year, today.month, today.day, tzinfo=timezone.utc)
    records: list[Reservation] = []
    for listing in listings:
        cursor = created_at - timedelta(days=60)
        for _ in range(rng.randint(1, stays_per_listing)):
            nights = rng.randint(1, 4)
            stay = TimeRange(cursor, cursor + timedelta(days=nights))
            records.append(
                Reservation(
                    id=str(uuid4()),
                    guest_id="guest-1",
                    listing_id=str(listing.id),
                    range=stay,
                    total_price=calculate_price(stay, listing.daily_rate),
                    created_at=created_at - timedelta(days=90),
                    status=STATUS_COMPLETED,
                )
            )
            cursor = stay.end + timedelta(days=rng.randint(0, 3))
    return records
