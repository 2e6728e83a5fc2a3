from __future__ import annotations

from typing import Any, Sequence
import logging
import math

import requests

from .config import DEFAULT_DISTANCE_TIMEOUT
from .errors import UpstreamDegraded
from .models import Coordinate

_log = logging.getLogger(__name__)

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"
EARTH_RADIUS_METERS = 6_371_000


def haversine_meters(origin: Coordinate, target: Coordinate) -> int:
    """Straight-line distance in metres."""
    lat1, lng1 = math.radians(origin.lat), math.radians(origin.lng)
    lat2, lng2 = math.radians(target.lat), math.radians(target.lng)

    dlat = lat2 - lat1
    dlng = lng2 - lng1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    c = 2 * math.asin(math.sqrt(a))

    return int(EARTH_RADIUS_METERS * c)


class DistanceOracle:
    """Driving distances from one origin to many listings.

    With an API key the Google Distance Matrix API is queried once per batch
    of up to ``MAX_DESTINATIONS`` targets. Without a key the oracle runs in
    degraded mode and answers with great-circle distances. Upstream failures
    never raise: every target is reported as ``None`` (unknown).
    """

    # API limit for destinations in a single request.
    MAX_DESTINATIONS = 25

    def __init__(
        self,
        api_key: str = "",
        timeout: float = DEFAULT_DISTANCE_TIMEOUT,
        session: requests.Session | None = None,
        base_url: str = DISTANCE_MATRIX_URL,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url
        self.session = session or requests.Session()
        if not self.api_key:
            _log.warning("GOOGLE_MAPS_API_KEY is not set; distances fall back to straight-line estimates.")

    @property
    def degraded(self) -> bool:
        return not self.api_key

    def distances(self, origin: Coordinate, targets: Sequence[Coordinate]) -> list[int | None]:
        if not targets:
            return []
        if self.degraded:
            return [haversine_meters(origin, target) for target in targets]

        results: list[int | None] = []
        try:
            for index in range(0, len(targets), self.MAX_DESTINATIONS):
                chunk = targets[index : index + self.MAX_DESTINATIONS]
                results.extend(self._fetch_matrix(origin, chunk))
        except UpstreamDegraded as error:
            _log.warning("Distance oracle unavailable, distances unknown: %s", error.message)
            return [None] * len(targets)
        return results

    def _fetch_matrix(self, origin: Coordinate, chunk: Sequence[Coordinate]) -> list[int | None]:
        params = {
            "origins": f"{origin.lat},{origin.lng}",
            "destinations": "|".join(f"{target.lat},{target.lng}" for target in chunk),
            "units": "metric",
            "key": self.api_key,
        }
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.RequestException as error:
            raise UpstreamDegraded(f"request failed: {error}") from error

        if response.status_code != 200:
            raise UpstreamDegraded(f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as error:
            raise UpstreamDegraded("response is not JSON") from error

        status = data.get("status") if isinstance(data, dict) else None
        if status != "OK":
            message = data.get("error_message") if isinstance(data, dict) else None
            raise UpstreamDegraded(str(message or status))

        try:
            elements = data["rows"][0]["elements"]
        except (KeyError, IndexError, TypeError) as error:
            raise UpstreamDegraded("malformed distance matrix") from error
        if len(elements) != len(chunk):
            raise UpstreamDegraded(f"expected {len(chunk)} elements, got {len(elements)}")

        return [_element_distance(element) for element in elements]


def _element_distance(element: Any) -> int | None:
    # route not found for this destination
    if not isinstance(element, dict) or element.get("status") != "OK":
        return None
    try:
        return int(element["distance"]["value"])
    except (KeyError, TypeError, ValueError):
        return None
