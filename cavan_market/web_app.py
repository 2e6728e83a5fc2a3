from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable
import logging
import math

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .admission import ReservationAdmission
from .config import Settings
from .distance import DistanceOracle
from .errors import MarketplaceError, MissingOrigin, ValidationError
from .listings import create_listing, delete_listing, liked_listings, listing_details, registered_listings, toggle_like
from .models import Coordinate
from .ranking import SORT_DISTANCE, SORT_KEYS, DistanceSource, rank_listings
from .yaml_store import MarketplaceYamlStore

_log = logging.getLogger(__name__)

LISTING_REQUIRED_FIELDS = ("name", "daily_rate", "location", "host_id", "photos", "amenities", "capacity")
RESERVATION_REQUIRED_FIELDS = ("guest_id", "cavan_id", "start", "end")


def create_app(
    data_dir: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
    settings: Settings | None = None,
    distance_oracle: DistanceSource | None = None,
) -> Flask:
    settings = settings or Settings.from_env()
    app = Flask(__name__)
    store = MarketplaceYamlStore(data_dir if data_dir is not None else settings.data_dir)
    oracle = distance_oracle or DistanceOracle(settings.google_maps_api_key, timeout=settings.distance_timeout)
    admission = ReservationAdmission(store, now_provider=now_provider, cancelled_blocks=settings.cancelled_blocks)

    app.extensions["cavan_store"] = store
    app.extensions["cavan_admission"] = admission

    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(error: MarketplaceError) -> Any:
        return jsonify({"ok": False, "name": error.name, "message": error.message}), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception) -> Any:
        if isinstance(error, HTTPException):
            return jsonify({"ok": False, "name": error.name, "message": error.description}), error.code
        _log.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"ok": False, "name": "InternalServerError", "message": "An unexpected error occurred."}), 500

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,DELETE,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.get("/api/cavans")
    def get_cavans() -> Any:
        sort_key = str(request.args.get("sort_by", SORT_DISTANCE)).strip().lower()
        if sort_key not in SORT_KEYS:
            raise ValidationError(f"Invalid sort_by parameter. Must be one of: {', '.join(SORT_KEYS)}")

        origin = _parse_origin(request.args.get("lat"), request.args.get("lng"))
        if sort_key == SORT_DISTANCE and origin is None:
            raise MissingOrigin("lat and lng query parameters are required for distance sorting.")

        ranked = rank_listings(store, oracle, sort_key, origin)
        return jsonify({"ok": True, "sort_by": sort_key, "cavans": [item.to_dict() for item in ranked]})

    @app.post("/api/cavans")
    def post_cavan() -> Any:
        payload = _json_body()
        missing = [name for name in LISTING_REQUIRED_FIELDS if payload.get(name) in (None, "", [])]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        location = payload["location"]
        try:
            coordinate = Coordinate.from_dict(location)
            capacity = int(payload["capacity"])
        except (KeyError, TypeError, ValueError):
            raise ValidationError("location must have numeric lat/lng and capacity must be an integer") from None

        created = create_listing(
            store,
            name=str(payload["name"]),
            host_id=str(payload["host_id"]),
            capacity=capacity,
            location=coordinate,
            daily_rate=str(payload["daily_rate"]),
            amenities=[str(item) for item in payload["amenities"]],
            photos=[str(item) for item in payload["photos"]],
        )
        return jsonify({"ok": True, "cavan": created.to_dict()}), 201

    @app.get("/api/cavans/<cavan_id>")
    def get_cavan_details(cavan_id: str) -> Any:
        details = listing_details(store, cavan_id)
        return jsonify({"ok": True, **details.to_dict()})

    @app.post("/api/cavans/<cavan_id>/like")
    def post_like(cavan_id: str) -> Any:
        payload = _json_body()
        user_id = str(payload.get("user_id", "")).strip()
        if not user_id:
            raise ValidationError("user_id is required.")
        updated = toggle_like(store, cavan_id, user_id)
        return jsonify({"ok": True, "cavan": updated.to_dict()})

    @app.delete("/api/cavans/<cavan_id>")
    def remove_cavan(cavan_id: str) -> Any:
        payload = _json_body()
        user_id = str(payload.get("user_id", "")).strip()
        if not user_id:
            raise ValidationError("user_id is required.")
        deleted = delete_listing(store, cavan_id, user_id)
        return jsonify({"ok": True, "deleted": deleted})

    @app.get("/api/users/<user_id>/liked-cavans")
    def get_liked_cavans(user_id: str) -> Any:
        return jsonify({"ok": True, "cavans": [item.to_dict() for item in liked_listings(store, user_id)]})

    @app.get("/api/users/<user_id>/cavans")
    def get_registered_cavans(user_id: str) -> Any:
        return jsonify({"ok": True, "cavans": [item.to_dict() for item in registered_listings(store, user_id)]})

    @app.post("/api/reservations")
    def post_reservation() -> Any:
        payload = _json_body()
        missing = [name for name in RESERVATION_REQUIRED_FIELDS if not str(payload.get(name, "")).strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        try:
            start = datetime.fromisoformat(str(payload["start"]).strip())
            end = datetime.fromisoformat(str(payload["end"]).strip())
        except ValueError:
            raise ValidationError("start and end must be ISO 8601 timestamps.") from None

        result = admission.admit(
            str(payload["guest_id"]).strip(),
            str(payload["cavan_id"]).strip(),
            start,
            end,
        )
        if result.error is not None:
            error = result.error
            return jsonify({"ok": False, "name": error.name, "message": error.message}), error.status_code
        return jsonify({"ok": True, "reservation": result.reservation.to_dict()}), 201

    return app


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _parse_origin(lat: str | None, lng: str | None) -> Coordinate | None:
    if not lat or not lng:
        return None
    try:
        coordinate = Coordinate(float(lat), float(lng))
    except ValueError:
        raise ValidationError("Invalid lat or lng parameters. Must be numbers.") from None
    if not (math.isfinite(coordinate.lat) and math.isfinite(coordinate.lng)):
        raise ValidationError("Invalid lat or lng parameters. Must be numbers.")
    return coordinate


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
