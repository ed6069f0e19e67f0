"""Location-aware event discovery.

Ranking is delegated to the ``nearby_events`` SQL function (PostGIS); this
module validates the query, re-hydrates the ranked ids with their relations,
re-applies the in-memory filters and builds the pagination block.
"""
import logging
import math
import re
from typing import Any, Mapping, Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import text
from sqlalchemy.orm import Session, selectinload

from app.core.errors import UpstreamError, ValidationError
from app.models.event import Event
from app.schemas.event import NearbyEventsQuery
from app.services.event_service import serialize_event

logger = logging.getLogger(__name__)

_POINT_RE = re.compile(r"POINT\(([-\d.]+)\s+([-\d.]+)\)")

_FIELD_MESSAGES = {
    "latitude": "Latitude must be a valid number between -90 and 90",
    "longitude": "Longitude must be a valid number between -180 and 180",
    "radius": "Radius must be a positive number up to 200000 meters (200km)",
    "limit": "Limit must be between 1 and 100",
    "page": "Page must be a positive number",
}


class NearbyStore(Protocol):
    def rank(self, lat: float, lon: float, radius_meters: int, limit: int, offset: int) -> list[dict]: ...

    def fetch_relations(self, ids: list[str]) -> list[dict]: ...


class SqlNearbyStore:
    """NearbyStore backed by Postgres/PostGIS."""

    RANK_SQL = text(
        "SELECT * FROM nearby_events(:lat, :lon, :radius_meters, :limit_count, :offset_count)"
    )

    def __init__(self, db: Session):
        self.db = db

    def rank(self, lat, lon, radius_meters, limit, offset):
        rows = self.db.execute(
            self.RANK_SQL,
            {"lat": lat, "lon": lon, "radius_meters": radius_meters, "limit_count": limit, "offset_count": offset},
        ).mappings().all()
        return [dict(r) for r in rows]

    def fetch_relations(self, ids):
        events = (
            self.db.query(Event)
            .options(selectinload(Event.images), selectinload(Event.ticket_types))
            .filter(Event.id.in_(ids))
            .all()
        )
        return [serialize_event(e) for e in events]


def parse_nearby_query(params: Mapping[str, Any]) -> NearbyEventsQuery:
    """Validate raw query-string values. Missing coordinates fail before anything else."""
    cleaned = {k: v for k, v in params.items() if v is not None}
    if cleaned.get("latitude") in (None, "") or cleaned.get("longitude") in (None, ""):
        raise ValidationError("Both latitude and longitude parameters are required")
    try:
        return NearbyEventsQuery.model_validate(cleaned)
    except PydanticValidationError as e:
        details = []
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"])
            details.append({"field": field, "message": _FIELD_MESSAGES.get(field, err["msg"])})
        raise ValidationError("Invalid query parameters", details=details)


def parse_location_to_coordinates(location: Any) -> dict | None:
    """WKT ``POINT(lng lat)`` or a ``{lat,lng}`` / ``{latitude,longitude}`` mapping -> ``{lat,lng}``."""
    if not location:
        return None
    if isinstance(location, str):
        m = _POINT_RE.search(location)
        if not m:
            return None
        try:
            return {"lat": float(m.group(2)), "lng": float(m.group(1))}
        except ValueError:
            return None
    if isinstance(location, Mapping):
        for lat_key, lng_key in (("lat", "lng"), ("latitude", "longitude")):
            lat, lng = location.get(lat_key), location.get(lng_key)
            if _is_number(lat) and _is_number(lng):
                return {"lat": lat, "lng": lng}
    return None


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def build_pagination(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if total else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPreviousPage": page > 1,
    }


def merge_ranked(ranked: list[dict], relations: list[dict]) -> list[dict]:
    """Attach relations to the ranked rows, keeping ranking order."""
    by_id = {r["id"]: r for r in relations}
    out = []
    for row in ranked:
        full = by_id.get(row["id"])
        if full is None:
            logger.warning("Event with ID %s not found in relations data", row["id"])
            full = row
        out.append({
            **full,
            "location_coordinates": parse_location_to_coordinates(full.get("location")),
            "distance_meters": row.get("distance_meters"),
        })
    return out


def apply_filters(events: list[dict], query: NearbyEventsQuery) -> list[dict]:
    if query.category:
        events = [e for e in events if (e.get("event_categories") or {}).get("slug") == query.category]
    if query.search:
        needle = query.search.lower()
        events = [
            e for e in events
            if any(needle in (e.get(k) or "").lower() for k in ("title", "description", "location_name"))
        ]
    if query.date_from:
        events = [e for e in events if (e.get("start_date") or "") >= query.date_from]
    if query.date_to:
        events = [e for e in events if (e.get("start_date") or "") <= query.date_to]
    return events


def search_nearby_events(query: NearbyEventsQuery, store: NearbyStore) -> dict:
    search = {"latitude": query.latitude, "longitude": query.longitude, "radius": query.radius}

    try:
        ranked = store.rank(query.latitude, query.longitude, query.radius, query.limit, query.offset)
    except Exception as e:
        logger.error("Nearby events function error: %s", e)
        raise UpstreamError(f"Failed to fetch nearby events: {e}")

    if not ranked:
        return {"events": [], "pagination": build_pagination(query.page, query.limit, 0), "search": search}

    try:
        relations = store.fetch_relations([r["id"] for r in ranked])
    except Exception as e:
        logger.error("Relations fetch error: %s", e)
        raise UpstreamError(f"Failed to fetch event details: {e}")

    events = apply_filters(merge_ranked(ranked, relations), query)
    # total counts the filtered current page only; the ranking function returns no global count
    return {
        "events": events,
        "pagination": build_pagination(query.page, query.limit, len(events)),
        "search": search,
    }
