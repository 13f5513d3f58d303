"""SQL storage for restaurants, their opening hours and rating statistics."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.engine import Engine

from hopper.restaurants.service import Restaurant, RestaurantHour, SearchRequest

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100

_RESTAURANT_COLUMNS = (
    "id, owner_id, name, description, cuisine_type, street_address, city, "
    "state_or_province, postal_code, country_code, latitude, longitude, phone, email, "
    "region_id, currency_code, timezone, is_active, is_approved, approved_at"
)
_SORT_COLUMN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_SORT_ORDERS = ("asc", "desc")


def _as_uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _as_optional_uuid(value: Any) -> Optional[uuid.UUID]:
    return None if value is None else _as_uuid(value)


def _as_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _uuid_param(value: Optional[uuid.UUID]) -> Optional[str]:
    return None if value is None else str(value)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _page(limit: int, offset: int) -> tuple[int, int]:
    if limit <= 0:
        limit = DEFAULT_PAGE_LIMIT
    limit = min(limit, MAX_PAGE_LIMIT)
    return limit, max(offset, 0)


def _restaurant_from_row(row: Any) -> Restaurant:
    (
        id_, owner_id, name, description, cuisine_type, street, city, state, postal,
        country, lat, lon, phone, email, region_id, currency, tz, active, approved,
        approved_at,
    ) = row
    return Restaurant(
        id=_as_uuid(id_),
        owner_id=_as_uuid(owner_id),
        name=name,
        description=description,
        cuisine_type=cuisine_type,
        street_address=street,
        city=city,
        state=state,
        postal_code=postal,
        country_code=country,
        latitude=_as_float(lat),
        longitude=_as_float(lon),
        phone=phone,
        email=email,
        region_id=_as_optional_uuid(region_id),
        currency_code=currency,
        timezone=tz,
        is_active=bool(active),
        is_approved=bool(approved),
        approved_at=_as_text(approved_at),
    )


def _hour_from_row(row: Any) -> RestaurantHour:
    id_, restaurant_id, day, open_time, close_time, is_closed = row
    return RestaurantHour(
        id=_as_uuid(id_),
        restaurant_id=_as_uuid(restaurant_id),
        day_of_week=int(day),
        open_time=open_time,
        close_time=close_time,
        is_closed=bool(is_closed),
    )


def _order_clause(request: SearchRequest) -> str:
    sort_by, sort_order = request.sort_by, request.sort_order
    if not _SORT_COLUMN.fullmatch(sort_by or ""):
        raise ValueError(f"invalid sort column: {sort_by!r}")
    if (sort_order or "").lower() not in _SORT_ORDERS:
        raise ValueError(f"invalid sort order: {sort_order!r}")
    column = "avg_rating" if sort_by == "rating" else sort_by
    return f"ORDER BY {column} {sort_order}"


class SqlRestaurantRepository:
    """Restaurant repository backed by an SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def create(self, restaurant: Restaurant) -> None:
        """Insert a new restaurant."""
        query = text(
            "INSERT INTO restaurants (id, owner_id, name, description, cuisine_type, "
            "street_address, city, state_or_province, postal_code, country_code, latitude, "
            "longitude, phone, email, region_id, currency_code, timezone, is_active, "
            "is_approved, created_at, updated_at) "
            "VALUES (:id, :owner_id, :name, :description, :cuisine_type, :street, :city, "
            ":state, :postal, :country, :lat, :lon, :phone, :email, :region_id, :currency, "
            ":tz, :is_active, :is_approved, :now, :now)"
        ).bindparams(bindparam("now", type_=DateTime()))
        params = {
            "id": str(restaurant.id),
            "owner_id": str(restaurant.owner_id),
            "name": restaurant.name,
            "description": restaurant.description,
            "cuisine_type": restaurant.cuisine_type,
            "street": restaurant.street_address,
            "city": restaurant.city,
            "state": restaurant.state,
            "postal": restaurant.postal_code,
            "country": restaurant.country_code,
            "lat": restaurant.latitude,
            "lon": restaurant.longitude,
            "phone": restaurant.phone,
            "email": restaurant.email,
            "region_id": _uuid_param(restaurant.region_id),
            "currency": restaurant.currency_code,
            "tz": restaurant.timezone,
            "is_active": restaurant.is_active,
            "is_approved": restaurant.is_approved,
            "now": _now(),
        }
        with self._engine.begin() as conn:
            conn.execute(query, params)

    def get_by_id(self, restaurant_id: uuid.UUID) -> Restaurant:
        """Return a non-deleted restaurant; raise LookupError if there is none."""
        query = text(
            f"SELECT {_RESTAURANT_COLUMNS} FROM restaurants "
            "WHERE id = :id AND deleted_at IS NULL"
        )
        with self._engine.connect() as conn:
            row = conn.execute(query, {"id": str(restaurant_id)}).first()
        if row is None:
            raise LookupError(f"restaurant {restaurant_id} not found")
        return _restaurant_from_row(row)

    def list_by_region(
        self, region_id: uuid.UUID, limit: int, offset: int
    ) -> list[Restaurant]:
        """Return one page of active, approved restaurants in a region, by name."""
        limit, offset = _page(limit, offset)
        query = text(
            f"SELECT {_RESTAURANT_COLUMNS} FROM restaurants "
            "WHERE region_id = :region_id AND is_active = true AND is_approved = true "
            "AND deleted_at IS NULL ORDER BY name LIMIT :limit OFFSET :offset"
        )
        params = {"region_id": str(region_id), "limit": limit, "offset": offset}
        with self._engine.connect() as conn:
            return [_restaurant_from_row(row) for row in conn.execute(query, params)]

    def list_by_owner(
        self, owner_id: uuid.UUID, limit: int, offset: int
    ) -> list[Restaurant]:
        """Return one page of an owner's restaurants, newest first."""
        limit, offset = _page(limit, offset)
        query = text(
            f"SELECT {_RESTAURANT_COLUMNS} FROM restaurants "
            "WHERE owner_id = :owner_id AND deleted_at IS NULL "
            "ORDER BY created_at DESC LIMIT :limit OFFSET :offset"
        )
        params = {"owner_id": str(owner_id), "limit": limit, "offset": offset}
        with self._engine.connect() as conn:
            return [_restaurant_from_row(row) for row in conn.execute(query, params)]

    def update(self, restaurant: Restaurant) -> None:
        """Store a restaurant's editable details."""
        query = text(
            "UPDATE restaurants SET name = :name, description = :description, "
            "cuisine_type = :cuisine_type, street_address = :street, city = :city, "
            "state_or_province = :state, postal_code = :postal, country_code = :country, "
            "latitude = :lat, longitude = :lon, phone = :phone, email = :email, "
            "timezone = :tz, updated_at = :now WHERE id = :id"
        ).bindparams(bindparam("now", type_=DateTime()))
        params = {
            "id": str(restaurant.id),
            "name": restaurant.name,
            "description": restaurant.description,
            "cuisine_type": restaurant.cuisine_type,
            "street": restaurant.street_address,
            "city": restaurant.city,
            "state": restaurant.state,
            "postal": restaurant.postal_code,
            "country": restaurant.country_code,
            "lat": restaurant.latitude,
            "lon": restaurant.longitude,
            "phone": restaurant.phone,
            "email": restaurant.email,
            "tz": restaurant.timezone,
            "now": _now(),
        }
        with self._engine.begin() as conn:
            conn.execute(query, params)

    def delete_hours(self, restaurant_id: uuid.UUID) -> None:
        """Remove all opening hours of a restaurant."""
        query = text("DELETE FROM restaurant_hours WHERE restaurant_id = :restaurant_id")
        with self._engine.begin() as conn:
            conn.execute(query, {"restaurant_id": str(restaurant_id)})

    def create_hour(self, hour: RestaurantHour) -> None:
        """Insert one day's opening hours under a freshly generated id."""
        query = text(
            "INSERT INTO restaurant_hours (id, restaurant_id, day_of_week, open_time, "
            "close_time, is_closed, created_at, updated_at) "
            "VALUES (:id, :restaurant_id, :day, :open_time, :close_time, :is_closed, :now, :now)"
        ).bindparams(bindparam("now", type_=DateTime()))
        params = {
            "id": str(uuid.uuid4()),
            "restaurant_id": _uuid_param(hour.restaurant_id),
            "day": hour.day_of_week,
            "open_time": hour.open_time,
            "close_time": hour.close_time,
            "is_closed": hour.is_closed,
            "now": _now(),
        }
        with self._engine.begin() as conn:
            conn.execute(query, params)

    def list_hours(self, restaurant_id: uuid.UUID) -> list[RestaurantHour]:
        """Return a restaurant's opening hours ordered by day of week."""
        query = text(
            "SELECT id, restaurant_id, day_of_week, open_time, close_time, is_closed "
            "FROM restaurant_hours WHERE restaurant_id = :restaurant_id ORDER BY day_of_week"
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query, {"restaurant_id": str(restaurant_id)})
            return [_hour_from_row(row) for row in rows]

    def search(self, request: SearchRequest) -> tuple[list[Restaurant], int]:
        """Return one page of matching restaurants and the total number of matches.

        Raises ValueError if the sort column or order is not acceptable.
        """
        conditions = ["deleted_at IS NULL", "is_active = true", "is_approved = true"]
        params: dict[str, Any] = {}
        if request.region_id is not None:
            conditions.append("region_id = :region_id")
            params["region_id"] = str(request.region_id)
        if request.cuisine_type is not None:
            conditions.append("cuisine_type = :cuisine_type")
            params["cuisine_type"] = request.cuisine_type
        if request.search_query is not None:
            conditions.append(
                "(lower(name) LIKE lower(:pattern) OR lower(description) LIKE lower(:pattern))"
            )
            params["pattern"] = f"%{request.search_query}%"

        where = " AND ".join(conditions)
        order = _order_clause(request)
        count_query = text(f"SELECT COUNT(*) FROM restaurants WHERE {where}")
        page_query = text(
            f"SELECT {_RESTAURANT_COLUMNS} FROM restaurants WHERE {where} "
            f"{order} LIMIT :limit OFFSET :offset"
        )
        with self._engine.connect() as conn:
            total = int(conn.execute(count_query, params).scalar_one())
            rows = conn.execute(
                page_query, {**params, "limit": request.limit, "offset": request.offset}
            )
            restaurants = [_restaurant_from_row(row) for row in rows]
        return restaurants, total

    def get_rating_stats(self, restaurant_id: uuid.UUID) -> dict[str, Any]:
        """Return review count, average and per-star counts for a restaurant."""
        query = text(
            "SELECT COUNT(*), COALESCE(AVG(rating), 0), "
            "COUNT(CASE WHEN rating = 5 THEN 1 END), "
            "COUNT(CASE WHEN rating = 4 THEN 1 END), "
            "COUNT(CASE WHEN rating = 3 THEN 1 END), "
            "COUNT(CASE WHEN rating = 2 THEN 1 END), "
            "COUNT(CASE WHEN rating = 1 THEN 1 END) "
            "FROM reviews WHERE target_type = 'restaurant' AND target_id = :target_id "
            "AND deleted_at IS NULL"
        )
        with self._engine.connect() as conn:
            row = conn.execute(query, {"target_id": str(restaurant_id)}).one()
        total, average, five, four, three, two, one = row
        return {
            "total_reviews": int(total),
            "average_rating": float(average),
            "five_star_count": int(five),
            "four_star_count": int(four),
            "three_star_count": int(three),
            "two_star_count": int(two),
            "one_star_count": int(one),
        }