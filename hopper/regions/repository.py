"""SQL storage for regions and region configuration."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine

from hopper.regions.service import Region, RegionConfig

_REGION_COLUMNS = "id, code, name, country_code, timezone, currency_code, is_active"


def _as_uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _region_from_row(row: Any) -> Region:
    id_, code, name, country_code, timezone, currency_code, is_active = row
    return Region(
        id=_as_uuid(id_),
        code=code,
        name=name,
        country_code=country_code,
        timezone=timezone,
        currency_code=currency_code,
        is_active=bool(is_active),
    )


class SqlRegionRepository:
    """Region repository backed by an SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def list_active(self) -> list[Region]:
        """Return active, non-deleted regions ordered by name."""
        query = text(
            f"SELECT {_REGION_COLUMNS} FROM regions "
            "WHERE is_active = true AND deleted_at IS NULL "
            "ORDER BY name"
        )
        with self._engine.connect() as conn:
            return [_region_from_row(row) for row in conn.execute(query)]

    def get_by_id(self, region_id: uuid.UUID) -> Region:
        """Return a non-deleted region; raise LookupError if there is none."""
        query = text(
            f"SELECT {_REGION_COLUMNS} FROM regions "
            "WHERE id = :id AND deleted_at IS NULL"
        )
        with self._engine.connect() as conn:
            row = conn.execute(query, {"id": str(region_id)}).first()
        if row is None:
            raise LookupError(f"region {region_id} not found")
        return _region_from_row(row)

    def get_config(self, region_id: uuid.UUID) -> RegionConfig:
        """Return the configuration of a region; raise LookupError if there is none."""
        query = text(
            "SELECT region_id, platform_fee_basis_points, default_delivery_window_minutes, "
            "order_activation_lead_minutes, allow_scheduled_orders, delivery_fee_taxable_default "
            "FROM region_configs WHERE region_id = :region_id"
        )
        with self._engine.connect() as conn:
            row = conn.execute(query, {"region_id": str(region_id)}).first()
        if row is None:
            raise LookupError(f"configuration for region {region_id} not found")
        rid, fee_bps, window, lead, scheduled, fee_taxable = row
        return RegionConfig(
            region_id=_as_uuid(rid),
            platform_fee_basis_points=int(fee_bps),
            default_delivery_window_minutes=int(window),
            order_activation_lead_minutes=int(lead),
            allow_scheduled_orders=bool(scheduled),
            delivery_fee_taxable_default=bool(fee_taxable),
        )