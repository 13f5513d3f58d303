"""SQL storage for tax categories, zones and rates."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from hopper.tax.service import TaxCategory, TaxRate, TaxZone


def _as_uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class SqlTaxRepository:
    """Tax repository backed by an SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def list_categories(self) -> list[TaxCategory]:
        """Return all tax categories ordered by code."""
        query = text("SELECT id, code, name, description FROM tax_categories ORDER BY code")
        with self._engine.connect() as conn:
            return [
                TaxCategory(id=_as_uuid(id_), code=code, name=name, description=description)
                for id_, code, name, description in conn.execute(query)
            ]

    def list_zones(self) -> list[TaxZone]:
        """Return active, non-deleted tax zones ordered by name."""
        query = text(
            "SELECT id, code, name, country_code, state_or_province, city, "
            "postal_code_pattern, is_active FROM tax_zones "
            "WHERE is_active = true AND deleted_at IS NULL ORDER BY name"
        )
        with self._engine.connect() as conn:
            return [
                TaxZone(
                    id=_as_uuid(id_),
                    code=code,
                    name=name,
                    country_code=country_code,
                    state=state,
                    city=city,
                    postal_code_pattern=pattern,
                    is_active=bool(is_active),
                )
                for id_, code, name, country_code, state, city, pattern, is_active in conn.execute(
                    query
                )
            ]

    def list_rates(self, tax_zone_id: uuid.UUID) -> list[TaxRate]:
        """Return active, non-deleted rates of a zone ordered by name."""
        query = text(
            "SELECT id, tax_zone_id, tax_category_id, name, rate_bps, is_inclusive, "
            "applies_to_delivery_fee, effective_from, effective_to, is_active "
            "FROM tax_rates "
            "WHERE tax_zone_id = :zone AND is_active = true AND deleted_at IS NULL "
            "ORDER BY name"
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query, {"zone": str(tax_zone_id)})
            return [
                TaxRate(
                    id=_as_uuid(row[0]),
                    tax_zone_id=_as_uuid(row[1]),
                    tax_category_id=_as_uuid(row[2]),
                    name=row[3],
                    rate_bps=int(row[4]),
                    is_inclusive=bool(row[5]),
                    applies_to_delivery_fee=bool(row[6]),
                    effective_from=str(row[7]),
                    effective_to=_as_text(row[8]),
                    is_active=bool(row[9]),
                )
                for row in rows
            ]