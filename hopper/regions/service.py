"""Region lookup and region-specific configuration."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Protocol


@dataclass
class Region:
    """A geographic region the platform operates in."""

    id: uuid.UUID
    code: str
    name: str
    country_code: str
    timezone: str
    currency_code: str
    is_active: bool


@dataclass
class RegionConfig:
    """Per-region business settings."""

    region_id: uuid.UUID
    platform_fee_basis_points: int
    default_delivery_window_minutes: int
    order_activation_lead_minutes: int
    allow_scheduled_orders: bool
    delivery_fee_taxable_default: bool


class RegionError(Exception):
    """Raised when a region or its configuration cannot be retrieved."""


class _RegionStore(Protocol):
    def list_active(self) -> list[Region]: ...

    def get_by_id(self, region_id: uuid.UUID) -> Region: ...

    def get_config(self, region_id: uuid.UUID) -> RegionConfig: ...


class RegionService:
    """Read access to regions and their configuration."""

    def __init__(self, repo: _RegionStore) -> None:
        self._repo = repo

    def list_regions(self) -> list[Region]:
        """Return all active regions."""
        return self._repo.list_active()

    def get_region(self, region_id: uuid.UUID) -> Region:
        """Return the region with the given id."""
        try:
            return self._repo.get_by_id(region_id)
        except Exception as exc:
            raise RegionError(f"failed to get region: {exc}") from exc

    def get_region_config(self, region_id: uuid.UUID) -> RegionConfig:
        """Return the configuration of the given region."""
        try:
            return self._repo.get_config(region_id)
        except Exception as exc:
            raise RegionError(f"failed to get region config: {exc}") from exc