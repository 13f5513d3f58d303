"""Tax categories, zones, rates and tax calculation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

TAX_INCLUSIVE_PRICING = "tax_inclusive"
_BPS_SCALE = 10000


@dataclass
class TaxCategory:
    """A category of goods that share a tax treatment."""

    id: uuid.UUID
    code: str
    name: str
    description: str


@dataclass
class TaxZone:
    """A jurisdiction in which a set of tax rates applies."""

    id: uuid.UUID
    code: str
    name: str
    country_code: str
    state: str
    city: str
    postal_code_pattern: str
    is_active: bool


@dataclass
class TaxRate:
    """A rate, in basis points, for a category within a zone."""

    id: uuid.UUID
    tax_zone_id: uuid.UUID
    tax_category_id: uuid.UUID
    name: str
    rate_bps: int
    is_inclusive: bool
    applies_to_delivery_fee: bool
    effective_from: str
    effective_to: Optional[str] = None
    is_active: bool = True


@dataclass
class TaxableItem:
    """An amount, in minor units, belonging to a tax category."""

    tax_category_id: uuid.UUID
    amount: int


@dataclass
class TaxLine:
    """One applied rate and the tax it produced."""

    tax_category_id: uuid.UUID
    tax_rate_name: str
    tax_rate_bps: int
    is_inclusive: bool
    taxable_amount: int
    tax_amount: int


@dataclass
class TaxCalculation:
    """The outcome of a tax calculation."""

    item_tax: int = 0
    delivery_tax: int = 0
    total_tax: int = 0
    tax_lines: list[TaxLine] = field(default_factory=list)


@dataclass
class CalculateTaxRequest:
    """Inputs for a tax calculation."""

    tax_zone_id: uuid.UUID
    items: Sequence[TaxableItem] = ()
    delivery_fee: int = 0
    pricing_mode: str = ""


class TaxError(Exception):
    """Raised when a tax calculation cannot be carried out."""


class _TaxStore(Protocol):
    def list_categories(self) -> list[TaxCategory]: ...

    def list_zones(self) -> list[TaxZone]: ...

    def list_rates(self, tax_zone_id: uuid.UUID) -> list[TaxRate]: ...


def _div_trunc(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return -quotient if (numerator < 0) != (denominator < 0) else quotient


def _tax_amount(amount: int, rate_bps: int, is_inclusive: bool, pricing_mode: str) -> int:
    if is_inclusive or pricing_mode == TAX_INCLUSIVE_PRICING:
        # The amount already contains the tax: extract it.
        return _div_trunc(amount * rate_bps, _BPS_SCALE + rate_bps)
    return _div_trunc(amount * rate_bps, _BPS_SCALE)


def _line(category_id: uuid.UUID, rate: TaxRate, amount: int, pricing_mode: str) -> TaxLine:
    return TaxLine(
        tax_category_id=category_id,
        tax_rate_name=rate.name,
        tax_rate_bps=rate.rate_bps,
        is_inclusive=rate.is_inclusive,
        taxable_amount=amount,
        tax_amount=_tax_amount(amount, rate.rate_bps, rate.is_inclusive, pricing_mode),
    )


class TaxService:
    """Tax reference data and order tax calculation."""

    def __init__(self, repo: _TaxStore) -> None:
        self._repo = repo

    def list_tax_categories(self) -> list[TaxCategory]:
        """Return all tax categories."""
        return self._repo.list_categories()

    def list_tax_zones(self) -> list[TaxZone]:
        """Return all active tax zones."""
        return self._repo.list_zones()

    def list_tax_rates(self, tax_zone_id: uuid.UUID) -> list[TaxRate]:
        """Return the active rates of a zone."""
        return self._repo.list_rates(tax_zone_id)

    def calculate_tax(self, request: CalculateTaxRequest) -> TaxCalculation:
        """Compute item and delivery tax for an order in one zone.

        Each item is taxed by the first rate of its category; the delivery fee
        by the first rate that applies to delivery fees.
        """
        try:
            rates = self._repo.list_rates(request.tax_zone_id)
        except Exception as exc:
            raise TaxError(f"failed to get tax rates: {exc}") from exc

        calc = TaxCalculation()
        for item in request.items:
            rate = next((r for r in rates if r.tax_category_id == item.tax_category_id), None)
            if rate is None:
                continue
            line = _line(item.tax_category_id, rate, item.amount, request.pricing_mode)
            calc.item_tax += line.tax_amount
            calc.tax_lines.append(line)

        delivery_rate = next((r for r in rates if r.applies_to_delivery_fee), None)
        if delivery_rate is not None:
            line = _line(
                delivery_rate.tax_category_id,
                delivery_rate,
                request.delivery_fee,
                request.pricing_mode,
            )
            calc.delivery_tax = line.tax_amount
            calc.tax_lines.append(line)

        calc.total_tax = calc.item_tax + calc.delivery_tax
        return calc