"""
Input validation utilities
"""
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from pricebook.config import get_settings
from pricebook.models.price_list import PriceListKind
from pricebook.services.errors import InvalidPrice, InvalidScope, MissingEffectiveDate

settings = get_settings()

PRICE_QUANT = Decimal("0.01")


def normalize_scope(kind: PriceListKind, scope_key: Optional[str]) -> str:
    """Return the stored scope key for a kind; the general list has a fixed one."""
    kind = PriceListKind(kind)
    if kind == PriceListKind.SALES_GENERAL:
        return settings.GENERAL_SCOPE_KEY
    key = str(scope_key).strip() if scope_key is not None else ""
    if not key:
        owner = "Supplier" if kind == PriceListKind.PURCHASE else "Customer"
        raise InvalidScope(f"{owner} id is required for a {kind.value} price list")
    return key


def to_price(value, product_id: Optional[str] = None) -> Decimal:
    """Parse a price into a 2-place Decimal, half-up. Negative prices are never valid."""
    try:
        price = Decimal(str(value))
        if not price.is_finite():
            raise InvalidOperation
        price = price.quantize(PRICE_QUANT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidPrice(
            f"Price {value!r} is not a number",
            [product_id] if product_id else None,
        )
    if price < 0:
        raise InvalidPrice(
            f"Price must not be negative (got {price})",
            [product_id] if product_id else None,
        )
    return price


def require_effective_date(effective_date: Optional[date]) -> date:
    if effective_date is None:
        raise MissingEffectiveDate("Effective date is required")
    return effective_date
