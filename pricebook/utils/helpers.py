"""
General helper utilities
"""
from datetime import date
from decimal import Decimal
from typing import Optional

from pricebook.models.price_list import PriceListKind


def format_price(amount: Optional[Decimal]) -> str:
    """Format a price for titles and log lines"""
    if amount is None:
        return "-"
    return f"{amount:,.2f}"


def default_title(kind: PriceListKind, scope_name: str, effective_date: date) -> str:
    """Title used when the caller opens a new list without naming it"""
    stamp = effective_date.strftime("%d.%m.%Y")
    if kind == PriceListKind.SALES_GENERAL:
        return f"General price list from {stamp}"
    if kind == PriceListKind.SALES_CUSTOMER:
        return f"Price list {scope_name} from {stamp}"
    return f"Purchase price list {scope_name} from {stamp}"


def price_change(old: Optional[Decimal], new: Optional[Decimal]) -> tuple[Optional[Decimal], Optional[float], str]:
    """(change, change_percent, status) between two versions of one product's price"""
    if old is None and new is None:
        return None, None, "unchanged"
    if old is None:
        return None, None, "new"
    if new is None:
        return None, None, "removed"
    change = new - old
    change_pct = round(float(change / old * 100), 1) if old > 0 else 0.0
    if change > 0:
        status = "increased"
    elif change < 0:
        status = "decreased"
    else:
        status = "unchanged"
    return change, change_pct, status
