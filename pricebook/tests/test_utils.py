"""
Validator and helper tests
"""
from datetime import date
from decimal import Decimal

import pytest

from pricebook.models.price_list import PriceListKind
from pricebook.services.errors import InvalidPrice, InvalidScope
from pricebook.utils.helpers import default_title, format_price, price_change
from pricebook.utils.validators import normalize_scope, to_price


def test_to_price_rounds_to_cents():
    assert to_price("12.345") == Decimal("12.35")
    assert to_price("0.125") == Decimal("0.13")
    assert to_price("12.344") == Decimal("12.34")
    assert to_price(7) == Decimal("7.00")


@pytest.mark.parametrize("value", ["abc", None, "NaN", "sNaN", "Infinity", float("-inf"), -0.5])
def test_to_price_rejects(value):
    with pytest.raises(InvalidPrice) as exc:
        to_price(value, "P100")
    assert exc.value.product_ids == ["P100"]


def test_normalize_scope():
    assert normalize_scope(PriceListKind.SALES_GENERAL, "anything") == "GENERAL"
    assert normalize_scope(PriceListKind.PURCHASE, " A ") == "A"
    with pytest.raises(InvalidScope):
        normalize_scope(PriceListKind.SALES_CUSTOMER, "")


def test_default_title():
    assert default_title(PriceListKind.PURCHASE, "Zeta Meat", date(2024, 3, 1)) == (
        "Purchase price list Zeta Meat from 01.03.2024"
    )


def test_price_change():
    assert price_change(Decimal("50"), Decimal("55")) == (Decimal("5"), 10.0, "increased")
    assert price_change(Decimal("50"), Decimal("45"))[2] == "decreased"
    assert price_change(None, Decimal("1")) == (None, None, "new")
    assert price_change(Decimal("1"), None) == (None, None, "removed")
    assert format_price(Decimal("1234.5")) == "1,234.50"
    assert format_price(None) == "-"
