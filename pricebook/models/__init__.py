from pricebook.models.supplier import Supplier
from pricebook.models.customer import Customer
from pricebook.models.product import Product
from pricebook.models.price_list import (
    PriceList,
    PriceListItem,
    PriceListKind,
    PriceListScope,
    PriceListStatus,
)

__all__ = [
    "Supplier",
    "Customer",
    "Product",
    "PriceList",
    "PriceListItem",
    "PriceListKind",
    "PriceListScope",
    "PriceListStatus",
]
