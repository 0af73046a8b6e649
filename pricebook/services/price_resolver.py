"""
Temporal price resolution.

Answers "what price applies to product P under scope S as of date D".
Sales prices check the customer's list first and fall back to the
general list per product. Nothing is cached: each call reads the latest
committed versions.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from pricebook.models.price_list import PriceList, PriceListKind
from pricebook.services.price_list_store import PriceListStore, price_list_store
from pricebook.utils.validators import normalize_scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedPrice:
    product_id: str
    price: Decimal
    source: PriceListKind
    scope_key: str
    price_list_id: int
    effective_date: date  # date the row came into force


def resolve_in_versions(
    versions: Sequence[PriceList], product_id: str, as_of: date
) -> Optional[ResolvedPrice]:
    """
    Resolve one product against the saved versions of a single scope,
    newest first, all effective on or before `as_of`.

    The newest version decides. If it omits the product there is no
    price. If its row is dated after `as_of` the row is not in force yet
    and the previous version is asked instead. A row dated before its
    list counts from the list's effective date.
    """
    for pl in versions:
        item = pl.item_for(product_id)
        if item is None:
            return None
        # a row never takes effect before its list
        in_force_from = max(item.row_date or pl.effective_date, pl.effective_date)
        if in_force_from <= as_of:
            return ResolvedPrice(
                product_id=product_id,
                price=item.price,
                source=pl.kind,
                scope_key=pl.scope_key,
                price_list_id=pl.id,
                effective_date=in_force_from,
            )
    return None


class PriceResolver:

    def __init__(self, store: PriceListStore = price_list_store):
        self.store = store

    async def resolve_purchase_price(
        self, db: AsyncSession, supplier_id: str, product_id: str, as_of: date
    ) -> Optional[ResolvedPrice]:
        return await self._resolve(db, PriceListKind.PURCHASE, supplier_id, product_id, as_of)

    async def resolve_sales_price(
        self, db: AsyncSession, customer_id: Optional[str], product_id: str, as_of: date
    ) -> Optional[ResolvedPrice]:
        """Customer list first (only if it prices the product), then the general list."""
        if customer_id:
            resolved = await self._resolve(
                db, PriceListKind.SALES_CUSTOMER, customer_id, product_id, as_of
            )
            if resolved is not None:
                return resolved
        return await self._resolve(db, PriceListKind.SALES_GENERAL, None, product_id, as_of)

    async def resolve_sales_sheet(
        self, db: AsyncSession, customer_id: Optional[str], as_of: date
    ) -> list[ResolvedPrice]:
        """Every product priced for the customer as of a date, customer rows winning."""
        customer_versions: list[PriceList] = []
        if customer_id:
            customer_versions = await self._versions(
                db, PriceListKind.SALES_CUSTOMER, customer_id, as_of
            )
        general_versions = await self._versions(db, PriceListKind.SALES_GENERAL, None, as_of)

        product_ids: dict[str, None] = {}
        for versions in (customer_versions, general_versions):
            if versions:
                product_ids.update((item.product_id, None) for item in versions[0].items)

        sheet = []
        for product_id in product_ids:
            resolved = resolve_in_versions(customer_versions, product_id, as_of)
            if resolved is None:
                resolved = resolve_in_versions(general_versions, product_id, as_of)
            if resolved is not None:
                sheet.append(resolved)
        return sheet

    async def _resolve(
        self,
        db: AsyncSession,
        kind: PriceListKind,
        scope_key: Optional[str],
        product_id: str,
        as_of: date,
    ) -> Optional[ResolvedPrice]:
        versions = await self._versions(db, kind, scope_key, as_of)
        resolved = resolve_in_versions(versions, product_id, as_of)
        if resolved is None:
            logger.debug(f"No {kind.value} price for {product_id} in scope {scope_key} as of {as_of}")
        return resolved

    async def _versions(
        self, db: AsyncSession, kind: PriceListKind, scope_key: Optional[str], as_of: date
    ) -> list[PriceList]:
        return await self.store.saved_versions(db, kind, [normalize_scope(kind, scope_key)], as_of)


# Singleton instance
price_resolver = PriceResolver()
