"""
Version lifecycle manager: get-or-create for editing, wholesale save,
promotion to current and new versions derived from existing ones.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pricebook.config import get_settings
from pricebook.models.customer import Customer
from pricebook.models.price_list import PriceList, PriceListItem, PriceListKind, PriceListStatus, utcnow
from pricebook.models.supplier import Supplier
from pricebook.services.errors import (
    ConcurrentPromotion,
    DuplicateProductInList,
    EffectiveDateConflict,
    EmptyPriceList,
    InvalidPrice,
    PriceListLocked,
)
from pricebook.services.price_list_store import PriceListStore, price_list_store
from pricebook.utils.helpers import default_title, format_price, price_change
from pricebook.utils.validators import normalize_scope, require_effective_date, to_price

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class ItemInput:
    product_id: str
    price: Any = None
    row_date: Optional[date] = None


class VersionManager:
    """Operations the editing screens call; built on the store."""

    def __init__(self, store: PriceListStore = price_list_store):
        self.store = store

    async def open_for_editing(
        self,
        db: AsyncSession,
        kind: PriceListKind,
        scope_key: Optional[str],
        effective_date: date,
        title_if_new: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> PriceList:
        """
        Return an editable (non-current, non-superseded) list for the scope.

        1. one already dated `effective_date` is returned as is;
        2. else an editable draft with another date is moved to this date;
        3. else a new draft is created, seeded with the current list's items.

        Calling twice without a save in between yields the same list.
        """
        kind = PriceListKind(kind)
        scope_key = normalize_scope(kind, scope_key)
        require_effective_date(effective_date)

        same_date = await self.store.find_editable(db, kind, scope_key, effective_date)
        if same_date:
            return same_date

        draft = await self.store.find_editable(db, kind, scope_key, drafts_only=True)
        if draft:
            old_date = draft.effective_date
            draft.effective_date = effective_date
            draft.updated_by = actor or settings.DEFAULT_ACTOR
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                winner = await self.store.find_editable(db, kind, scope_key, effective_date)
                if winner is None:
                    raise
                return winner
            logger.info(f"Moved draft price list {draft.id} from {old_date} to {effective_date}")
            return await self.store.get(db, draft.id)

        current = await self.store.get_current(db, kind, scope_key)
        title = title_if_new or default_title(
            kind, await self._scope_name(db, kind, scope_key), effective_date
        )
        return await self.store.create(
            db,
            kind,
            scope_key,
            effective_date,
            title=title,
            actor=actor,
            seed_items=current.items if current else (),
        )

    async def save(
        self,
        db: AsyncSession,
        list_id: int,
        items: Iterable[ItemInput],
        effective_date: Optional[date] = None,
        make_current: bool = False,
        title: Optional[str] = None,
        actor: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> PriceList:
        """
        Replace the item set wholesale, set the date and mark the list SAVED;
        optionally promote it. Everything is validated before the first
        write, and the whole change is one transaction.
        """
        actor = actor or settings.DEFAULT_ACTOR
        pl = await self.store.get(db, list_id)
        if not pl.is_editable:
            state = "current" if pl.is_current else "superseded"
            raise PriceListLocked(f"Price list {list_id} is {state}; open a new version to edit it")

        new_date = require_effective_date(effective_date or pl.effective_date)
        prices = self._validate_items(items, make_current)

        if new_date != pl.effective_date:
            await self._check_date_free(db, pl, new_date)

        try:
            self._reconcile_items(pl, prices, actor)
            pl.effective_date = new_date
            if title is not None:
                pl.title = title
            pl.status = PriceListStatus.SAVED
            pl.updated_by = actor
            pl.updated_at = utcnow()
            if make_current:
                await self.store.promote(db, pl, expected_revision, actor)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if make_current:
                raise ConcurrentPromotion(
                    f"Another price list became current for this scope while saving {list_id}"
                ) from e
            raise
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Saved price list {list_id} ({len(prices)} items, effective {new_date}"
            f"{', current' if make_current else ''}) by {actor}"
        )
        return await self.store.get(db, list_id)

    async def derive_version(
        self,
        db: AsyncSession,
        list_id: int,
        effective_date: date,
        title: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> PriceList:
        """New draft in the same scope seeded with the source list's items."""
        source = await self.store.get(db, list_id)
        return await self.store.create(
            db,
            source.kind,
            source.scope_key,
            effective_date,
            title=title or source.title,
            actor=actor,
            seed_items=source.items,
        )

    async def compare(self, db: AsyncSession, list_id_1: int, list_id_2: int) -> Dict[str, Any]:
        """Per-product price changes from the first list to the second."""
        old = await self.store.get(db, list_id_1)
        new = await self.store.get(db, list_id_2)
        prices_1 = {item.product_id: item.price for item in old.items}
        prices_2 = {item.product_id: item.price for item in new.items}

        comparisons = []
        for pid in list(dict.fromkeys([*prices_1, *prices_2])):
            old_price = prices_1.get(pid)
            new_price = prices_2.get(pid)
            change, change_pct, status = price_change(old_price, new_price)
            comparisons.append({
                "product_id": pid,
                "old_price": old_price,
                "new_price": new_price,
                "change": change,
                "change_percent": change_pct,
                "status": status,
            })

        comparisons.sort(key=lambda x: abs(x.get("change_percent") or 0), reverse=True)

        return {
            "comparisons": comparisons,
            "summary": {
                "total_products": len(comparisons),
                "increased": sum(1 for c in comparisons if c["status"] == "increased"),
                "decreased": sum(1 for c in comparisons if c["status"] == "decreased"),
                "unchanged": sum(1 for c in comparisons if c["status"] == "unchanged"),
                "new": sum(1 for c in comparisons if c["status"] == "new"),
                "removed": sum(1 for c in comparisons if c["status"] == "removed"),
            },
        }

    # ── internals ────────────────────────────────────────────────────

    @staticmethod
    def _validate_items(items: Iterable[ItemInput], make_current: bool) -> Dict[str, ItemInput]:
        items = list(items)
        if not items:
            raise EmptyPriceList("A price list needs at least one item")

        prices: Dict[str, ItemInput] = {}
        not_positive: list[str] = []
        for item in items:
            product_id = str(item.product_id)
            if product_id in prices:
                raise DuplicateProductInList(
                    f"Product {product_id} appears more than once", product_id
                )
            if item.price is None:
                value = None
            else:
                value = to_price(item.price, product_id)
            if value is None or value <= 0:
                not_positive.append(product_id)
            prices[product_id] = ItemInput(
                product_id=product_id,
                price=value if value is not None else Decimal("0.00"),
                row_date=item.row_date,
            )

        if make_current and not_positive:
            raise InvalidPrice(
                f"Cannot make the list current: {len(not_positive)} item(s) without a positive price",
                not_positive,
            )
        return prices

    @staticmethod
    def _reconcile_items(pl: PriceList, prices: Dict[str, ItemInput], actor: str) -> None:
        existing = {item.product_id: item for item in pl.items}
        for item in list(pl.items):
            if item.product_id not in prices:
                pl.items.remove(item)
        for product_id, wanted in prices.items():
            item = existing.get(product_id)
            if item is None:
                pl.items.append(PriceListItem(
                    product_id=product_id,
                    price=wanted.price,
                    row_date=wanted.row_date,
                    updated_by=actor,
                ))
            elif item.price != wanted.price or item.row_date != wanted.row_date:
                logger.debug(
                    f"List {pl.id}: {product_id} {format_price(item.price)} -> {format_price(wanted.price)}"
                )
                item.price = wanted.price
                item.row_date = wanted.row_date
                item.updated_by = actor

    async def _check_date_free(self, db: AsyncSession, pl: PriceList, new_date: date) -> None:
        """Two editable lists of one scope never share a date."""
        other = await self.store.find_editable(db, pl.kind, pl.scope_key, new_date)
        if other is not None and other.id != pl.id:
            raise EffectiveDateConflict(
                f"Price list {other.id} of the same scope is already being edited for {new_date}"
            )

    @staticmethod
    async def _scope_name(db: AsyncSession, kind: PriceListKind, scope_key: str) -> str:
        if kind == PriceListKind.PURCHASE:
            result = await db.execute(select(Supplier.name).where(Supplier.id == scope_key))
        elif kind == PriceListKind.SALES_CUSTOMER:
            result = await db.execute(select(Customer.name).where(Customer.id == scope_key))
        else:
            return scope_key
        return result.scalar_one_or_none() or scope_key


# Singleton instance
version_manager = VersionManager()
