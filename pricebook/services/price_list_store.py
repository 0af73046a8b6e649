"""
Price list store: durable CRUD on price lists and their items.

Owns the single-current invariant. Every public write runs as one
transaction on the given session: it commits on success and rolls back
on any error before re-raising.
"""
import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from pricebook.config import get_settings
from pricebook.models.price_list import (
    PriceList, PriceListItem, PriceListKind, PriceListScope, PriceListStatus, utcnow,
)
from pricebook.services.errors import (
    ConcurrentPromotion,
    DuplicateProductInList,
    EmptyPriceList,
    InvalidPrice,
    PriceListLocked,
    PriceListNotFound,
)
from pricebook.utils.validators import normalize_scope, require_effective_date, to_price

logger = logging.getLogger(__name__)
settings = get_settings()


class PriceListStore:

    # ── reads ────────────────────────────────────────────────────────

    async def get(self, db: AsyncSession, list_id: int) -> PriceList:
        """Load a list with its items, always from committed state."""
        result = await db.execute(
            select(PriceList)
            .where(PriceList.id == list_id)
            .execution_options(populate_existing=True)
        )
        pl = result.scalar_one_or_none()
        if pl is None:
            raise PriceListNotFound(f"Price list {list_id} not found")
        return pl

    async def get_current(
        self, db: AsyncSession, kind: PriceListKind, scope_key: Optional[str]
    ) -> Optional[PriceList]:
        scope_key = normalize_scope(kind, scope_key)
        result = await db.execute(
            select(PriceList)
            .where(
                PriceList.kind == kind,
                PriceList.scope_key == scope_key,
                PriceList.is_current == True,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_as_of(
        self, db: AsyncSession, kind: PriceListKind, scope_key: Optional[str], as_of: date
    ) -> Optional[PriceList]:
        """
        The saved version with the latest effective_date <= as_of.
        Ties go to the most recently created one. Superseded versions count:
        the current flag only marks the default going forward.
        """
        versions = await self.saved_versions(db, kind, [normalize_scope(kind, scope_key)], as_of, limit=1)
        return versions[0] if versions else None

    async def saved_versions(
        self,
        db: AsyncSession,
        kind: PriceListKind,
        scope_keys: Iterable[str],
        until: date,
        limit: Optional[int] = None,
    ) -> list[PriceList]:
        """Saved versions effective on or before `until`, newest first."""
        query = (
            select(PriceList)
            .where(
                PriceList.kind == kind,
                PriceList.scope_key.in_(list(scope_keys)),
                PriceList.status == PriceListStatus.SAVED,
                PriceList.effective_date <= until,
            )
            .order_by(PriceList.effective_date.desc(), PriceList.id.desc())
            .execution_options(populate_existing=True)
        )
        if limit:
            query = query.limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def list_versions(
        self,
        db: AsyncSession,
        kind: Optional[PriceListKind] = None,
        scope_key: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[PriceList]:
        """Price list journal, newest effective date first."""
        query = select(PriceList).order_by(
            PriceList.effective_date.desc(), PriceList.id.desc()
        )
        if kind:
            query = query.where(PriceList.kind == kind)
            if scope_key is not None or kind == PriceListKind.SALES_GENERAL:
                query = query.where(PriceList.scope_key == normalize_scope(kind, scope_key))
        elif scope_key:
            query = query.where(PriceList.scope_key == scope_key)
        if date_from:
            query = query.where(PriceList.effective_date >= date_from)
        if date_to:
            query = query.where(PriceList.effective_date <= date_to)

        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_scope_revision(
        self, db: AsyncSession, kind: PriceListKind, scope_key: Optional[str]
    ) -> int:
        scope_key = normalize_scope(kind, scope_key)
        result = await db.execute(
            select(PriceListScope.revision).where(
                PriceListScope.kind == kind,
                PriceListScope.scope_key == scope_key,
            )
        )
        return result.scalar_one_or_none() or 0

    async def find_editable(
        self,
        db: AsyncSession,
        kind: PriceListKind,
        scope_key: str,
        effective_date: Optional[date] = None,
        drafts_only: bool = False,
    ) -> Optional[PriceList]:
        """Newest list of the scope that is neither current nor superseded."""
        query = (
            select(PriceList)
            .where(
                PriceList.kind == kind,
                PriceList.scope_key == scope_key,
                PriceList.is_current == False,
                PriceList.superseded_at.is_(None),
            )
            .order_by(PriceList.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        if effective_date is not None:
            query = query.where(PriceList.effective_date == effective_date)
        if drafts_only:
            query = query.where(PriceList.status == PriceListStatus.DRAFT)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def purchase_carriers(
        self, db: AsyncSession, product_ids: Iterable[str]
    ) -> dict[str, set[str]]:
        """product_id -> suppliers that priced it in any purchase list, at any date."""
        result = await db.execute(
            select(PriceListItem.product_id, PriceList.scope_key)
            .join(PriceList, PriceListItem.price_list_id == PriceList.id)
            .where(
                PriceList.kind == PriceListKind.PURCHASE,
                PriceListItem.product_id.in_(list(product_ids)),
            )
            .distinct()
        )
        carriers: dict[str, set[str]] = {}
        for product_id, supplier_id in result.all():
            carriers.setdefault(product_id, set()).add(supplier_id)
        return carriers

    # ── writes ───────────────────────────────────────────────────────

    async def create(
        self,
        db: AsyncSession,
        kind: PriceListKind,
        scope_key: Optional[str],
        effective_date: date,
        title: Optional[str] = None,
        actor: Optional[str] = None,
        seed_items: Iterable[PriceListItem] = (),
    ) -> PriceList:
        """
        Get-or-create a DRAFT for (kind, scope_key, effective_date).

        The partial unique index on drafts is the idempotency key: when a
        concurrent caller inserts first, the loser re-reads and returns
        the winner's row instead of failing.
        """
        kind = PriceListKind(kind)
        scope_key = normalize_scope(kind, scope_key)
        require_effective_date(effective_date)
        actor = actor or settings.DEFAULT_ACTOR

        existing = await self.find_editable(db, kind, scope_key, effective_date, drafts_only=True)
        if existing:
            return existing

        pl = PriceList(
            kind=kind,
            scope_key=scope_key,
            title=title,
            effective_date=effective_date,
            status=PriceListStatus.DRAFT,
            is_current=False,
            created_by=actor,
            updated_by=actor,
            items=[
                PriceListItem(
                    product_id=src.product_id,
                    price=src.price,
                    row_date=src.row_date,
                    updated_by=actor,
                )
                for src in seed_items
            ],
        )
        db.add(pl)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            existing = await self.find_editable(db, kind, scope_key, effective_date, drafts_only=True)
            if existing is None:
                raise
            logger.info(f"Reused draft price list {existing.id} created concurrently for {kind.value}/{scope_key}")
            return existing

        await db.commit()
        logger.info(f"Created draft price list {pl.id} for {kind.value}/{scope_key} on {effective_date}")
        return await self.get(db, pl.id)

    async def add_item(
        self,
        db: AsyncSession,
        list_id: int,
        product_id: str,
        price,
        row_date: Optional[date] = None,
        actor: Optional[str] = None,
    ) -> PriceList:
        """Insert a product; fails if the list already prices it."""
        pl = await self._get_editable(db, list_id)
        if pl.item_for(product_id) is not None:
            raise DuplicateProductInList(
                f"Product {product_id} already exists in price list {list_id}", product_id
            )
        pl.items.append(PriceListItem(
            product_id=product_id,
            price=to_price(price, product_id),
            row_date=row_date,
            updated_by=actor or settings.DEFAULT_ACTOR,
        ))
        return await self._commit_items(db, pl, actor)

    async def add_or_update_item(
        self,
        db: AsyncSession,
        list_id: int,
        product_id: str,
        price,
        row_date: Optional[date] = None,
        actor: Optional[str] = None,
    ) -> PriceList:
        """Upsert by (list_id, product_id). Zero is tolerated until promotion."""
        pl = await self._get_editable(db, list_id)
        value = to_price(price, product_id)
        item = pl.item_for(product_id)
        if item is None:
            pl.items.append(PriceListItem(
                product_id=product_id,
                price=value,
                row_date=row_date,
                updated_by=actor or settings.DEFAULT_ACTOR,
            ))
        else:
            item.price = value
            item.row_date = row_date
            item.updated_by = actor or settings.DEFAULT_ACTOR
        return await self._commit_items(db, pl, actor)

    async def remove_item(
        self, db: AsyncSession, list_id: int, product_id: str, actor: Optional[str] = None
    ) -> PriceList:
        pl = await self._get_editable(db, list_id)
        item = pl.item_for(product_id)
        if item is None:
            raise PriceListNotFound(f"Product {product_id} is not in price list {list_id}")
        pl.items.remove(item)
        return await self._commit_items(db, pl, actor)

    async def set_current(
        self,
        db: AsyncSession,
        list_id: int,
        expected_revision: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> PriceList:
        """
        Make a list the current one of its scope in a single transaction.
        `expected_revision` is the scope revision the caller last read;
        a mismatch means someone else promoted in between.
        """
        try:
            pl = await self.get(db, list_id)
            await self.promote(db, pl, expected_revision, actor)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConcurrentPromotion(
                f"Another price list became current for this scope while promoting {list_id}"
            ) from e
        except Exception:
            await db.rollback()
            raise
        return await self.get(db, list_id)

    async def promote(
        self,
        db: AsyncSession,
        pl: PriceList,
        expected_revision: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> None:
        """Flip the current flag inside the caller's transaction. Does not commit."""
        if pl.is_current:
            return
        if pl.superseded_at is not None:
            raise PriceListLocked(f"Price list {pl.id} was superseded and cannot become current again")
        self.check_promotable(pl)
        actor = actor or settings.DEFAULT_ACTOR

        scope = await self._lock_scope(db, pl.kind, pl.scope_key)
        seen = scope.revision
        if expected_revision is not None and expected_revision != seen:
            logger.warning(
                f"Promotion of {pl.id} rejected: scope {pl.kind.value}/{pl.scope_key} "
                f"is at revision {seen}, caller expected {expected_revision}"
            )
            raise ConcurrentPromotion(
                f"Scope {pl.kind.value}/{pl.scope_key} changed (revision {seen}); reload and retry"
            )

        result = await db.execute(
            select(PriceList)
            .where(
                PriceList.kind == pl.kind,
                PriceList.scope_key == pl.scope_key,
                PriceList.is_current == True,
                PriceList.id != pl.id,
            )
            .with_for_update()
        )
        now = utcnow()
        for previous in result.scalars().all():
            previous.is_current = False
            previous.superseded_at = now
            previous.updated_by = actor
            logger.info(f"Price list {previous.id} superseded by {pl.id}")
        await db.flush()

        pl.is_current = True
        pl.status = PriceListStatus.SAVED
        pl.updated_by = actor

        bumped = await db.execute(
            update(PriceListScope)
            .where(PriceListScope.id == scope.id, PriceListScope.revision == seen)
            .values(revision=seen + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount != 1:
            raise ConcurrentPromotion(
                f"Scope {pl.kind.value}/{pl.scope_key} was promoted concurrently; reload and retry"
            )
        set_committed_value(scope, "revision", seen + 1)
        await db.flush()
        logger.info(f"Price list {pl.id} is now current for {pl.kind.value}/{pl.scope_key} (revision {seen + 1})")

    @staticmethod
    def check_promotable(pl: PriceList) -> None:
        require_effective_date(pl.effective_date)
        if not pl.items:
            raise EmptyPriceList(f"Price list {pl.id} has no items")
        bad = [item.product_id for item in pl.items if item.price is None or item.price <= 0]
        if bad:
            raise InvalidPrice(
                f"All prices must be greater than zero to make the list current "
                f"({len(bad)} invalid)",
                bad,
            )

    # ── internals ────────────────────────────────────────────────────

    async def _get_editable(self, db: AsyncSession, list_id: int) -> PriceList:
        pl = await self.get(db, list_id)
        if not pl.is_editable:
            state = "current" if pl.is_current else "superseded"
            raise PriceListLocked(f"Price list {list_id} is {state}; open a new version to edit it")
        return pl

    async def _commit_items(self, db: AsyncSession, pl: PriceList, actor: Optional[str]) -> PriceList:
        pl.updated_by = actor or settings.DEFAULT_ACTOR
        pl.updated_at = utcnow()
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise DuplicateProductInList(
                f"Price list {pl.id} already has a row for this product"
            ) from e
        return await self.get(db, pl.id)

    async def _lock_scope(self, db: AsyncSession, kind: PriceListKind, scope_key: str) -> PriceListScope:
        result = await db.execute(
            select(PriceListScope)
            .where(PriceListScope.kind == kind, PriceListScope.scope_key == scope_key)
            .with_for_update()
        )
        scope = result.scalar_one_or_none()
        if scope is None:
            scope = PriceListScope(kind=kind, scope_key=scope_key, revision=0)
            db.add(scope)
            await db.flush()
        return scope


# Singleton instance
price_list_store = PriceListStore()
