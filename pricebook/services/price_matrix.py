"""
Cross-reference matrix: every supplier's purchase price, as of one date,
for the products of a sales price list.

Versions are loaded once and each (product, supplier) pair is resolved by
the pure `resolve_in_versions`. A pair that fails is logged and left out;
the rest of the matrix is still returned. The database reads are batched
up front, so there is no per-pair I/O: a failing read fails the whole
build and is not covered by the per-pair guard.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pricebook.models.price_list import PriceList, PriceListKind
from pricebook.models.supplier import Supplier
from pricebook.services.price_list_store import PriceListStore, price_list_store
from pricebook.services.price_resolver import resolve_in_versions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatrixSupplier:
    supplier_id: str
    name: str
    legal_name: Optional[str] = None


@dataclass(frozen=True)
class MatrixCell:
    product_id: str
    supplier_id: str
    price: Decimal
    price_list_id: int
    price_list_date: date


@dataclass
class PriceMatrix:
    as_of: date
    product_ids: list[str]
    suppliers: list[MatrixSupplier] = field(default_factory=list)
    cells: dict[tuple[str, str], MatrixCell] = field(default_factory=dict)

    def price(self, product_id: str, supplier_id: str) -> Optional[Decimal]:
        cell = self.cells.get((product_id, supplier_id))
        return cell.price if cell else None

    def row(self, product_id: str) -> list[MatrixCell]:
        """Cells of one product in supplier column order."""
        return [
            self.cells[(product_id, s.supplier_id)]
            for s in self.suppliers
            if (product_id, s.supplier_id) in self.cells
        ]


class PriceMatrixBuilder:

    def __init__(self, store: PriceListStore = price_list_store):
        self.store = store

    async def build_matrix(
        self, db: AsyncSession, product_ids: Iterable[str], as_of: date
    ) -> PriceMatrix:
        product_ids = list(dict.fromkeys(str(p) for p in product_ids))
        matrix = PriceMatrix(as_of=as_of, product_ids=product_ids)
        if not product_ids:
            return matrix

        carriers = await self.store.purchase_carriers(db, product_ids)
        supplier_ids = sorted({s for suppliers in carriers.values() for s in suppliers})
        if not supplier_ids:
            return matrix

        versions_by_supplier: dict[str, list[PriceList]] = {}
        for pl in await self.store.saved_versions(db, PriceListKind.PURCHASE, supplier_ids, as_of):
            versions_by_supplier.setdefault(pl.scope_key, []).append(pl)

        for product_id in product_ids:
            for supplier_id in sorted(carriers.get(product_id, ())):
                cell = self._resolve_pair(
                    versions_by_supplier.get(supplier_id, []), product_id, supplier_id, as_of
                )
                if cell is not None:
                    matrix.cells[(product_id, supplier_id)] = cell

        # a carrier keeps its column even when nothing resolves on this date
        matrix.suppliers = await self._suppliers(db, set(supplier_ids))
        logger.info(
            f"Built price matrix for {len(product_ids)} products x {len(matrix.suppliers)} suppliers "
            f"as of {as_of} ({len(matrix.cells)} prices)"
        )
        return matrix

    async def build_matrix_for_list(
        self, db: AsyncSession, list_id: int, as_of: Optional[date] = None
    ) -> PriceMatrix:
        """Matrix for a sales list's products, at the list's date unless told otherwise."""
        pl = await self.store.get(db, list_id)
        target = as_of or pl.effective_date or date.today()
        return await self.build_matrix(db, [item.product_id for item in pl.items], target)

    @staticmethod
    def _resolve_pair(
        versions: list[PriceList], product_id: str, supplier_id: str, as_of: date
    ) -> Optional[MatrixCell]:
        try:
            resolved = resolve_in_versions(versions, product_id, as_of)
        except Exception as e:
            logger.warning(
                f"Purchase price lookup failed for product {product_id} / supplier {supplier_id}: {e}"
            )
            return None
        if resolved is None:
            return None
        return MatrixCell(
            product_id=product_id,
            supplier_id=supplier_id,
            price=resolved.price,
            price_list_id=resolved.price_list_id,
            price_list_date=resolved.effective_date,
        )

    @staticmethod
    async def _suppliers(db: AsyncSession, supplier_ids: set[str]) -> list[MatrixSupplier]:
        """Supplier columns sorted by display name; unknown ids show as themselves."""
        if not supplier_ids:
            return []
        result = await db.execute(select(Supplier).where(Supplier.id.in_(supplier_ids)))
        known = {s.id: s for s in result.scalars().all()}
        suppliers = [
            MatrixSupplier(
                supplier_id=sid,
                name=known[sid].name if sid in known else sid,
                legal_name=known[sid].legal_name if sid in known else None,
            )
            for sid in supplier_ids
        ]
        suppliers.sort(key=lambda s: (s.name.casefold(), s.supplier_id))
        return suppliers


# Singleton instance
price_matrix_builder = PriceMatrixBuilder()
