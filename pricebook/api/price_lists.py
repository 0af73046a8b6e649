"""
Price list API endpoints - opening, editing, saving and promoting versions
"""
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel

from pricebook.database import get_db
from pricebook.models.customer import Customer
from pricebook.models.price_list import PriceList, PriceListKind, PriceListStatus
from pricebook.models.product import Product
from pricebook.models.supplier import Supplier
from pricebook.services.price_list_store import price_list_store
from pricebook.services.price_matrix import price_matrix_builder
from pricebook.services.version_manager import ItemInput, version_manager
from pricebook.api.prices import MatrixResponse, matrix_response

router = APIRouter()


class PriceListItemResponse(BaseModel):
    product_id: str
    product_name: Optional[str] = None
    price: Decimal
    row_date: Optional[date] = None


class PriceListResponse(BaseModel):
    id: int
    kind: PriceListKind
    scope_key: str
    scope_name: Optional[str] = None
    title: Optional[str] = None
    effective_date: Optional[date] = None
    status: PriceListStatus
    is_current: bool
    superseded_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    scope_revision: Optional[int] = None
    item_count: int = 0
    items: List[PriceListItemResponse] = []


class OpenPriceList(BaseModel):
    kind: PriceListKind
    scope_key: Optional[str] = None
    effective_date: date
    title: Optional[str] = None


class ItemPayload(BaseModel):
    product_id: str
    price: Optional[Decimal] = None
    row_date: Optional[date] = None


class ItemUpdate(BaseModel):
    price: Decimal
    row_date: Optional[date] = None


class SavePriceList(BaseModel):
    items: List[ItemPayload]
    effective_date: Optional[date] = None
    make_current: bool = False
    title: Optional[str] = None
    expected_revision: Optional[int] = None


class MakeCurrent(BaseModel):
    expected_revision: Optional[int] = None


class DeriveVersion(BaseModel):
    effective_date: date
    title: Optional[str] = None


async def _scope_names(db: AsyncSession, lists: List[PriceList]) -> dict:
    supplier_ids = {pl.scope_key for pl in lists if pl.kind == PriceListKind.PURCHASE}
    customer_ids = {pl.scope_key for pl in lists if pl.kind == PriceListKind.SALES_CUSTOMER}
    names = {}
    if supplier_ids:
        result = await db.execute(select(Supplier.id, Supplier.name).where(Supplier.id.in_(supplier_ids)))
        names.update({(PriceListKind.PURCHASE, sid): name for sid, name in result.all()})
    if customer_ids:
        result = await db.execute(select(Customer.id, Customer.name).where(Customer.id.in_(customer_ids)))
        names.update({(PriceListKind.SALES_CUSTOMER, cid): name for cid, name in result.all()})
    return names


async def build_response(
    db: AsyncSession, pl: PriceList, with_items: bool = True, names: Optional[dict] = None
) -> PriceListResponse:
    if names is None:
        names = await _scope_names(db, [pl])

    items = []
    scope_revision = None
    if with_items:
        product_ids = [item.product_id for item in pl.items]
        product_names = {}
        if product_ids:
            result = await db.execute(select(Product.id, Product.name).where(Product.id.in_(product_ids)))
            product_names = dict(result.all())
        items = [
            PriceListItemResponse(
                product_id=item.product_id,
                product_name=product_names.get(item.product_id),
                price=item.price,
                row_date=item.row_date,
            )
            for item in pl.items
        ]
        scope_revision = await price_list_store.get_scope_revision(db, pl.kind, pl.scope_key)

    return PriceListResponse(
        id=pl.id,
        kind=pl.kind,
        scope_key=pl.scope_key,
        scope_name=names.get((pl.kind, pl.scope_key)),
        title=pl.title,
        effective_date=pl.effective_date,
        status=pl.status,
        is_current=pl.is_current,
        superseded_at=pl.superseded_at,
        created_by=pl.created_by,
        updated_by=pl.updated_by,
        created_at=pl.created_at,
        updated_at=pl.updated_at,
        scope_revision=scope_revision,
        item_count=len(pl.items) if pl.items else 0,
        items=items,
    )


@router.get("/", response_model=List[PriceListResponse])
async def list_price_lists(
    kind: Optional[PriceListKind] = None,
    scope_key: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    """Price list journal, optionally filtered by scope and effective date range."""
    lists = await price_list_store.list_versions(db, kind, scope_key, date_from, date_to)
    names = await _scope_names(db, lists)
    return [await build_response(db, pl, with_items=False, names=names) for pl in lists]


@router.post("/open", response_model=PriceListResponse)
async def open_price_list(
    data: OpenPriceList,
    db: AsyncSession = Depends(get_db),
    x_actor: Optional[str] = Header(None),
):
    """Get or create the editable list for a scope and date."""
    pl = await version_manager.open_for_editing(
        db, data.kind, data.scope_key, data.effective_date, data.title, actor=x_actor
    )
    return await build_response(db, pl)


@router.get("/current", response_model=PriceListResponse)
async def get_current_price_list(
    kind: PriceListKind,
    scope_key: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """The list a scope defaults to."""
    pl = await price_list_store.get_current(db, kind, scope_key)
    if not pl:
        raise HTTPException(status_code=404, detail="No current price list for this scope")
    return await build_response(db, pl)


@router.get("/as-of", response_model=PriceListResponse)
async def get_price_list_as_of(
    kind: PriceListKind,
    as_of: date,
    scope_key: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """The saved version in force for a scope on a date."""
    pl = await price_list_store.get_as_of(db, kind, scope_key, as_of)
    if not pl:
        raise HTTPException(status_code=404, detail=f"No price list in force on {as_of}")
    return await build_response(db, pl)


@router.get("/compare")
async def compare_price_lists(
    price_list_id_1: int,
    price_list_id_2: int,
    db: AsyncSession = Depends(get_db),
):
    """Compare two price lists to show price changes."""
    return await version_manager.compare(db, price_list_id_1, price_list_id_2)


@router.get("/{price_list_id}", response_model=PriceListResponse)
async def get_price_list(
    price_list_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a price list with all items."""
    pl = await price_list_store.get(db, price_list_id)
    return await build_response(db, pl)


@router.put("/{price_list_id}", response_model=PriceListResponse)
async def save_price_list(
    price_list_id: int,
    data: SavePriceList,
    db: AsyncSession = Depends(get_db),
    x_actor: Optional[str] = Header(None),
):
    """Replace the item set and save; optionally make the list current."""
    pl = await version_manager.save(
        db,
        price_list_id,
        [ItemInput(product_id=i.product_id, price=i.price, row_date=i.row_date) for i in data.items],
        effective_date=data.effective_date,
        make_current=data.make_current,
        title=data.title,
        actor=x_actor,
        expected_revision=data.expected_revision,
    )
    return await build_response(db, pl)


@router.post("/{price_list_id}/items", response_model=PriceListResponse)
async def add_item(
    price_list_id: int,
    data: ItemPayload,
    db: AsyncSession = Depends(get_db),
    x_actor: Optional[str] = Header(None),
):
    """Add a product to a list; 409 if it is already there."""
    pl = await price_list_store.add_item(
        db, price_list_id, data.product_id, data.price or Decimal("0"), data.row_date, actor=x_actor
    )
    return await build_response(db, pl)


@router.put("/{price_list_id}/items/{product_id}", response_model=PriceListResponse)
async def upsert_item(
    price_list_id: int,
    product_id: str,
    data: ItemUpdate,
    db: AsyncSession = Depends(get_db),
    x_actor: Optional[str] = Header(None),
):
    """Set the price of a product, adding the row if needed."""
    pl = await price_list_store.add_or_update_item(
        db, price_list_id, product_id, data.price, data.row_date, actor=x_actor
    )
    return await build_response(db, pl)


@router.delete("/{price_list_id}/items/{product_id}", response_model=PriceListResponse)
async def remove_item(
    price_list_id: int,
    product_id: str,
    db: AsyncSession = Depends(get_db),
    x_actor: Optional[str] = Header(None),
):
    """Remove a single product from a price list."""
    pl = await price_list_store.remove_item(db, price_list_id, product_id, actor=x_actor)
    return await build_response(db, pl)


@router.post("/{price_list_id}/make-current", response_model=PriceListResponse)
async def make_current(
    price_list_id: int,
    data: Optional[MakeCurrent] = None,
    db: AsyncSession = Depends(get_db),
    x_actor: Optional[str] = Header(None),
):
    """Promote a saved list to current; 409 when another promotion won the race."""
    expected = data.expected_revision if data else None
    pl = await price_list_store.set_current(db, price_list_id, expected, actor=x_actor)
    return await build_response(db, pl)


@router.post("/{price_list_id}/versions", response_model=PriceListResponse)
async def derive_version(
    price_list_id: int,
    data: DeriveVersion,
    db: AsyncSession = Depends(get_db),
    x_actor: Optional[str] = Header(None),
):
    """Start a new draft version from an existing list."""
    pl = await version_manager.derive_version(
        db, price_list_id, data.effective_date, data.title, actor=x_actor
    )
    return await build_response(db, pl)


@router.get("/{price_list_id}/matrix", response_model=MatrixResponse)
async def get_price_list_matrix(
    price_list_id: int,
    as_of: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    """Supplier purchase prices for every product of a sales list."""
    matrix = await price_matrix_builder.build_matrix_for_list(db, price_list_id, as_of)
    return matrix_response(matrix)
