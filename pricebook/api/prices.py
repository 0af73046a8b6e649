"""
Price resolution API endpoints - authoritative prices as of a date
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date
from decimal import Decimal
from pydantic import BaseModel

from pricebook.database import get_db
from pricebook.models.price_list import PriceListKind
from pricebook.services.price_matrix import PriceMatrix, price_matrix_builder
from pricebook.services.price_resolver import ResolvedPrice, price_resolver

router = APIRouter()


class ResolvedPriceResponse(BaseModel):
    product_id: str
    price: Decimal
    source: PriceListKind
    scope_key: str
    price_list_id: int
    effective_date: date

    class Config:
        from_attributes = True


class MatrixRequest(BaseModel):
    product_ids: List[str]
    as_of: Optional[date] = None


class MatrixSupplierResponse(BaseModel):
    supplier_id: str
    name: str
    legal_name: Optional[str] = None


class MatrixCellResponse(BaseModel):
    product_id: str
    supplier_id: str
    price: Decimal
    price_list_id: int
    price_list_date: date


class MatrixResponse(BaseModel):
    as_of: date
    product_ids: List[str]
    suppliers: List[MatrixSupplierResponse]
    prices: List[MatrixCellResponse]


def matrix_response(matrix: PriceMatrix) -> MatrixResponse:
    return MatrixResponse(
        as_of=matrix.as_of,
        product_ids=matrix.product_ids,
        suppliers=[
            MatrixSupplierResponse(supplier_id=s.supplier_id, name=s.name, legal_name=s.legal_name)
            for s in matrix.suppliers
        ],
        prices=[
            MatrixCellResponse(
                product_id=cell.product_id,
                supplier_id=cell.supplier_id,
                price=cell.price,
                price_list_id=cell.price_list_id,
                price_list_date=cell.price_list_date,
            )
            for product_id in matrix.product_ids
            for cell in matrix.row(product_id)
        ],
    )


def _found(resolved: Optional[ResolvedPrice], what: str) -> ResolvedPrice:
    if resolved is None:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return resolved


@router.get("/purchase", response_model=ResolvedPriceResponse)
async def resolve_purchase_price(
    supplier_id: str,
    product_id: str,
    as_of: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    """Supplier's purchase price for a product as of a date (today by default)."""
    resolved = await price_resolver.resolve_purchase_price(
        db, supplier_id, product_id, as_of or date.today()
    )
    return _found(resolved, "Purchase price")


@router.get("/sales", response_model=ResolvedPriceResponse)
async def resolve_sales_price(
    product_id: str,
    customer_id: Optional[str] = None,
    as_of: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    """Sales price: customer list first, then the general list."""
    resolved = await price_resolver.resolve_sales_price(
        db, customer_id, product_id, as_of or date.today()
    )
    return _found(resolved, "Sales price")


@router.get("/sales/customers/{customer_id}", response_model=List[ResolvedPriceResponse])
async def resolve_customer_sheet(
    customer_id: str,
    as_of: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    """All sales prices that apply to a customer, e.g. for the order form."""
    return await price_resolver.resolve_sales_sheet(db, customer_id, as_of or date.today())


@router.post("/matrix", response_model=MatrixResponse)
async def build_price_matrix(
    data: MatrixRequest,
    db: AsyncSession = Depends(get_db),
):
    """Every supplier's purchase price for the given products as of a date."""
    matrix = await price_matrix_builder.build_matrix(db, data.product_ids, data.as_of or date.today())
    return matrix_response(matrix)
