"""
Price list models - versioned purchase and sales price documents
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, Boolean, ForeignKey,
    Index, UniqueConstraint, Enum, text,
)
from sqlalchemy.orm import relationship
from pricebook.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceListKind(str, enum.Enum):
    PURCHASE = "PURCHASE"
    SALES_GENERAL = "SALES_GENERAL"
    SALES_CUSTOMER = "SALES_CUSTOMER"


class PriceListStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SAVED = "SAVED"


class PriceListScope(Base):
    """One row per (kind, scope_key); promotions serialise on it."""
    __tablename__ = "price_list_scopes"
    __table_args__ = (
        UniqueConstraint("kind", "scope_key", name="uq_price_list_scopes_kind_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(Enum(PriceListKind, native_enum=False), nullable=False)
    scope_key = Column(String(64), nullable=False)
    revision = Column(Integer, nullable=False, default=0)  # bumped by every promotion
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class PriceList(Base):
    __tablename__ = "price_lists"
    __table_args__ = (
        # At most one current list per scope
        Index(
            "uq_price_lists_current_scope", "kind", "scope_key",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
        # Get-or-create key for drafts
        Index(
            "uq_price_lists_draft_date", "kind", "scope_key", "effective_date",
            unique=True,
            sqlite_where=text("status = 'DRAFT'"),
            postgresql_where=text("status = 'DRAFT'"),
        ),
        Index("ix_price_lists_scope_date", "kind", "scope_key", "effective_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(Enum(PriceListKind, native_enum=False), nullable=False)
    scope_key = Column(String(64), nullable=False)
    title = Column(String, nullable=True)
    effective_date = Column(Date, nullable=True)
    status = Column(
        Enum(PriceListStatus, native_enum=False),
        nullable=False,
        default=PriceListStatus.DRAFT,
    )
    is_current = Column(Boolean, nullable=False, default=False)
    superseded_at = Column(DateTime(timezone=True), nullable=True)  # frozen once set

    # Audit
    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    items = relationship(
        "PriceListItem",
        back_populates="price_list",
        cascade="all, delete-orphan",
        order_by="PriceListItem.id",
        lazy="selectin",
    )

    @property
    def is_editable(self) -> bool:
        return not self.is_current and self.superseded_at is None

    def item_for(self, product_id: str):
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None


class PriceListItem(Base):
    __tablename__ = "price_list_items"
    __table_args__ = (
        UniqueConstraint("price_list_id", "product_id", name="uq_price_list_items_product"),
    )

    id = Column(Integer, primary_key=True, index=True)
    price_list_id = Column(
        Integer, ForeignKey("price_lists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = Column(String(64), nullable=False, index=True)
    price = Column(Numeric(12, 2), nullable=False)
    row_date = Column(Date, nullable=True)  # None = list's effective_date
    updated_by = Column(String, nullable=True)

    # Relationships
    price_list = relationship("PriceList", back_populates="items")
