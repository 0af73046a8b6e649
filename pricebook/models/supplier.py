"""
Supplier registry (read-only from the price list side)
"""
from sqlalchemy import Column, String, Boolean
from pricebook.database import Base


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(String(64), primary_key=True)  # same opaque key as PURCHASE scope_key
    name = Column(String, nullable=False, index=True)
    legal_name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
