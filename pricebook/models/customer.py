"""
Customer registry
"""
from sqlalchemy import Column, String, Boolean
from pricebook.database import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=False, index=True)
    is_active = Column(Boolean, default=True)
