"""
Product catalog model
"""
from sqlalchemy import Column, String, Boolean
from pricebook.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=False, index=True)
    category = Column(String, nullable=True)
    unit = Column(String, nullable=True)  # kg, piece, carcass
    is_active = Column(Boolean, default=True)
