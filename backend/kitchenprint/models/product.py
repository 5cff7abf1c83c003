"""
Product model

Read-only view of the menu catalog. The print engine only needs it to
backfill the category of order items that arrive without one.
"""
from sqlalchemy import Column, String, Boolean, Numeric

from kitchenprint.db.base import Base


class Product(Base):
    """Product model - matches products table"""
    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    branch_id = Column(String(64), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    category_id = Column(String(64), nullable=True, index=True)
    price = Column(Numeric(12, 2), nullable=True)
    active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Product {self.id}: {self.name}>"
