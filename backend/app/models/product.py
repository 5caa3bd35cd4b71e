"""
Product model - catalog items that orders produce and stock holds
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class Product(Base):
    """
    Catalog item. Read-only to the ledger: orders point at it, finished
    goods stock and scrap records are keyed by it.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    unit = Column(String(20), default='pcs')
    active = Column(Boolean, default=True, nullable=False)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    orders = relationship("Order", back_populates="product")
    stock = relationship("FinishedGoodsStock", back_populates="product", uselist=False)

    def __repr__(self):
        return f"<Product {self.sku}: {self.name}>"
