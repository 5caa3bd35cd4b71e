"""
Inventory models

Finished-goods stock is a per-product counter. It is only written by the
approval of a final-stage report.
"""
from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class FinishedGoodsStock(Base):
    """On-hand quantity of a salable product"""
    __tablename__ = "finished_goods_stock"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), unique=True, nullable=False, index=True)

    # Quantities
    quantity = Column(Numeric(18, 4), default=0, nullable=False)
    min_quantity = Column(Numeric(18, 4), default=0, nullable=False)

    # Optimistic lock; bumped on every UPDATE
    version = Column(Integer, nullable=False, default=1)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    product = relationship("Product", back_populates="stock")

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_below_minimum(self) -> bool:
        return (self.quantity or 0) < (self.min_quantity or 0)

    def __repr__(self):
        return f"<FinishedGoodsStock product={self.product_id}: {self.quantity}>"
