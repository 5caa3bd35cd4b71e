"""
Order model

Orders are created by planning and are read-only to the production ledger.
The ledger reads the order number and target product to snapshot them on
reports and to post finished goods.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class Order(Base):
    """
    Production order for a target product.

    Status values: new, pending, in_progress, completed, done, canceled
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False, index=True)

    # Target quantity
    quantity = Column(Numeric(18, 4), nullable=False)
    deadline = Column(Date, nullable=True)

    status = Column(String(50), default='new', nullable=False, index=True)
    customer_name = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    product = relationship("Product", back_populates="orders")
    stages = relationship("Stage", back_populates="order", order_by="Stage.id")

    def __repr__(self):
        return f"<Order {self.order_number}: {self.quantity}>"
