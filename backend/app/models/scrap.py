"""
Scrap / defect records

One row per scrap event: approved report scrap, or an administrator's
manual defect write-off. Provenance (stage name, note, worker) is copied
by value.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text
from datetime import datetime

from app.db.base import Base


class ScrapRecord(Base):
    """Scrapped quantity of a product"""
    __tablename__ = "scrap_records"

    id = Column(Integer, primary_key=True, index=True)

    # What was scrapped
    product_id = Column(Integer, ForeignKey('products.id'), nullable=True, index=True)
    product_name = Column(String(255), nullable=True)
    quantity = Column(Numeric(18, 4), nullable=False)

    # Provenance
    reason = Column(Text, nullable=True)
    stage_name = Column(String(200), nullable=True)
    worker_id = Column(String(100), nullable=True)
    report_id = Column(Integer, ForeignKey('production_reports.id', ondelete='SET NULL'), nullable=True, index=True)

    # Source: approval, manual
    source = Column(String(20), default='approval', nullable=False)

    # Audit
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<ScrapRecord {self.product_name}: {self.quantity} ({self.source})>"
