"""
Production report models

A production report is one submission of produced quantity (and optional
scrap) against a stage, labelled with a batch code. Approved reports are
the batches downstream assembly stages draw from; `used_quantity` is the
part of a batch already debited by approved downstream reports.

Snapshot columns (order_number, stage_name, task_title, product_name, ...)
are copied by value at creation so a report stays readable after its stage
or order is deleted.
"""
from decimal import Decimal

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class ProductionReport(Base):
    """
    Production report (batch record).

    Lifecycle: pending → approved | rejected (both terminal). Manual
    postings are created approved.

    Kinds: production, simple_report, manual_stock, manual_adjustment,
    manual_deduction, manual_defect
    """
    __tablename__ = "production_reports"

    id = Column(Integer, primary_key=True, index=True)
    stage_id = Column(Integer, ForeignKey('stages.id', ondelete='SET NULL'), nullable=True, index=True)
    worker_id = Column(String(100), nullable=False, index=True)
    report_date = Column(Date, nullable=False, index=True)

    # Quantities (quantity is negative for manual write-offs)
    quantity = Column(Numeric(18, 4), nullable=False)
    scrap_quantity = Column(Numeric(18, 4), default=0, nullable=False)
    used_quantity = Column(Numeric(18, 4), default=0, nullable=False)
    # Input the selected batches did not cover at submission
    supply_shortfall = Column(Numeric(18, 4), default=0, nullable=False)

    notes = Column(Text, nullable=True)

    # Status: pending, approved, rejected
    status = Column(String(20), default='pending', nullable=False, index=True)
    kind = Column(String(30), default='production', nullable=False)
    batch_code = Column(String(100), nullable=True, index=True)

    # Snapshots (value copies, no foreign keys)
    order_id = Column(Integer, nullable=True, index=True)
    order_number = Column(String(50), nullable=True)
    stage_name = Column(String(200), nullable=True, index=True)
    task_title = Column(String(255), nullable=True)
    product_id = Column(Integer, nullable=True)
    product_name = Column(String(255), nullable=True)

    # Decision audit
    decided_by = Column(String(100), nullable=True)
    decided_at = Column(DateTime, nullable=True)

    # Optimistic lock; bumped on every UPDATE
    version = Column(Integer, nullable=False, default=1)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    stage = relationship("Stage", back_populates="reports")
    consumptions = relationship(
        "ReportConsumption",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportConsumption.sequence",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def source_consumption(self) -> dict:
        """Upstream report id -> quantity this report reserves from it."""
        return {c.source_report_id: c.quantity for c in self.consumptions}

    @property
    def source_batch_ids(self) -> list:
        return [c.source_report_id for c in self.consumptions]

    @property
    def balance(self) -> Decimal:
        """Output of this batch not yet debited by approved consumers."""
        return Decimal(self.quantity or 0) - Decimal(self.used_quantity or 0)

    def __repr__(self):
        return f"<ProductionReport {self.id}: {self.stage_name} {self.batch_code} {self.quantity} ({self.status})>"


class ReportConsumption(Base):
    """
    One upstream batch a report draws from.

    `quantity` is the reservation recorded at submission; while the owning
    report is pending it is subtracted from the upstream batch's available
    quantity. `quantity_debited` is what the approval actually added to the
    upstream batch's `used_quantity`.

    `source_report_id` is deliberately not a foreign key: an upstream batch
    that disappears between submission and approval must surface as a
    NotFoundError at approval time.
    """
    __tablename__ = "report_consumptions"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey('production_reports.id', ondelete='CASCADE'), nullable=False, index=True)
    source_report_id = Column(Integer, nullable=False, index=True)
    source_stage_name = Column(String(200), nullable=True)
    sequence = Column(Integer, default=1, nullable=False)

    quantity = Column(Numeric(18, 4), nullable=False)
    quantity_debited = Column(Numeric(18, 4), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    report = relationship("ProductionReport", back_populates="consumptions")

    def __repr__(self):
        return f"<ReportConsumption {self.report_id} <- {self.source_report_id}: {self.quantity}>"
