"""
Stage (task) models

A stage is one step of an order's production route with its own
planned / completed / pending / scrap counters. Assembly stages declare
input requirements naming the upstream stage they draw from and how many
upstream units one output unit consumes.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class Stage(Base):
    """
    Production stage of an order.

    Lifecycle: todo → in_progress → done; archived hides the stage from the
    WIP view without touching its counters or reports.

    Counters:
      - completed_quantity: sum of approved report quantities (approval only)
      - pending_quantity: sum of quantities of reports awaiting a decision
      - scrap_quantity: sum of approved scrap
      - adjusted_quantity: net manual stock / deduction postings
    """
    __tablename__ = "stages"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)

    # Identification: name is the route step ("Turning"), title is what the
    # board shows ("ORD-7 - Turning")
    name = Column(String(200), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Kind: production, simple
    kind = Column(String(20), default='production', nullable=False)

    # Status: todo, in_progress, done, archived
    status = Column(String(20), default='todo', nullable=False, index=True)

    is_final_stage = Column(Boolean, default=False, nullable=False)

    # Quantities
    planned_quantity = Column(Numeric(18, 4), default=0, nullable=False)
    completed_quantity = Column(Numeric(18, 4), default=0, nullable=False)
    pending_quantity = Column(Numeric(18, 4), default=0, nullable=False)
    scrap_quantity = Column(Numeric(18, 4), default=0, nullable=False)
    adjusted_quantity = Column(Numeric(18, 4), default=0, nullable=False)

    deadline = Column(Date, nullable=True)

    # Optimistic lock; bumped on every UPDATE
    version = Column(Integer, nullable=False, default=1)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="stages")
    inputs = relationship("StageInput", back_populates="stage",
                          cascade="all, delete-orphan", order_by="StageInput.sequence")
    reports = relationship("ProductionReport", back_populates="stage")

    __mapper_args__ = {"version_id_col": version}

    @property
    def remaining_quantity(self):
        return (self.planned_quantity or 0) - (self.completed_quantity or 0)

    def __repr__(self):
        return f"<Stage {self.id}: {self.title} ({self.status})>"


class StageInput(Base):
    """
    Input requirement of an assembly stage.

    One output unit of the owning stage consumes `ratio` units from
    approved batches of the upstream stage named `source_stage_name`
    within the same order.
    """
    __tablename__ = "stage_inputs"

    id = Column(Integer, primary_key=True, index=True)
    stage_id = Column(Integer, ForeignKey('stages.id', ondelete='CASCADE'), nullable=False, index=True)
    source_stage_name = Column(String(200), nullable=False)
    ratio = Column(Numeric(18, 4), nullable=False)
    sequence = Column(Integer, default=1, nullable=False)

    stage = relationship("Stage", back_populates="inputs")

    def __repr__(self):
        return f"<StageInput {self.source_stage_name} x{self.ratio}>"
