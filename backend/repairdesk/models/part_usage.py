from __future__ import annotations
from datetime import date
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Date, DateTime, ForeignKey, UniqueConstraint, func
from .authz import Base


class JobPart(Base):
    """Running selection of parts attached to a job (one row per job/item pair)."""
    __tablename__ = 'job_parts'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_id: Mapped[int] = mapped_column(ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False, index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey('inventory_items.id', ondelete='CASCADE'), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint('job_id', 'item_id', name='uq_job_part'),)


class PartUsage(Base):
    """One consumption record per attach; name and price are snapshots taken at attach time."""
    __tablename__ = 'part_usages'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    part_name: Mapped[str] = mapped_column(String(150), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    job_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False, default='')
    date_used: Mapped[date] = mapped_column(Date, nullable=False)
    technician_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    technician_name: Mapped[Optional[str]] = mapped_column(String(128))
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())

__all__ = ["JobPart", "PartUsage"]
