from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, func
from .authz import Base


class RepairLogEntry(Base):
    """Work performed on a job: who did it, what, for how long, and at what outside cost."""
    __tablename__ = 'repair_log_entries'
    ROLE_INTERNAL = 'internal'
    ROLE_EXTERNAL = 'external'
    ALL_ROLES = (ROLE_INTERNAL, ROLE_EXTERNAL)
    ACTION_REASSIGNED = 'Reassigned repair work'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_id: Mapped[int] = mapped_column(ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False, index=True)
    technician: Mapped[str] = mapped_column(String(128), nullable=False)
    technician_role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_INTERNAL)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # only set for external work
    cost_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reassigned_from: Mapped[Optional[str]] = mapped_column(String(128))
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())

__all__ = ["RepairLogEntry"]
