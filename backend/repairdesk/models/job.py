from __future__ import annotations
from datetime import date
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Boolean, Date, DateTime, ForeignKey, func
from repairdesk.models.authz import Base


class Job(Base):
    __tablename__ = 'jobs'
    # Status constants
    STATUS_RECEIVED = 'received'
    STATUS_DIAGNOSIS = 'diagnosis'
    STATUS_REPAIR_IN_PROGRESS = 'repair-in-progress'
    STATUS_STRESS_TEST = 'stress-test'
    STATUS_REPAIR_COMPLETED = 'repair-completed'
    STATUS_READY_FOR_DELIVERY = 'ready-for-delivery'
    STATUS_PICKED_UP = 'picked-up'
    ALL_STATUSES = (
        STATUS_RECEIVED,
        STATUS_DIAGNOSIS,
        STATUS_REPAIR_IN_PROGRESS,
        STATUS_STRESS_TEST,
        STATUS_REPAIR_COMPLETED,
        STATUS_READY_FOR_DELIVERY,
        STATUS_PICKED_UP,
    )
    # Jobs counted as finished work for customer aggregates
    DONE_STATUSES = (STATUS_REPAIR_COMPLETED, STATUS_READY_FOR_DELIVERY, STATUS_PICKED_UP)
    OPEN_STATUSES = (STATUS_RECEIVED, STATUS_DIAGNOSIS, STATUS_REPAIR_IN_PROGRESS, STATUS_STRESS_TEST)

    PRIORITY_HIGH = 'high'
    PRIORITY_MEDIUM = 'medium'
    PRIORITY_LOW = 'low'
    ALL_PRIORITIES = (PRIORITY_HIGH, PRIORITY_MEDIUM, PRIORITY_LOW)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    reference: Mapped[Optional[str]] = mapped_column(String(32), unique=True, index=True)
    customer_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('customers.id', ondelete='SET NULL'), nullable=True, index=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(128))
    customer_phone: Mapped[Optional[str]] = mapped_column(String(32))
    device: Mapped[str] = mapped_column(String(128), nullable=False)
    serial_number: Mapped[Optional[str]] = mapped_column(String(64))
    issue: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_RECEIVED, index=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=PRIORITY_MEDIUM, index=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    assigned_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(128))
    external_cost_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    has_notification: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Status flow: received -> diagnosis -> repair-in-progress -> (stress-test) -> repair-completed
    #   -> ready-for-delivery -> picked-up (terminal). The graph itself lives in routes/jobs.py.

    @staticmethod
    def make_reference(job_id: int) -> str:
        return f"JOB-{1000 + int(job_id)}"

__all__ = ["Job"]
