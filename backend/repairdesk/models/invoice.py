from __future__ import annotations
from datetime import date
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, JSON, Date, DateTime, ForeignKey, func
from .authz import Base


class Invoice(Base):
    __tablename__ = 'invoices'
    # Status lifecycle: draft -> sent -> paid (terminal) | sent -> overdue -> paid
    STATUS_DRAFT = 'draft'
    STATUS_SENT = 'sent'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    ALL_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_PAID, STATUS_OVERDUE)
    OUTSTANDING_STATUSES = (STATUS_SENT, STATUS_OVERDUE)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    job_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('jobs.id', ondelete='SET NULL'), nullable=True, index=True)
    sender: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    recipient: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    recipient_name: Mapped[str] = mapped_column(String(128), nullable=False, default='', index=True)
    recipient_email: Mapped[Optional[str]] = mapped_column(String(128))
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_DRAFT, index=True)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items: Mapped[List["InvoiceItem"]] = relationship(
        'InvoiceItem', back_populates='invoice', cascade='all, delete-orphan', order_by='InvoiceItem.position'
    )

    def recompute_amount(self) -> int:
        self.amount_cents = sum(int(i.amount_cents) for i in self.items)
        return self.amount_cents


class InvoiceItem(Base):
    __tablename__ = 'invoice_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    rate_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    invoice = relationship('Invoice', back_populates='items')

__all__ = ["Invoice", "InvoiceItem"]
