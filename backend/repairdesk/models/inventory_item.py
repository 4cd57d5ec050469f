from __future__ import annotations
from datetime import date
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Date, DateTime, Text, func

from .authz import Base


class InventoryItem(Base):
    __tablename__ = 'inventory_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sku: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(80), nullable=False, default='', index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    supplier: Mapped[Optional[str]] = mapped_column(String(128))
    last_ordered: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class InventoryLog(Base):
    """Append-only stock movement journal; rows are never updated or pruned."""
    __tablename__ = 'inventory_logs'
    ACTION_ADDED = 'added'
    ACTION_REMOVED = 'removed'
    ACTION_RESTOCKED = 'restocked'
    ACTION_ADJUSTED = 'adjusted'
    ACTION_USED = 'used'
    ALL_ACTIONS = (ACTION_ADDED, ACTION_REMOVED, ACTION_RESTOCKED, ACTION_ADJUSTED, ACTION_USED)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    action: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    # no FK: log rows outlive deleted items
    item_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    item_name: Mapped[str] = mapped_column(String(150), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    user: Mapped[Optional[str]] = mapped_column(String(128))
    notes: Mapped[str] = mapped_column(Text, nullable=False, default='')
    job_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(128))
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

__all__ = ["InventoryItem", "InventoryLog"]
