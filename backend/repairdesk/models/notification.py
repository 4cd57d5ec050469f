from __future__ import annotations
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, JSON, DateTime, func
from .authz import Base


class Notification(Base):
    """Outbox of customer emails. Delivery is out of process; rows are the record of what was sent."""
    __tablename__ = 'notifications'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipient: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default='')
    job_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    invoice_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    attachments: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())

__all__ = ["Notification"]
