from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, DateTime, UniqueConstraint, func
from .authz import Base


class KVEntry(Base):
    __tablename__ = 'kv_entries'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    namespace: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    key: Mapped[str] = mapped_column(String(128), nullable=False)
    # raw serialized text; parsed by PersistedValue, never here
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint('namespace', 'key', name='uq_kv_namespace_key'),)

__all__ = ["KVEntry"]
