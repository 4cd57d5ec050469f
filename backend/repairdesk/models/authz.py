from __future__ import annotations
from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, JSON, DateTime, func
from typing import Optional, List

from repairdesk.constants.permissions import ALL_ROLES, ROLE_TECHNICIAN

Base = declarative_base()


class User(Base):
    __tablename__ = 'users'
    ALL_ROLES = ALL_ROLES
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    company: Mapped[Optional[str]] = mapped_column(String(128))
    specialties: Mapped[List[str]] = mapped_column(JSON, default=list)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=ROLE_TECHNICIAN, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)

__all__ = ["Base", "User"]
