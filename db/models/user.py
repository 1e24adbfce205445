"""
db/models/user.py

Minimal user record referenced by uploads. Authentication lives elsewhere.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class UserRole:
    USER = "user"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=UserRole.USER,
        comment="user, admin",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
