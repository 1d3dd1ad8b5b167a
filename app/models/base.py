"""
ShopLedger - Base Model

Base model class and mixins for all SQLAlchemy models.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from app.database import Base
from app.utils.clock import utc_now


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
        nullable=False,
    )


class ShopScopedMixin:
    """Mixin for rows owned by a single shop (tenant)."""

    @declared_attr
    def shop_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid,
            ForeignKey("shops.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class BilingualNameMixin:
    """Local-language and global (English) display names."""

    name_local: Mapped[str] = mapped_column(String(100), nullable=False)
    name_global: Mapped[str] = mapped_column(String(100), nullable=False)


class HierarchyNodeMixin(ShopScopedMixin, BilingualNameMixin):
    """
    A node of a per-shop tree stored as a flat table with a parent link.

    Roots have level 1 and no parent; a child sits exactly one level below
    its parent. The tree services rely on ``is_system`` for ordering.
    """

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @declared_attr
    def parent_id(cls) -> Mapped[Optional[uuid.UUID]]:
        return mapped_column(
            Uuid,
            ForeignKey(f"{cls.__tablename__}.id", ondelete="RESTRICT"),
            nullable=True,
            index=True,
        )


class BaseModel(Base, TimestampMixin):
    """
    Abstract base model with UUID primary key and timestamps.
    All models should inherit from this class.
    """

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
