"""
ShopLedger - Shop Model

A shop is the tenant every ledger record belongs to.
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, BilingualNameMixin


class Shop(BaseModel, BilingualNameMixin):
    """Tenant. All uniqueness and lookups of ledger data are scoped to a shop."""

    __tablename__ = "shops"
    __table_args__ = (
        UniqueConstraint("name_local", "name_global", name="uq_shops_names"),
    )

    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Shop(id={self.id}, code={self.code})>"
