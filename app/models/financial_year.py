"""
ShopLedger - Financial Year Models

Financial periods with opening/closing stock values and the audit trail of
stock value changes.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Numeric, String, Uuid, text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, ShopScopedMixin
from app.utils.clock import utc_now


class FinancialYear(BaseModel, ShopScopedMixin):
    """
    A shop's financial year.

    Per shop: at most one year is current and no two date ranges overlap.
    Once ``is_closed`` is set the row is never modified again.
    """

    __tablename__ = "financial_years"
    __table_args__ = (
        # At most one current year per shop
        Index(
            "ix_financial_years_one_current",
            "shop_id",
            unique=True,
            postgresql_where=text("is_current"),
            sqlite_where=text("is_current"),
        ),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    opening_stock_value: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    closing_stock_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<FinancialYear(id={self.id}, name={self.name}, closed={self.is_closed})>"


class StockValueField(str, Enum):
    OPENING = "opening_stock_value"
    CLOSING = "closing_stock_value"


class StockValueHistory(BaseModel):
    """Append-only record of a stock value change on a financial year."""

    __tablename__ = "stock_value_history"

    financial_year_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("financial_years.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_changed: Mapped[StockValueField] = mapped_column(
        SQLEnum(StockValueField, name="stock_value_field", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    old_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    new_value: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
