import datetime as dt
from decimal import Decimal

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budgey.db.base import Base
from budgey.models.enums import ExpenseType, expense_type_enum


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (
        Index("ix_expenses_user_created", "user_id", "created_at", "id"),
        Index("ix_expenses_user_month", "user_id", "budget_month_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    category_id: Mapped[str] = mapped_column(ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False)
    category_name: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[ExpenseType] = mapped_column(
        expense_type_enum,
        nullable=False,
        default=ExpenseType.EXPENSE,
        server_default=ExpenseType.EXPENSE.value,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    budget_start_date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    budget_end_date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    budget_month_key: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD", server_default="USD")
    payment_method: Mapped[str | None] = mapped_column(String(64), nullable=True)
    receipt_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    tags: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
    )

    category = relationship("Category", back_populates="expenses")
