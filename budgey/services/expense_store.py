from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from budgey.models.category import Category
from budgey.models.expense import Expense
from budgey.schemas.category import CategoryRecord
from budgey.schemas.expense import ExpenseRecord
from budgey.services.errors import BreakdownError, ErrorKind, classify_exception, invalid_input
from budgey.services.sources import ExpensePage

logger = logging.getLogger(__name__)

INSUFFICIENT_PRIVILEGE = "42501"
TRANSIENT_SQLSTATE_PREFIXES = ("08", "53", "57P")


@dataclass(slots=True, frozen=True)
class ExpenseCursor:
    created_at: dt.datetime
    id: str


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def classify_db_error(exc: BaseException) -> BreakdownError:
    """Map a storage failure onto an error kind by exception type and SQLSTATE."""
    if isinstance(exc, DBAPIError):
        sqlstate = _sqlstate(exc)
        if sqlstate == INSUFFICIENT_PRIVILEGE:
            return BreakdownError(ErrorKind.PERMISSION_DENIED, "Permission denied for expense data")
        if exc.connection_invalidated or (sqlstate and sqlstate.startswith(TRANSIENT_SQLSTATE_PREFIXES)):
            return BreakdownError(ErrorKind.TRANSIENT_FETCH_FAILURE, "Database connection failed")
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)):
        return BreakdownError(ErrorKind.TRANSIENT_FETCH_FAILURE, "Database is unavailable")
    if isinstance(exc, SQLAlchemyError):
        return BreakdownError(ErrorKind.DATA_PROCESSING_ERROR, f"Storage error: {type(exc).__name__}")
    return classify_exception(exc)


def to_expense_record(expense: Expense) -> ExpenseRecord:
    return ExpenseRecord(
        id=expense.id,
        user_id=expense.user_id,
        category_id=expense.category_id,
        category_name=expense.category_name,
        type=expense.type,
        amount=expense.amount,
        description=expense.description,
        budget_start_date=expense.budget_start_date,
        budget_end_date=expense.budget_end_date,
        month_key=expense.budget_month_key,
        created_at=expense.created_at,
        currency=expense.currency,
        payment_method=expense.payment_method,
        receipt_url=expense.receipt_url,
        tags=frozenset(expense.tags or ()),
    )


class SqlExpenseStore:
    """Expense collection backed by SQLAlchemy, paginated by ``(created_at, id)``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def fetch(self, user_id: str, page_size: int, cursor: Any | None) -> ExpensePage:
        if cursor is not None and not isinstance(cursor, ExpenseCursor):
            raise invalid_input("Unsupported cursor")

        filters = [Expense.user_id == user_id]
        if cursor is not None:
            filters.append(
                or_(
                    Expense.created_at < cursor.created_at,
                    and_(Expense.created_at == cursor.created_at, Expense.id < cursor.id),
                )
            )

        try:
            async with self._session_factory() as session:
                rows = await session.scalars(
                    select(Expense)
                    .where(*filters)
                    .order_by(Expense.created_at.desc(), Expense.id.desc())
                    .limit(page_size + 1)
                )
                expenses = rows.all()
        except (SQLAlchemyError, OSError) as exc:
            raise classify_db_error(exc) from exc

        # One extra row tells a full last page apart from a page with more behind it.
        has_more = len(expenses) > page_size
        expenses = expenses[:page_size]
        next_cursor = None
        if has_more and expenses:
            last = expenses[-1]
            next_cursor = ExpenseCursor(created_at=last.created_at, id=last.id)
        return ExpensePage(records=tuple(to_expense_record(item) for item in expenses), next_cursor=next_cursor)

    async def list_month(self, user_id: str, month_key: str) -> list[ExpenseRecord]:
        try:
            async with self._session_factory() as session:
                rows = await session.scalars(
                    select(Expense)
                    .where(Expense.user_id == user_id, Expense.budget_month_key == month_key)
                    .order_by(Expense.created_at.desc(), Expense.id.desc())
                )
                return [to_expense_record(item) for item in rows.all()]
        except (SQLAlchemyError, OSError) as exc:
            raise classify_db_error(exc) from exc

    async def add(self, record: ExpenseRecord) -> str:
        expense = Expense(
            id=record.id,
            user_id=record.user_id,
            category_id=record.category_id,
            category_name=record.category_name,
            type=record.type,
            amount=record.amount,
            description=record.description,
            budget_start_date=record.budget_start_date,
            budget_end_date=record.budget_end_date,
            budget_month_key=record.month_key,
            currency=record.currency,
            payment_method=record.payment_method,
            receipt_url=record.receipt_url,
            tags=sorted(record.tags),
        )
        if record.created_at is not None:
            expense.created_at = record.created_at

        try:
            async with self._session_factory() as session:
                session.add(expense)
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise classify_db_error(exc) from exc

        logger.info("Stored %s %s for user %s", record.type.value.lower(), record.id, record.user_id)
        return record.id


class SqlCategorySource:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list(self, user_id: str) -> list[CategoryRecord]:
        try:
            async with self._session_factory() as session:
                rows = await session.scalars(
                    select(Category)
                    .where(Category.user_id == user_id, Category.is_active.is_(True))
                    .order_by(Category.name.asc())
                )
                return [CategoryRecord.model_validate(item) for item in rows.all()]
        except (SQLAlchemyError, OSError) as exc:
            raise classify_db_error(exc) from exc

    async def create(
        self,
        user_id: str,
        name: str,
        icon: str | None = None,
        color: str | None = None,
        description: str | None = None,
    ) -> str:
        category = Category(
            id=str(uuid4()),
            user_id=user_id,
            name=name,
            is_active=True,
            icon=icon,
            color=color,
            description=description,
        )
        try:
            async with self._session_factory() as session:
                session.add(category)
                await session.commit()
        except IntegrityError as exc:
            raise invalid_input("A category with this name already exists") from exc
        except (SQLAlchemyError, OSError) as exc:
            raise classify_db_error(exc) from exc

        logger.info("Created category %s (%s) for user %s", category.name, category.id, user_id)
        return category.id
