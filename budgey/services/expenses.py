from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Protocol
from uuid import uuid4

from budgey.schemas.category import CategoryRecord
from budgey.schemas.expense import ExpenseCreate, ExpenseRecord
from budgey.services.category_cache import CategoryCache
from budgey.services.errors import BreakdownError, classify_exception, invalid_input, require_user_id
from budgey.services.month import budget_period_for, month_key_for

logger = logging.getLogger(__name__)

MAX_EXPENSE_AMOUNT = Decimal("1000000")
MAX_BUDGET_PERIOD = dt.timedelta(days=365)


class ExpenseSink(Protocol):
    async def add(self, record: ExpenseRecord) -> str: ...


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def resolve_budget_period(payload: ExpenseCreate, now: dt.datetime) -> tuple[dt.datetime, dt.datetime]:
    if payload.budget_start_date is not None and payload.budget_end_date is not None:
        start = _as_utc(payload.budget_start_date)
        end = _as_utc(payload.budget_end_date)
    else:
        start, end = budget_period_for(_as_utc(payload.expense_date or now))

    if start > end:
        raise invalid_input("Start date must be before end date")
    if end - start > MAX_BUDGET_PERIOD:
        raise invalid_input("Date range cannot exceed 1 year")
    if start > now + MAX_BUDGET_PERIOD:
        raise invalid_input("Date cannot be more than 1 year in the future")
    return start, end


def validate_amount(payload: ExpenseCreate) -> None:
    if payload.amount <= 0:
        raise invalid_input("Amount must be greater than 0")
    if payload.amount > MAX_EXPENSE_AMOUNT:
        raise invalid_input("Amount cannot exceed 1,000,000")
    if len(payload.currency) != 3 or not payload.currency.isalpha():
        raise invalid_input("Currency must be a valid 3-letter code")


async def resolve_category(cache: CategoryCache, user_id: str, category_id: str) -> CategoryRecord:
    for force_refresh in (False, True):
        result = await cache.get(user_id, force_refresh=force_refresh)
        if result.error is not None:
            raise result.error
        for category in result.categories or ():
            if category.id == category_id:
                return category
        if not result.from_cache:
            break
        logger.debug("Category %s not in cached list for user %s, refreshing", category_id, user_id)
    raise invalid_input(f"Unknown category: {category_id}")


async def add_expense(
    store: ExpenseSink,
    cache: CategoryCache,
    user_id: str,
    payload: ExpenseCreate,
    now: dt.datetime | None = None,
) -> ExpenseRecord:
    """Validate and store a new expense or income record.

    The category must be one of the user's categories; its name is copied onto
    the record. Budget period and month key come from the expense date unless
    an explicit period is given.
    """
    user_id = require_user_id(user_id)
    validate_amount(payload)
    now = _as_utc(now or dt.datetime.now(dt.timezone.utc))
    start, end = resolve_budget_period(payload, now)
    category = await resolve_category(cache, user_id, payload.category_id.strip())

    record = ExpenseRecord(
        id=str(uuid4()),
        user_id=user_id,
        category_id=category.id,
        category_name=category.name,
        type=payload.type,
        amount=payload.amount,
        description=payload.description,
        budget_start_date=start,
        budget_end_date=end,
        month_key=month_key_for(start),
        created_at=now,
        currency=payload.currency,
        payment_method=payload.payment_method,
        receipt_url=payload.receipt_url,
        tags=frozenset(tag.strip() for tag in payload.tags if tag.strip()),
    )

    try:
        await store.add(record)
    except BreakdownError:
        raise
    except Exception as exc:
        raise classify_exception(exc) from exc
    return record
