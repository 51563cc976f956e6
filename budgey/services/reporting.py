from __future__ import annotations

from typing import Protocol

from budgey.schemas.breakdown import MonthlyBreakdown
from budgey.schemas.expense import ExpenseRecord
from budgey.services.aggregator import aggregate_page, assemble_month
from budgey.services.errors import BreakdownError, classify_exception, invalid_input, require_user_id
from budgey.services.month import is_valid_month_key


class MonthSource(Protocol):
    async def list_month(self, user_id: str, month_key: str) -> list[ExpenseRecord]: ...


async def get_monthly_breakdown(source: MonthSource, user_id: str, month_key: str) -> MonthlyBreakdown:
    user_id = require_user_id(user_id)
    if not is_valid_month_key(month_key):
        raise invalid_input("Month key must be in YYYY-MM format")

    try:
        records = await source.list_month(user_id, month_key)
    except BreakdownError:
        raise
    except Exception as exc:
        raise classify_exception(exc) from exc

    months = aggregate_page(record for record in records if record.month_key == month_key)
    if not months:
        return assemble_month(month_key, [], [])
    return months[0]
