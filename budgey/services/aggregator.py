from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Sequence
from decimal import Decimal

from budgey.models.enums import ExpenseType
from budgey.schemas.breakdown import (
    ZERO,
    CategoryBreakdown,
    ExpenseBreakdown,
    MonthlyBreakdown,
    OverallTotals,
)
from budgey.schemas.expense import ExpenseRecord
from budgey.services.errors import data_processing_error
from budgey.services.month import month_display_name

HUNDRED = Decimal("100")
_OLDEST = dt.datetime.min.replace(tzinfo=dt.timezone.utc)


def _created_sort_key(record: ExpenseRecord) -> tuple[bool, dt.datetime]:
    created_at = record.created_at
    if created_at is None:
        return False, _OLDEST
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=dt.timezone.utc)
    return True, created_at


def sort_records(records: Iterable[ExpenseRecord]) -> tuple[ExpenseRecord, ...]:
    # Most recent first, untimestamped records last; stable for equal timestamps.
    return tuple(sorted(records, key=_created_sort_key, reverse=True))


CategoryGroup = tuple[str, str, Sequence[ExpenseRecord]]


def category_sort_key(item: CategoryBreakdown) -> tuple[Decimal, str, str]:
    return -item.total_amount, item.category_name, item.category_id


def percentage_of(total: Decimal, month_total: Decimal) -> Decimal:
    if month_total <= 0:
        return ZERO
    return total / month_total * HUNDRED


def build_category_breakdown(
    category_id: str,
    category_name: str,
    records: Sequence[ExpenseRecord],
    month_total: Decimal,
) -> CategoryBreakdown:
    total_amount = sum((record.amount for record in records), ZERO)
    count = len(records)
    average_amount = total_amount / count if count else ZERO
    return CategoryBreakdown(
        category_id=category_id,
        category_name=category_name,
        expenses=sort_records(records),
        total_amount=total_amount,
        expense_count=count,
        average_amount=average_amount,
        percentage=percentage_of(total_amount, month_total),
    )


def assemble_month(
    month_key: str,
    groups: Iterable[CategoryGroup],
    income: Sequence[ExpenseRecord],
) -> MonthlyBreakdown:
    """Build a month from ``(category_id, category_name, records)`` groups.

    Category totals are computed from their record lists and percentages
    are taken against this month's own expense total.
    """
    grouped = [group for group in groups if group[2]]
    category_ids = [category_id for category_id, _, _ in grouped]
    if len(set(category_ids)) != len(category_ids):
        raise data_processing_error(f"Duplicate category groups in month {month_key!r}")

    month_total = sum(
        (record.amount for _, _, records in grouped for record in records),
        ZERO,
    )
    rebuilt = sorted(
        (
            build_category_breakdown(category_id, category_name, records, month_total)
            for category_id, category_name, records in grouped
        ),
        key=category_sort_key,
    )

    total_expenses = sum((item.total_amount for item in rebuilt), ZERO)
    if total_expenses != month_total:
        raise data_processing_error(
            f"Category totals {total_expenses} do not add up to month total {month_total} for {month_key!r}"
        )

    total_income = sum((record.amount for record in income), ZERO)
    return MonthlyBreakdown(
        month_key=month_key,
        month_display_name=month_display_name(month_key),
        categories=tuple(rebuilt),
        income=sort_records(income),
        total_expenses=total_expenses,
        total_income=total_income,
        net_amount=total_income - total_expenses,
        expense_count=sum(item.expense_count for item in rebuilt),
        income_count=len(income),
    )


def _validate_record(record: ExpenseRecord) -> None:
    if record.amount < 0:
        raise data_processing_error(f"Expense {record.id!r} has a negative amount: {record.amount}")


def aggregate_page(records: Iterable[ExpenseRecord]) -> list[MonthlyBreakdown]:
    """Fold one page of raw records into per-month breakdowns.

    Only month keys present in the input appear in the output. Income never
    shows up in the category groups.
    """
    by_month: dict[str, tuple[dict[str, list[ExpenseRecord]], dict[str, str], list[ExpenseRecord]]] = {}
    for record in records:
        _validate_record(record)
        categories, names, income = by_month.setdefault(record.month_key, ({}, {}, []))
        if record.type == ExpenseType.INCOME:
            income.append(record)
            continue
        categories.setdefault(record.category_id, []).append(record)
        names.setdefault(record.category_id, record.category_name)

    months: list[MonthlyBreakdown] = []
    for month_key, (categories, names, income) in by_month.items():
        groups = [
            (category_id, names[category_id], category_records)
            for category_id, category_records in categories.items()
        ]
        months.append(assemble_month(month_key, groups, income))

    months.sort(key=lambda item: item.month_key, reverse=True)
    return months


def compute_overall_totals(months: Sequence[MonthlyBreakdown]) -> OverallTotals:
    total_expenses = sum((item.total_expenses for item in months), ZERO)
    total_income = sum((item.total_income for item in months), ZERO)
    month_count = len(months)

    category_totals: dict[str, Decimal] = {}
    for month in months:
        for category in month.categories:
            category_totals[category.category_name] = (
                category_totals.get(category.category_name, ZERO) + category.total_amount
            )

    top_expense_category = None
    if category_totals:
        # max() keeps the first of equal totals, i.e. first-encountered order.
        top_expense_category = max(category_totals.items(), key=lambda item: item[1])[0]

    return OverallTotals(
        total_expenses=total_expenses,
        total_income=total_income,
        net_amount=total_income - total_expenses,
        month_count=month_count,
        average_monthly_expenses=total_expenses / month_count if month_count else ZERO,
        average_monthly_income=total_income / month_count if month_count else ZERO,
        top_expense_category=top_expense_category,
    )


def finalize_breakdown(months: Iterable[MonthlyBreakdown], month_limit: int | None = None) -> ExpenseBreakdown:
    ordered = sorted(months, key=lambda item: item.month_key, reverse=True)
    if month_limit is not None:
        ordered = ordered[:month_limit]
    return ExpenseBreakdown(months=tuple(ordered), totals=compute_overall_totals(ordered))


def build_expense_breakdown(
    records: Iterable[ExpenseRecord],
    month_limit: int | None = None,
) -> ExpenseBreakdown:
    return finalize_breakdown(aggregate_page(records), month_limit=month_limit)
