from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from budgey.schemas.breakdown import ExpenseBreakdown, MonthlyBreakdown
from budgey.schemas.expense import ExpenseRecord
from budgey.services.aggregator import assemble_month, finalize_breakdown
from budgey.services.errors import data_processing_error

logger = logging.getLogger(__name__)


def _record_ids(month: MonthlyBreakdown) -> set[str]:
    ids = {record.id for record in month.income}
    for category in month.categories:
        ids.update(record.id for record in category.expenses)
    return ids


def _unseen(records: Iterable[ExpenseRecord], seen: set[str]) -> list[ExpenseRecord]:
    fresh: list[ExpenseRecord] = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        fresh.append(record)
    return fresh


def merge_month(current: MonthlyBreakdown, incoming: MonthlyBreakdown) -> MonthlyBreakdown:
    """Union two breakdowns of the same month without double counting.

    Incoming records whose id already appears anywhere in ``current`` are
    dropped before the category lists are concatenated, and every total is
    recomputed from the resulting record lists.
    """
    if current.month_key != incoming.month_key:
        raise data_processing_error(
            f"Cannot merge month {incoming.month_key!r} into {current.month_key!r}"
        )

    seen = _record_ids(current)
    groups: dict[str, tuple[str, list[ExpenseRecord]]] = {
        category.category_id: (category.category_name, list(category.expenses))
        for category in current.categories
    }

    skipped = 0
    for category in incoming.categories:
        fresh = _unseen(category.expenses, seen)
        skipped += len(category.expenses) - len(fresh)
        if category.category_id in groups:
            groups[category.category_id][1].extend(fresh)
        elif fresh:
            groups[category.category_id] = (category.category_name, fresh)

    fresh_income = _unseen(incoming.income, seen)
    skipped += len(incoming.income) - len(fresh_income)
    if skipped:
        logger.debug("Skipped %s already merged record(s) in month %s", skipped, current.month_key)

    return assemble_month(
        current.month_key,
        [(category_id, name, records) for category_id, (name, records) in groups.items()],
        [*current.income, *fresh_income],
    )


def merge_breakdowns(
    accumulated: ExpenseBreakdown | None,
    incoming: Sequence[MonthlyBreakdown],
    month_limit: int | None = None,
) -> ExpenseBreakdown:
    """Fold freshly aggregated months into the accumulated breakdown.

    Returns a new breakdown; ``accumulated`` is left as it was. Months and
    categories are re-sorted and the overall totals recomputed from scratch.
    """
    months: dict[str, MonthlyBreakdown] = {}
    for month in accumulated.months if accumulated is not None else ():
        if month.month_key in months:
            raise data_processing_error(f"Duplicate month {month.month_key!r} in accumulated breakdown")
        months[month.month_key] = month

    for month in incoming:
        # new months are merged into an empty one so a page is deduplicated against itself
        existing = months.get(month.month_key) or _empty_month(month.month_key)
        months[month.month_key] = merge_month(existing, month)

    return finalize_breakdown(months.values(), month_limit=month_limit)


def _empty_month(month_key: str) -> MonthlyBreakdown:
    return assemble_month(month_key, [], [])
