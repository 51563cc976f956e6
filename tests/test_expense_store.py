import asyncio
import datetime as dt
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from budgey.models import Expense, ExpenseType
from budgey.services.errors import BreakdownError, ErrorKind
from budgey.services.expense_store import ExpenseCursor, SqlExpenseStore

BASE_TIME = dt.datetime(2025, 1, 20, 12, 0, tzinfo=dt.timezone.utc)


class FakeScalarResult:
    def __init__(self, rows: list[Expense]) -> None:
        self.rows = rows

    def all(self) -> list[Expense]:
        return list(self.rows)


class FakeSession:
    def __init__(self, rows: list[Expense], statements: list, error: Exception | None) -> None:
        self.rows = rows
        self.statements = statements
        self.error = error

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def scalars(self, statement) -> FakeScalarResult:
        self.statements.append(statement)
        if self.error is not None:
            raise self.error
        return FakeScalarResult(self.rows)


class FakeSessionFactory:
    def __init__(self, rows: list[Expense], error: Exception | None = None) -> None:
        self.rows = rows
        self.error = error
        self.statements: list = []

    def __call__(self) -> FakeSession:
        return FakeSession(self.rows, self.statements, self.error)


def _expense(record_id: str, minutes_ago: int, amount: str = "10") -> Expense:
    return Expense(
        id=record_id,
        user_id="u1",
        category_id="c1",
        category_name="Food",
        type=ExpenseType.EXPENSE,
        amount=Decimal(amount),
        budget_start_date=dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc),
        budget_end_date=dt.datetime(2025, 1, 31, 23, 59, 59, tzinfo=dt.timezone.utc),
        budget_month_key="2025-01",
        created_at=BASE_TIME - dt.timedelta(minutes=minutes_ago),
        currency="USD",
        tags=["lunch"],
    )


def test_exactly_full_last_page_has_no_cursor() -> None:
    factory = FakeSessionFactory([_expense("e3", 0), _expense("e2", 1), _expense("e1", 2)])

    page = asyncio.run(SqlExpenseStore(factory).fetch("u1", 3, None))

    assert [item.id for item in page.records] == ["e3", "e2", "e1"]
    assert page.next_cursor is None


def test_extra_row_yields_cursor_of_last_returned_record() -> None:
    rows = [_expense("e4", 0), _expense("e3", 1), _expense("e2", 2)]
    factory = FakeSessionFactory(rows)

    page = asyncio.run(SqlExpenseStore(factory).fetch("u1", 2, None))

    assert [item.id for item in page.records] == ["e4", "e3"]
    assert page.next_cursor == ExpenseCursor(created_at=rows[1].created_at, id="e3")
    assert page.records[0].month_key == "2025-01"
    assert page.records[0].tags == frozenset({"lunch"})


def test_query_orders_by_timestamp_then_id_and_looks_one_row_ahead() -> None:
    factory = FakeSessionFactory([])
    cursor = ExpenseCursor(created_at=BASE_TIME, id="e9")

    page = asyncio.run(SqlExpenseStore(factory).fetch("u1", 5, cursor))

    assert page.records == ()
    assert page.next_cursor is None
    compiled = factory.statements[0].compile()
    sql = str(compiled)
    assert "ORDER BY expenses.created_at DESC, expenses.id DESC" in sql
    assert "expenses.created_at <" in sql
    assert "expenses.id <" in sql
    assert 6 in compiled.params.values()
    assert "e9" in compiled.params.values()
    assert "u1" in compiled.params.values()


def test_first_page_has_no_keyset_filter() -> None:
    factory = FakeSessionFactory([])

    asyncio.run(SqlExpenseStore(factory).fetch("u1", 5, None))

    sql = str(factory.statements[0].compile())
    assert "expenses.created_at <" not in sql


def test_foreign_cursor_is_invalid_input() -> None:
    factory = FakeSessionFactory([])

    with pytest.raises(BreakdownError) as excinfo:
        asyncio.run(SqlExpenseStore(factory).fetch("u1", 5, "opaque-token"))

    assert excinfo.value.kind == ErrorKind.INVALID_INPUT
    assert factory.statements == []


def test_connection_failure_is_transient() -> None:
    factory = FakeSessionFactory([], error=OperationalError("SELECT", {}, Exception("server closed")))

    with pytest.raises(BreakdownError) as excinfo:
        asyncio.run(SqlExpenseStore(factory).fetch("u1", 5, None))

    assert excinfo.value.kind == ErrorKind.TRANSIENT_FETCH_FAILURE
