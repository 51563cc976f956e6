import asyncio
from decimal import Decimal

import pytest

from budgey.schemas.expense import ExpenseRecord
from budgey.services.errors import BreakdownError, ErrorKind
from budgey.services.pagination import FetchStatus, PaginationController
from budgey.services.sources import ExpensePage


def _record(record_id: str, category: str, amount: str, month_key: str = "01-25", user_id: str = "u1") -> ExpenseRecord:
    return ExpenseRecord(
        id=record_id,
        user_id=user_id,
        category_id=f"cat-{category.lower()}",
        category_name=category,
        amount=Decimal(amount),
        month_key=month_key,
    )


class FakeFetcher:
    """Serves pages keyed by cursor; queued errors are raised before any page."""

    def __init__(self, pages: dict, errors: list[Exception] | None = None) -> None:
        self.pages = pages
        self.errors = list(errors or [])
        self.calls: list[tuple] = []
        self.gate: asyncio.Event | None = None

    async def fetch(self, user_id, page_size, cursor):
        self.calls.append((user_id, page_size, cursor))
        if self.gate is not None:
            gate, self.gate = self.gate, None
            await gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        return self.pages[cursor]


def _two_pages() -> dict:
    return {
        None: ExpensePage(records=(_record("a", "Food", "100"), _record("b", "Food", "50")), next_cursor="c1"),
        "c1": ExpensePage(records=(_record("c", "Transport", "30"),), next_cursor=None),
    }


def _food_total(controller: PaginationController) -> Decimal:
    month = controller.breakdown.month("01-25")
    return next(item.total_amount for item in month.categories if item.category_name == "Food")


def test_pages_accumulate_until_short_page() -> None:
    fetcher = FakeFetcher(_two_pages())
    controller = PaginationController(fetcher, page_size=2)

    async def scenario() -> None:
        assert (await controller.load_next_page("u1")).applied
        assert controller.current_page == 1
        assert controller.has_next_page
        assert not controller.has_previous_page

        assert (await controller.load_next_page("u1")).applied
        assert controller.current_page == 2
        assert not controller.has_next_page
        assert controller.has_previous_page

        assert not (await controller.load_next_page("u1")).applied

    asyncio.run(scenario())

    assert [call[2] for call in fetcher.calls] == [None, "c1"]
    assert _food_total(controller) == Decimal("150")
    assert controller.breakdown.month("01-25").total_expenses == Decimal("180")
    assert controller.status == FetchStatus.IDLE


def test_redelivered_record_is_merged_once() -> None:
    pages = _two_pages()
    pages["c1"] = ExpensePage(records=(_record("a", "Food", "100"), _record("c", "Transport", "30")), next_cursor=None)
    controller = PaginationController(FakeFetcher(pages), page_size=2)

    async def scenario() -> None:
        await controller.load_next_page("u1")
        await controller.load_next_page("u1")

    asyncio.run(scenario())

    assert _food_total(controller) == Decimal("150")
    assert controller.breakdown.month("01-25").total_expenses == Decimal("180")


def test_full_page_without_continuation_is_last() -> None:
    pages = {None: ExpensePage(records=(_record("a", "Food", "1"), _record("b", "Food", "2")), next_cursor=None)}
    controller = PaginationController(FakeFetcher(pages), page_size=2)

    asyncio.run(controller.load_next_page("u1"))

    assert not controller.has_next_page


def test_concurrent_load_is_a_no_op() -> None:
    fetcher = FakeFetcher(_two_pages())
    controller = PaginationController(fetcher, page_size=2)

    async def run() -> None:
        gate = asyncio.Event()
        fetcher.gate = gate
        first = asyncio.create_task(controller.load_next_page("u1"))
        await asyncio.sleep(0)
        assert controller.is_fetching

        second = await controller.load_next_page("u1")
        assert not second.applied
        assert second.error is None

        gate.set()
        assert (await first).applied

    asyncio.run(run())

    assert len(fetcher.calls) == 1
    assert controller.current_page == 1
    assert not controller.is_fetching


def test_refresh_discards_in_flight_fetch() -> None:
    stale = ExpensePage(records=(_record("old", "Food", "999"),), next_cursor="old-cursor")
    fresh = ExpensePage(records=(_record("new", "Rent", "10"),), next_cursor=None)

    class SwitchingFetcher(FakeFetcher):
        async def fetch(self, user_id, page_size, cursor):
            if not self.calls:
                self.calls.append((user_id, page_size, cursor))
                await self.gate.wait()
                return stale
            self.calls.append((user_id, page_size, cursor))
            return fresh

    fetcher = SwitchingFetcher({})
    controller = PaginationController(fetcher, page_size=5)

    async def run() -> None:
        fetcher.gate = asyncio.Event()
        first = asyncio.create_task(controller.load_next_page("u1"))
        await asyncio.sleep(0)

        assert (await controller.refresh("u1")).applied

        fetcher.gate.set()
        assert not (await first).applied

    asyncio.run(run())

    month = controller.breakdown.month("01-25")
    assert [item.category_name for item in month.categories] == ["Rent"]
    assert controller.current_page == 1
    assert controller.state.cursor is None
    assert controller.status == FetchStatus.IDLE


def test_refresh_starts_from_first_page() -> None:
    pages = _two_pages()
    fetcher = FakeFetcher(pages)
    controller = PaginationController(fetcher, page_size=2)

    async def scenario() -> None:
        await controller.load_next_page("u1")
        await controller.load_next_page("u1")
        pages[None] = ExpensePage(records=(_record("z", "Gifts", "5"),), next_cursor=None)
        assert (await controller.refresh("u1")).applied

    asyncio.run(scenario())

    assert fetcher.calls[-1][2] is None
    assert controller.current_page == 1
    assert not controller.has_previous_page
    assert [item.category_name for item in controller.breakdown.month("01-25").categories] == ["Gifts"]


def test_failed_refresh_leaves_empty_breakdown() -> None:
    fetcher = FakeFetcher(_two_pages())
    controller = PaginationController(fetcher, page_size=2)

    async def scenario() -> None:
        await controller.load_next_page("u1")
        fetcher.errors.append(ConnectionError("offline"))
        result = await controller.refresh("u1")
        assert result.error.kind == ErrorKind.TRANSIENT_FETCH_FAILURE

    asyncio.run(scenario())

    assert controller.breakdown is None
    assert controller.current_page == 1
    assert controller.has_next_page


def test_transient_failure_keeps_state_and_can_be_retried() -> None:
    fetcher = FakeFetcher(_two_pages())
    controller = PaginationController(fetcher, page_size=2)

    async def scenario() -> None:
        await controller.load_next_page("u1")
        before = controller.breakdown

        fetcher.errors.append(TimeoutError("slow"))
        result = await controller.load_next_page("u1")
        assert result.error.kind == ErrorKind.TRANSIENT_FETCH_FAILURE
        assert result.error.retryable
        assert controller.breakdown is before
        assert controller.current_page == 1
        assert controller.state.cursor == "c1"
        assert controller.status == FetchStatus.FAILED
        assert controller.snapshot().error.kind == ErrorKind.TRANSIENT_FETCH_FAILURE

        assert (await controller.load_next_page("u1")).applied

    asyncio.run(scenario())

    assert [call[2] for call in fetcher.calls] == [None, "c1", "c1"]
    assert controller.current_page == 2
    assert controller.last_error is None
    assert controller.snapshot().error is None


def test_permission_failure_is_reported() -> None:
    controller = PaginationController(FakeFetcher({}, errors=[PermissionError("denied")]), page_size=2)

    result = asyncio.run(controller.load_next_page("u1"))

    assert result.error.kind == ErrorKind.PERMISSION_DENIED
    assert not result.error.retryable
    assert controller.breakdown is None


def test_bad_record_is_a_data_processing_error() -> None:
    pages = _two_pages()
    pages["c1"] = ExpensePage(records=(_record("bad", "Food", "-5"),), next_cursor=None)
    controller = PaginationController(FakeFetcher(pages), page_size=2)

    async def scenario() -> None:
        await controller.load_next_page("u1")
        before = controller.breakdown
        result = await controller.load_next_page("u1")
        assert result.error.kind == ErrorKind.DATA_PROCESSING_ERROR
        assert controller.breakdown is before

    asyncio.run(scenario())

    assert controller.current_page == 1


def test_previous_page_restores_snapshot_without_fetching() -> None:
    fetcher = FakeFetcher(_two_pages())
    controller = PaginationController(fetcher, page_size=2)

    async def scenario() -> None:
        await controller.load_next_page("u1")
        first_breakdown = controller.breakdown
        await controller.load_next_page("u1")

        assert controller.load_previous_page().applied
        assert controller.breakdown is first_breakdown
        assert controller.current_page == 1
        assert controller.has_next_page
        assert not controller.load_previous_page().applied

        assert (await controller.load_next_page("u1")).applied

    asyncio.run(scenario())

    assert [call[2] for call in fetcher.calls] == [None, "c1", "c1"]
    assert controller.current_page == 2


def test_previous_page_on_first_page_is_a_no_op() -> None:
    controller = PaginationController(FakeFetcher(_two_pages()), page_size=2)

    assert not controller.load_previous_page().applied

    asyncio.run(controller.load_next_page("u1"))

    assert not controller.load_previous_page().applied
    assert controller.current_page == 1


def test_reset_cursor_refetches_from_start_without_double_counting() -> None:
    fetcher = FakeFetcher(_two_pages())
    controller = PaginationController(fetcher, page_size=2)

    async def scenario() -> None:
        await controller.load_next_page("u1")
        await controller.load_next_page("u1")
        kept = controller.breakdown

        controller.reset_cursor()
        assert controller.breakdown is kept
        assert controller.has_next_page

        await controller.load_next_page("u1")

    asyncio.run(scenario())

    assert fetcher.calls[-1][2] is None
    assert _food_total(controller) == Decimal("150")
    assert controller.breakdown.month("01-25").total_expenses == Decimal("180")


def test_other_user_starts_from_scratch() -> None:
    pages = _two_pages()
    fetcher = FakeFetcher(pages)
    controller = PaginationController(fetcher, page_size=2)

    async def scenario() -> None:
        await controller.load_next_page("u1")
        pages[None] = ExpensePage(records=(_record("x", "Rent", "70", user_id="u2"),), next_cursor=None)
        assert (await controller.load_next_page("u2")).applied

    asyncio.run(scenario())

    assert fetcher.calls[-1] == ("u2", 2, None)
    month = controller.breakdown.month("01-25")
    assert [item.category_name for item in month.categories] == ["Rent"]
    assert controller.current_page == 1


def test_blank_user_is_rejected_without_fetching() -> None:
    fetcher = FakeFetcher(_two_pages())
    controller = PaginationController(fetcher, page_size=2)

    result = asyncio.run(controller.load_next_page("   "))

    assert result.error.kind == ErrorKind.INVALID_INPUT
    assert fetcher.calls == []


@pytest.mark.parametrize("page_size, month_limit", [(0, None), (101, None), (20, 0), (20, 25)])
def test_limits_are_validated(page_size: int, month_limit: int | None) -> None:
    with pytest.raises(BreakdownError) as excinfo:
        PaginationController(FakeFetcher({}), page_size=page_size, month_limit=month_limit)

    assert excinfo.value.kind == ErrorKind.INVALID_INPUT


def test_month_limit_truncates_accumulated_months() -> None:
    pages = {
        None: ExpensePage(
            records=tuple(_record(f"r{month}", "Food", "1", month_key=f"2025-{month:02d}") for month in range(1, 5)),
            next_cursor=None,
        )
    }
    controller = PaginationController(FakeFetcher(pages), page_size=10, month_limit=2)

    asyncio.run(controller.load_next_page("u1"))

    assert [item.month_key for item in controller.breakdown.months] == ["2025-04", "2025-03"]


def test_snapshot_before_first_load() -> None:
    snapshot = PaginationController(FakeFetcher({}), page_size=5).snapshot()

    assert snapshot.breakdown is None
    assert snapshot.current_page == 1
    assert snapshot.has_next_page
    assert not snapshot.has_previous_page
    assert not snapshot.is_fetching
