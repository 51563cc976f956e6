from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from budgey.schemas.breakdown import BreakdownPageRead, ErrorRead, ExpenseBreakdown
from budgey.services.aggregator import aggregate_page
from budgey.services.errors import (
    BreakdownError,
    classify_exception,
    data_processing_error,
    invalid_input,
    require_user_id,
)
from budgey.services.merger import merge_breakdowns
from budgey.services.sources import PageFetcher

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
MAX_MONTH_LIMIT = 24


class FetchStatus(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    FAILED = "failed"


@dataclass(slots=True)
class PaginationState:
    page: int = 0
    cursor: Any | None = None
    cursor_user_id: str | None = None
    has_next_page: bool = True

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1


@dataclass(slots=True, frozen=True)
class PageSnapshot:
    page: int
    cursor: Any | None
    cursor_user_id: str | None
    has_next_page: bool
    breakdown: ExpenseBreakdown


@dataclass(slots=True, frozen=True)
class LoadResult:
    applied: bool
    error: BreakdownError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def validate_limits(page_size: int, month_limit: int | None) -> None:
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise invalid_input(f"Page size must be between 1 and {MAX_PAGE_SIZE}")
    if month_limit is not None and (month_limit < 1 or month_limit > MAX_MONTH_LIMIT):
        raise invalid_input(f"Month limit must be between 1 and {MAX_MONTH_LIMIT}")


class PaginationController:
    """Accumulates a user's expense breakdown page by page.

    One instance serves one user session on one event loop. At most one
    fetch runs at a time; every fetch is tagged with the generation it
    started in, and ``refresh()``/``reset_cursor()`` start a new generation
    so results of abandoned fetches are dropped instead of merged.

    Collaborator failures never raise out of the public operations. They
    come back as ``LoadResult.error`` and are kept in ``last_error``.
    """

    def __init__(self, fetcher: PageFetcher, page_size: int = 20, month_limit: int | None = None) -> None:
        validate_limits(page_size, month_limit)
        self.fetcher = fetcher
        self.page_size = page_size
        self.month_limit = month_limit
        self.state = PaginationState()
        self.status = FetchStatus.IDLE
        self.last_error: BreakdownError | None = None
        self._breakdown: ExpenseBreakdown | None = None
        self._owner_user_id: str | None = None
        self._history: list[PageSnapshot] = []
        self._generation = 0

    @property
    def breakdown(self) -> ExpenseBreakdown | None:
        return self._breakdown

    @property
    def current_page(self) -> int:
        return max(self.state.page, 1)

    @property
    def has_next_page(self) -> bool:
        return self.state.has_next_page

    @property
    def has_previous_page(self) -> bool:
        return self.state.has_previous_page

    @property
    def is_fetching(self) -> bool:
        return self.status == FetchStatus.FETCHING

    @property
    def generation(self) -> int:
        return self._generation

    async def load_next_page(self, user_id: str) -> LoadResult:
        try:
            user_id = require_user_id(user_id)
        except BreakdownError as exc:
            self.last_error = exc
            return LoadResult(applied=False, error=exc)

        if self.is_fetching:
            return LoadResult(applied=False)

        if self._captured_for_other_user(user_id):
            # Neither the cursor nor the accumulated months may carry over to another user.
            logger.info("Pagination state belongs to another user, starting over for %s", user_id)
            self._clear()

        if not self.state.has_next_page:
            return LoadResult(applied=False)

        return await self._load(user_id, self._generation)

    def load_previous_page(self) -> LoadResult:
        if self.is_fetching or len(self._history) < 2:
            return LoadResult(applied=False)

        self._history.pop()
        snapshot = self._history[-1]
        self.state = PaginationState(
            page=snapshot.page,
            cursor=snapshot.cursor,
            cursor_user_id=snapshot.cursor_user_id,
            has_next_page=snapshot.has_next_page,
        )
        self._breakdown = snapshot.breakdown
        self.status = FetchStatus.IDLE
        self.last_error = None
        return LoadResult(applied=True)

    async def refresh(self, user_id: str) -> LoadResult:
        try:
            user_id = require_user_id(user_id)
        except BreakdownError as exc:
            self.last_error = exc
            return LoadResult(applied=False, error=exc)

        self._generation += 1
        self._clear()
        self.status = FetchStatus.IDLE
        return await self._load(user_id, self._generation)

    def reset_cursor(self) -> None:
        self._generation += 1
        self._reset_cursor_state()
        if self.is_fetching:
            self.status = FetchStatus.IDLE

    def snapshot(self) -> BreakdownPageRead:
        error = None
        if self.last_error is not None:
            error = ErrorRead(
                kind=self.last_error.kind,
                message=self.last_error.message,
                retryable=self.last_error.retryable,
            )
        return BreakdownPageRead(
            breakdown=self._breakdown,
            current_page=self.current_page,
            page_size=self.page_size,
            has_next_page=self.has_next_page,
            has_previous_page=self.has_previous_page,
            is_fetching=self.is_fetching,
            error=error,
        )

    async def _load(self, user_id: str, generation: int) -> LoadResult:
        self.status = FetchStatus.FETCHING
        cursor = self.state.cursor
        try:
            page = await self.fetcher.fetch(user_id, self.page_size, cursor)
        except asyncio.CancelledError:
            if generation == self._generation:
                self.status = FetchStatus.IDLE
            raise
        except Exception as exc:
            return self._fail(generation, classify_exception(exc))

        if generation != self._generation:
            logger.info("Discarding page fetched for a previous generation (%s)", generation)
            return LoadResult(applied=False)

        records = list(page.records)
        try:
            incoming = aggregate_page(records)
            breakdown = merge_breakdowns(self._breakdown, incoming, month_limit=self.month_limit)
        except BreakdownError as exc:
            return self._fail(generation, exc)
        except Exception as exc:
            return self._fail(generation, data_processing_error(str(exc) or type(exc).__name__))

        self._breakdown = breakdown
        self._owner_user_id = user_id
        self.state.page += 1
        if records:
            self.state.cursor = page.next_cursor
        self.state.cursor_user_id = user_id
        # A short page is the last one; so is a page the source reports no continuation for.
        self.state.has_next_page = len(records) >= self.page_size and page.next_cursor is not None
        self._history.append(
            PageSnapshot(
                page=self.state.page,
                cursor=self.state.cursor,
                cursor_user_id=user_id,
                has_next_page=self.state.has_next_page,
                breakdown=breakdown,
            )
        )
        self.status = FetchStatus.IDLE
        self.last_error = None
        logger.info(
            "Loaded page %s for user %s: %s record(s), has_next_page=%s",
            self.state.page,
            user_id,
            len(records),
            self.state.has_next_page,
        )
        return LoadResult(applied=True)

    def _fail(self, generation: int, error: BreakdownError) -> LoadResult:
        if generation != self._generation:
            logger.info("Ignoring failure of a fetch from a previous generation: %s", error.message)
            return LoadResult(applied=False)
        self.status = FetchStatus.FAILED
        self.last_error = error
        logger.warning("Page %s failed (%s): %s", self.state.page + 1, error.kind.value, error.message)
        return LoadResult(applied=False, error=error)

    def _captured_for_other_user(self, user_id: str) -> bool:
        owners = {self.state.cursor_user_id, self._owner_user_id} - {None}
        return any(owner != user_id for owner in owners)

    def _reset_cursor_state(self) -> None:
        self.state.cursor = None
        self.state.cursor_user_id = None
        self.state.has_next_page = True

    def _clear(self) -> None:
        self.state = PaginationState()
        self._breakdown = None
        self._owner_user_id = None
        self._history = []
        self.last_error = None
