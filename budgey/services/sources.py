from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from budgey.schemas.category import CategoryRecord
from budgey.schemas.expense import ExpenseRecord


@dataclass(slots=True, frozen=True)
class ExpensePage:
    records: Sequence[ExpenseRecord] = field(default_factory=tuple)
    next_cursor: Any | None = None


class PageFetcher(Protocol):
    async def fetch(self, user_id: str, page_size: int, cursor: Any | None) -> ExpensePage:
        """Return up to ``page_size`` records after ``cursor``, most recent first."""


class CategorySource(Protocol):
    async def list(self, user_id: str) -> list[CategoryRecord]: ...

    async def create(
        self,
        user_id: str,
        name: str,
        icon: str | None = None,
        color: str | None = None,
        description: str | None = None,
    ) -> str: ...
