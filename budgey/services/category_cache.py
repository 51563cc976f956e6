from __future__ import annotations

import logging
from dataclasses import dataclass

from budgey.schemas.category import CategoryRecord
from budgey.services.errors import BreakdownError, classify_exception, require_user_id
from budgey.services.sources import CategorySource

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CategoryResult:
    categories: list[CategoryRecord] | None = None
    error: BreakdownError | None = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class CategoryCache:
    """Category list of a single user, kept until explicitly invalidated.

    There is no expiry: the cached list is replaced on every forced or cache
    missing fetch and dropped by ``invalidate()`` or when a different user
    asks for categories.
    """

    def __init__(self, source: CategorySource) -> None:
        self._source = source
        self._user_id: str | None = None
        self._categories: list[CategoryRecord] | None = None

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def is_populated(self) -> bool:
        return self._categories is not None

    async def get(self, user_id: str, force_refresh: bool = False) -> CategoryResult:
        try:
            user_id = require_user_id(user_id)
        except BreakdownError as exc:
            return CategoryResult(error=exc)

        if not force_refresh and self._user_id == user_id and self._categories is not None:
            logger.debug("Category cache hit for user %s", user_id)
            return CategoryResult(categories=list(self._categories), from_cache=True)

        try:
            categories = list(await self._source.list(user_id))
        except Exception as exc:
            error = classify_exception(exc)
            logger.warning("Category fetch failed for user %s: %s", user_id, error.kind.value)
            return CategoryResult(error=error)

        self._user_id = user_id
        self._categories = categories
        logger.debug("Category cache refreshed for user %s (%s items)", user_id, len(categories))
        return CategoryResult(categories=list(categories))

    def invalidate(self) -> None:
        self._user_id = None
        self._categories = None
        logger.debug("Category cache invalidated")
