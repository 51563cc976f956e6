from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass

from budgey.services.category_cache import CategoryCache
from budgey.services.errors import invalid_input, require_user_id
from budgey.services.pagination import PaginationController, validate_limits
from budgey.services.sources import CategorySource, PageFetcher

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 1000


@dataclass(slots=True)
class UserSession:
    user_id: str
    controller: PaginationController
    categories: CategoryCache


class SessionRegistry:
    """Owns one controller and one category cache per active user.

    Adapters are shared; all mutable pagination and cache state lives in the
    per-user session, so concurrent users never see each other's cursors.
    At most ``max_sessions`` sessions are kept; opening one more closes the
    least recently used session.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        category_source: CategorySource,
        page_size: int = 20,
        month_limit: int | None = None,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
    ) -> None:
        validate_limits(page_size, month_limit)
        if max_sessions < 1:
            raise invalid_input("Max sessions must be at least 1")
        self._fetcher = fetcher
        self._category_source = category_source
        self._page_size = page_size
        self._month_limit = month_limit
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[str, UserSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._sessions

    @property
    def max_sessions(self) -> int:
        return self._max_sessions

    def get(self, user_id: str) -> UserSession:
        user_id = require_user_id(user_id)
        session = self._sessions.get(user_id)
        if session is not None:
            self._sessions.move_to_end(user_id)
            return session

        session = UserSession(
            user_id=user_id,
            controller=PaginationController(
                self._fetcher,
                page_size=self._page_size,
                month_limit=self._month_limit,
            ),
            categories=CategoryCache(self._category_source),
        )
        self._sessions[user_id] = session
        logger.info("Opened breakdown session for user %s", user_id)

        while len(self._sessions) > self._max_sessions:
            oldest = next(iter(self._sessions))
            logger.info("Evicting least recently used session of user %s", oldest)
            self.close(oldest)
        return session

    def close(self, user_id: str) -> None:
        session = self._sessions.pop(user_id, None)
        if session is not None:
            session.controller.reset_cursor()
            session.categories.invalidate()
            logger.info("Closed breakdown session for user %s", user_id)
