from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    TRANSIENT_FETCH_FAILURE = "transient_fetch_failure"
    PERMISSION_DENIED = "permission_denied"
    DATA_PROCESSING_ERROR = "data_processing_error"


class BreakdownError(Exception):
    """Failure carrying a typed error kind.

    Adapters raise it with the kind already decided, so callers never have to
    inspect the message to tell a retryable failure from a deterministic one.
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT_FETCH_FAILURE

    def __repr__(self) -> str:
        return f"BreakdownError({self.kind.value!r}, {self.message!r})"


def invalid_input(message: str) -> BreakdownError:
    return BreakdownError(ErrorKind.INVALID_INPUT, message)


def data_processing_error(message: str) -> BreakdownError:
    return BreakdownError(ErrorKind.DATA_PROCESSING_ERROR, message)


def classify_exception(exc: BaseException) -> BreakdownError:
    """Map a collaborator failure that did not arrive typed onto an error kind."""
    if isinstance(exc, BreakdownError):
        return exc
    if isinstance(exc, PermissionError):
        return BreakdownError(ErrorKind.PERMISSION_DENIED, str(exc) or "Permission denied")
    if isinstance(exc, (TimeoutError, ConnectionError, OSError)):
        return BreakdownError(ErrorKind.TRANSIENT_FETCH_FAILURE, str(exc) or "Fetch failed")
    if isinstance(exc, ValueError):
        return BreakdownError(ErrorKind.INVALID_INPUT, str(exc))
    return BreakdownError(ErrorKind.DATA_PROCESSING_ERROR, str(exc) or type(exc).__name__)


def require_user_id(user_id: str | None) -> str:
    if user_id is None or not user_id.strip():
        raise invalid_input("User ID cannot be empty")
    return user_id.strip()
