from fastapi import Depends, Header, HTTPException, Request, status

from budgey.services.errors import BreakdownError, ErrorKind
from budgey.services.expense_store import SqlCategorySource, SqlExpenseStore
from budgey.services.sessions import SessionRegistry, UserSession

ERROR_STATUS = {
    ErrorKind.INVALID_INPUT: 422,
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.TRANSIENT_FETCH_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.DATA_PROCESSING_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http_exception(error: BreakdownError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS[error.kind],
        detail={"kind": error.kind.value, "message": error.message},
    )


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not authenticated")
    return x_user_id.strip()


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_expense_store(request: Request) -> SqlExpenseStore:
    return request.app.state.expense_store


def get_category_source(request: Request) -> SqlCategorySource:
    return request.app.state.category_source


async def get_user_session(
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
) -> UserSession:
    return registry.get(user_id)
