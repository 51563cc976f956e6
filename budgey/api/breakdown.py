from fastapi import APIRouter, Depends

from budgey.api.deps import get_expense_store, get_user_session, to_http_exception
from budgey.schemas.breakdown import BreakdownPageRead, MonthlyBreakdown
from budgey.services.errors import BreakdownError
from budgey.services.expense_store import SqlExpenseStore
from budgey.services.pagination import LoadResult
from budgey.services.reporting import get_monthly_breakdown
from budgey.services.sessions import UserSession

router = APIRouter(prefix="/api/breakdown", tags=["breakdown"])


def _respond(session: UserSession, result: LoadResult) -> BreakdownPageRead:
    if result.error is not None:
        raise to_http_exception(result.error)
    return session.controller.snapshot()


@router.get("", response_model=BreakdownPageRead)
async def read_breakdown(session: UserSession = Depends(get_user_session)) -> BreakdownPageRead:
    return session.controller.snapshot()


@router.post("/next", response_model=BreakdownPageRead)
async def next_page(session: UserSession = Depends(get_user_session)) -> BreakdownPageRead:
    result = await session.controller.load_next_page(session.user_id)
    return _respond(session, result)


@router.post("/previous", response_model=BreakdownPageRead)
async def previous_page(session: UserSession = Depends(get_user_session)) -> BreakdownPageRead:
    result = session.controller.load_previous_page()
    return _respond(session, result)


@router.post("/refresh", response_model=BreakdownPageRead)
async def refresh_breakdown(session: UserSession = Depends(get_user_session)) -> BreakdownPageRead:
    result = await session.controller.refresh(session.user_id)
    return _respond(session, result)


@router.post("/reset-cursor", response_model=BreakdownPageRead)
async def reset_cursor(session: UserSession = Depends(get_user_session)) -> BreakdownPageRead:
    session.controller.reset_cursor()
    return session.controller.snapshot()


@router.get("/months/{month_key}", response_model=MonthlyBreakdown)
async def monthly_breakdown(
    month_key: str,
    session: UserSession = Depends(get_user_session),
    store: SqlExpenseStore = Depends(get_expense_store),
) -> MonthlyBreakdown:
    try:
        return await get_monthly_breakdown(store, session.user_id, month_key)
    except BreakdownError as exc:
        raise to_http_exception(exc) from exc
