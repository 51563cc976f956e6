from fastapi import APIRouter, Depends, status

from budgey.api.deps import get_expense_store, get_user_session, to_http_exception
from budgey.schemas.expense import ExpenseCreate, ExpenseCreated
from budgey.services.errors import BreakdownError
from budgey.services.expense_store import SqlExpenseStore
from budgey.services.expenses import add_expense
from budgey.services.sessions import UserSession

router = APIRouter(prefix="/api", tags=["expenses"])


@router.post("/expenses", response_model=ExpenseCreated, status_code=status.HTTP_201_CREATED)
async def create_expense(
    payload: ExpenseCreate,
    session: UserSession = Depends(get_user_session),
    store: SqlExpenseStore = Depends(get_expense_store),
) -> ExpenseCreated:
    try:
        record = await add_expense(store, session.categories, session.user_id, payload)
    except BreakdownError as exc:
        raise to_http_exception(exc) from exc
    return ExpenseCreated(id=record.id, month_key=record.month_key)
