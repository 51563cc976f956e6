from fastapi import APIRouter, Depends, Query, status

from budgey.api.deps import get_category_source, get_user_session, to_http_exception
from budgey.schemas.category import CategoryCreate, CategoryCreated, CategoryRecord
from budgey.services.categories import add_category
from budgey.services.errors import BreakdownError
from budgey.services.expense_store import SqlCategorySource
from budgey.services.sessions import UserSession

router = APIRouter(prefix="/api", tags=["categories"])


@router.get("/categories", response_model=list[CategoryRecord])
async def list_categories(
    force_refresh: bool = Query(default=False),
    session: UserSession = Depends(get_user_session),
) -> list[CategoryRecord]:
    result = await session.categories.get(session.user_id, force_refresh=force_refresh)
    if result.error is not None:
        raise to_http_exception(result.error)
    return result.categories or []


@router.post("/categories", response_model=CategoryCreated, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    session: UserSession = Depends(get_user_session),
    source: SqlCategorySource = Depends(get_category_source),
) -> CategoryCreated:
    try:
        category_id = await add_category(
            source,
            session.categories,
            session.user_id,
            payload.name,
            icon=payload.icon,
            color=payload.color,
            description=payload.description,
        )
    except BreakdownError as exc:
        raise to_http_exception(exc) from exc
    return CategoryCreated(id=category_id, name=payload.name.strip())
