import logging

from fastapi import FastAPI

from budgey.api.breakdown import router as breakdown_router
from budgey.api.categories import router as categories_router
from budgey.api.expenses import router as expenses_router
from budgey.db.session import AsyncSessionLocal, engine
from budgey.db.settings import get_settings
from budgey.services.expense_store import SqlCategorySource, SqlExpenseStore
from budgey.services.sessions import SessionRegistry

settings = get_settings()
logging.basicConfig(level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")

app.state.expense_store = SqlExpenseStore(AsyncSessionLocal)
app.state.category_source = SqlCategorySource(AsyncSessionLocal)
app.state.sessions = SessionRegistry(
    app.state.expense_store,
    app.state.category_source,
    page_size=settings.page_size,
    month_limit=settings.month_limit,
    max_sessions=settings.max_sessions,
)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await engine.dispose()
    logging.info("Database engine disposed")


@app.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(breakdown_router)
app.include_router(categories_router)
app.include_router(expenses_router)
