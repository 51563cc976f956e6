from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from budgey.schemas.expense import ExpenseRecord
from budgey.services.errors import ErrorKind

ZERO = Decimal("0")


class CategoryBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: str
    category_name: str
    expenses: tuple[ExpenseRecord, ...]
    total_amount: Decimal
    expense_count: int
    average_amount: Decimal
    percentage: Decimal


class MonthlyBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    month_key: str
    month_display_name: str
    categories: tuple[CategoryBreakdown, ...]
    income: tuple[ExpenseRecord, ...] = ()
    total_expenses: Decimal
    total_income: Decimal
    net_amount: Decimal
    expense_count: int
    income_count: int


class OverallTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_expenses: Decimal = ZERO
    total_income: Decimal = ZERO
    net_amount: Decimal = ZERO
    month_count: int = 0
    average_monthly_expenses: Decimal = ZERO
    average_monthly_income: Decimal = ZERO
    top_expense_category: str | None = None


class ExpenseBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    months: tuple[MonthlyBreakdown, ...] = ()
    totals: OverallTotals = OverallTotals()

    def month(self, month_key: str) -> MonthlyBreakdown | None:
        for item in self.months:
            if item.month_key == month_key:
                return item
        return None


class ErrorRead(BaseModel):
    kind: ErrorKind
    message: str
    retryable: bool


class BreakdownPageRead(BaseModel):
    breakdown: ExpenseBreakdown | None
    current_page: int
    page_size: int
    has_next_page: bool
    has_previous_page: bool
    is_fetching: bool
    error: ErrorRead | None = None
