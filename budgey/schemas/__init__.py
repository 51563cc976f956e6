from budgey.schemas.breakdown import (
    BreakdownPageRead,
    CategoryBreakdown,
    ErrorRead,
    ExpenseBreakdown,
    MonthlyBreakdown,
    OverallTotals,
)
from budgey.schemas.category import CategoryCreate, CategoryCreated, CategoryRecord
from budgey.schemas.expense import ExpenseCreate, ExpenseCreated, ExpenseRecord

__all__ = [
    "BreakdownPageRead",
    "CategoryBreakdown",
    "CategoryCreate",
    "CategoryCreated",
    "CategoryRecord",
    "ErrorRead",
    "ExpenseBreakdown",
    "ExpenseCreate",
    "ExpenseCreated",
    "ExpenseRecord",
    "MonthlyBreakdown",
    "OverallTotals",
]
