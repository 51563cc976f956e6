from budgey.models.category import Category
from budgey.models.enums import ExpenseType
from budgey.models.expense import Expense

__all__ = [
    "Category",
    "Expense",
    "ExpenseType",
]
