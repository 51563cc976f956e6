from enum import Enum

from sqlalchemy.dialects.postgresql import ENUM


class ExpenseType(str, Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


expense_type_enum = ENUM(
    ExpenseType,
    name="expense_type",
    create_type=False,
    values_callable=lambda enum_cls: [item.value for item in enum_cls],
)
