import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from budgey.models.enums import ExpenseType


class ExpenseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    category_id: str
    category_name: str
    type: ExpenseType = ExpenseType.EXPENSE
    amount: Decimal
    description: str | None = None
    budget_start_date: dt.datetime | None = None
    budget_end_date: dt.datetime | None = None
    month_key: str
    created_at: dt.datetime | None = None
    currency: str = "USD"
    payment_method: str | None = None
    receipt_url: str | None = None
    tags: frozenset[str] = frozenset()


class ExpenseCreate(BaseModel):
    category_id: str = Field(min_length=1, max_length=36)
    amount: Decimal = Field(gt=0)
    type: ExpenseType = ExpenseType.EXPENSE
    description: str | None = Field(default=None, max_length=255)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    expense_date: dt.datetime | None = None
    budget_start_date: dt.datetime | None = None
    budget_end_date: dt.datetime | None = None
    payment_method: str | None = Field(default=None, max_length=64)
    receipt_url: str | None = Field(default=None, max_length=512)
    tags: list[str] = Field(default_factory=list)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class ExpenseCreated(BaseModel):
    id: str
    month_key: str
