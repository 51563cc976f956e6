import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class CategoryRecord(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    user_id: str
    name: str
    is_active: bool = True
    icon: str | None = None
    color: str | None = None
    description: str | None = None
    created_at: dt.datetime | None = None


class CategoryCreate(BaseModel):
    name: str = Field(max_length=255)
    icon: str | None = Field(default=None, max_length=64)
    color: str | None = Field(default=None, max_length=16)
    description: str | None = Field(default=None, max_length=255)


class CategoryCreated(BaseModel):
    id: str
    name: str
