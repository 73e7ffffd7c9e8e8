"""Emergency contact schemas."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    email: EmailStr | None = None
    relationship: str | None = Field(default=None, max_length=64)


class ContactUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    email: EmailStr | None = None
    relationship: str | None = Field(default=None, max_length=64)
    is_active: bool | None = None


class ContactResponse(BaseModel):
    id: int
    user_id: int
    name: str
    phone: str | None
    email: str | None
    relationship: str | None
    linked_account_id: int | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
