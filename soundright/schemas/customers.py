import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from .common import CamelModel, empty_to_none


class CustomerBase(CamelModel):
    company_name: str = Field(min_length=1, max_length=100)
    contact_person: Optional[str] = Field(default=None, max_length=100)
    email: EmailStr
    phone: str = Field(min_length=1, max_length=20)
    address: str = Field(min_length=1)
    city: Optional[str] = Field(default=None, max_length=50)
    state: Optional[str] = Field(default=None, max_length=50)
    postal_code: str = Field(min_length=1, max_length=20)
    country: Optional[str] = Field(default=None, max_length=50)
    tax_id: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = None
    is_active: bool = True

    @field_validator("contact_person", "city", "state", "country", "tax_id", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        return empty_to_none(v)


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(CustomerBase):
    pass


class CustomerResponse(CustomerBase):
    id: uuid.UUID
    email: str
    created_at: datetime
    updated_at: Optional[datetime] = None
