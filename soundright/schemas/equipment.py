import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from enum import Enum

from pydantic import Field, field_validator

from .common import CamelModel, empty_to_none


class ConditionStatus(str, Enum):
    excellent = "excellent"
    good = "good"
    fair = "fair"
    poor = "poor"
    repair = "repair"


class EquipmentBase(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    category: str = Field(min_length=1, max_length=50)
    brand: Optional[str] = Field(default=None, max_length=50)
    model: Optional[str] = Field(default=None, max_length=50)
    serial_number: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    specifications: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    current_value: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    condition_status: ConditionStatus = ConditionStatus.good
    location: Optional[str] = Field(default=None, max_length=100)
    maintenance_notes: Optional[str] = None
    last_maintenance: Optional[date] = None
    next_maintenance: Optional[date] = None

    @field_validator(
        "brand", "model", "serial_number", "description", "specifications", "purchase_date",
        "purchase_price", "current_value", "location", "maintenance_notes", "last_maintenance",
        "next_maintenance", mode="before",
    )
    @classmethod
    def empty_str_to_none(cls, v):
        return empty_to_none(v)


class EquipmentCreate(EquipmentBase):
    is_available: bool = True


class EquipmentUpdate(EquipmentBase):
    # Availability is owned by project allocation and is not writable here
    pass


class EquipmentSummary(CamelModel):
    id: uuid.UUID
    name: str
    category: str
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None


class EquipmentResponse(EquipmentBase):
    id: uuid.UUID
    is_available: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class EquipmentStats(CamelModel):
    total: int
    available: int
    allocated: int
    excellent: int
    good: int
    fair: int
    poor: int
    repair: int
