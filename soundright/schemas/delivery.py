import uuid
from datetime import date, datetime
from typing import List, Optional
from enum import Enum

from pydantic import Field, field_validator

from .common import CamelModel, MAX_QUANTITY, empty_to_none
from .equipment import EquipmentSummary


class DeliveryStatus(str, Enum):
    pending = "pending"
    delivered = "delivered"
    returned = "returned"


class ItemCondition(str, Enum):
    excellent = "excellent"
    good = "good"
    fair = "fair"
    poor = "poor"


class DeliveryNoteCreate(CamelModel):
    project_id: uuid.UUID
    delivery_date: date = Field(default_factory=date.today)
    delivery_address: Optional[str] = None
    contact_person: Optional[str] = Field(default=None, max_length=100)
    contact_phone: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = None
    status: DeliveryStatus = DeliveryStatus.pending

    @field_validator("delivery_address", "contact_person", "contact_phone", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        return empty_to_none(v)


class DeliveryNoteUpdate(DeliveryNoteCreate):
    pass


class DeliveryItemCreate(CamelModel):
    equipment_id: uuid.UUID
    quantity: int = Field(default=1, ge=1, le=MAX_QUANTITY)
    condition_before: Optional[ItemCondition] = None
    condition_after: Optional[ItemCondition] = None
    notes: Optional[str] = None

    @field_validator("condition_before", "condition_after", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        return empty_to_none(v)


class DeliveryItemResponse(CamelModel):
    id: uuid.UUID
    delivery_note_id: uuid.UUID
    equipment_id: uuid.UUID
    quantity: int
    condition_before: Optional[str] = None
    condition_after: Optional[str] = None
    notes: Optional[str] = None
    equipment: Optional[EquipmentSummary] = None


class DeliveryNoteResponse(CamelModel):
    id: uuid.UUID
    delivery_number: str
    project_id: uuid.UUID
    project_name: Optional[str] = None
    delivery_date: date
    delivery_address: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    status: DeliveryStatus
    created_by: uuid.UUID
    created_by_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class DeliveryNoteDetail(DeliveryNoteResponse):
    items: List[DeliveryItemResponse] = []
