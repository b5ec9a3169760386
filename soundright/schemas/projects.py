import uuid
from datetime import date, datetime
from typing import List, Optional
from enum import Enum

from pydantic import EmailStr, Field, field_validator, model_validator

from .common import CamelModel, MAX_QUANTITY, empty_to_none
from .equipment import EquipmentSummary


class ProjectStatus(str, Enum):
    planning = "planning"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class ProjectBase(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    client_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = Field(default=None, max_length=20)
    client_address: Optional[str] = None
    description: Optional[str] = None
    start_date: date
    end_date: date
    status: ProjectStatus = ProjectStatus.planning
    location: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = None

    @field_validator("client_name", "client_email", "client_phone", "client_address", "description", "location", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        return empty_to_none(v)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class ProjectCreate(ProjectBase):
    # Snapshot a customer's contact details into empty client fields
    customer_id: Optional[uuid.UUID] = None


class ProjectUpdate(ProjectBase):
    client_name: str = Field(min_length=1, max_length=100)


class ProjectResponse(CamelModel):
    id: uuid.UUID
    name: str
    client_name: str
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    description: Optional[str] = None
    start_date: date
    end_date: date
    status: ProjectStatus
    location: Optional[str] = None
    notes: Optional[str] = None
    created_by: uuid.UUID
    created_by_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class AllocationCreate(CamelModel):
    equipment_id: uuid.UUID
    quantity: int = Field(default=1, ge=1, le=MAX_QUANTITY)
    notes: Optional[str] = None


class AllocationResponse(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID
    equipment_id: uuid.UUID
    quantity: int
    allocated_date: date
    returned_date: Optional[date] = None
    notes: Optional[str] = None
    equipment: Optional[EquipmentSummary] = None


class ProjectDetail(ProjectResponse):
    allocations: List[AllocationResponse] = []
