import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field

from .common import CamelModel


Role = Literal["admin", "manager", "user"]


class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9]+$")
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    role: Role = "user"


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UpdatePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class UserResponse(CamelModel):
    id: uuid.UUID
    username: str
    email: str
    first_name: str
    last_name: str
    role: Role
    is_active: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TokenResponse(CamelModel):
    success: bool = True
    token: str
    user: UserResponse


class MeResponse(CamelModel):
    success: bool = True
    user: UserResponse


class UserUpdate(CamelModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=30, pattern=r"^[A-Za-z0-9]+$")
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UserStats(CamelModel):
    total: int
    active: int
    inactive: int
    admins: int
    managers: int
    users: int
