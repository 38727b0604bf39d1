from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from marketplace.models.user import UserRole
from marketplace.schemas.common import CamelModel, RequestModel


class UserCreate(RequestModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20)
    # self-registration may only pick a tenant or landlord account
    role: Literal["user", "owner"] = "user"


class UserLogin(RequestModel):
    email: EmailStr
    password: str


class UserResponse(CamelModel):
    id: UUID
    email: str
    full_name: str
    phone_number: Optional[str] = None
    role: UserRole = UserRole.USER
    is_active: bool
    is_verified: bool
    profile_image: Optional[str] = None
    created_at: datetime

    @field_validator("role", mode="before")
    @classmethod
    def default_role(cls, v):
        # a null stored role reads as a plain user
        return v or UserRole.USER


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
