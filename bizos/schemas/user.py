"""
User Schemas
"""
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime
from bizos.models.user import UserRole


class UserCreate(BaseModel):
    """Admin-created user. Unlike self-registration, the role can be chosen."""
    email: EmailStr
    full_name: Optional[str] = Field(None, max_length=255)
    password: str = Field(..., min_length=8, max_length=100)
    role: UserRole = UserRole.MEMBER


class UserUpdate(BaseModel):
    # Only admins may send role or is_active
    full_name: Optional[str] = Field(None, max_length=255)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @field_validator("role", "is_active")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class UserResponse(BaseModel):
    id: str
    tenant_id: str
    email: EmailStr
    full_name: Optional[str] = None
    role: UserRole
    is_active: bool
    is_verified: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
    page: int
    page_size: int
