"""
Authentication Schemas

Every login and registration names the tenant it belongs to; there is no
cross-tenant account.
"""
from pydantic import BaseModel, EmailStr, Field
from bizos.models.user import UserRole


class LoginRequest(BaseModel):
    tenant_slug: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)


class RegisterRequest(LoginRequest):
    """Self-service signup. Always yields a MEMBER."""
    password: str = Field(..., min_length=8, max_length=100)
    full_name: str = Field(..., min_length=1, max_length=255)

    class Config:
        json_schema_extra = {
            "example": {
                "tenant_slug": "northwind",
                "email": "ops@northwind.example",
                "password": "correct-horse-battery",
                "full_name": "Sam Okafor"
            }
        }


class Token(BaseModel):
    """Bearer token plus the claims a client needs without decoding it."""
    access_token: str
    token_type: str = "bearer"
    tenant_id: str
    role: UserRole
