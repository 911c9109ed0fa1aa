"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional
from petwash.app.models.enums import UserRole


class UserRegister(BaseModel):
    """
    Schema for user registration.

    Used by POST /api/auth/register. Default role is OWNER.
    """
    email: EmailStr = Field(..., description="User email address")
    username: str = Field(..., min_length=3, max_length=50, description="Unique username")
    password: str = Field(..., min_length=6, description="Password (min 6 characters)")
    role: Optional[UserRole] = Field(default=UserRole.OWNER, description="User role (defaults to OWNER)")
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    phone_number: str = Field(default="", max_length=32)
    photo_url: Optional[str] = Field(default=None, max_length=500)


class UserLogin(BaseModel):
    """
    Schema for user login.

    Supports login with either username or email.
    """
    username: str = Field(..., description="Username or email")
    password: str = Field(..., description="Password")


class TokenResponse(BaseModel):
    """Returned by successful login/register operations."""
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user_id: int = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(..., description="User role")


class UserResponse(BaseModel):
    """Used by GET /api/auth/me."""
    id: int
    email: str
    username: str
    role: UserRole
    first_name: str
    last_name: str
    phone_number: str
    photo_url: Optional[str] = None
    rating: float
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
