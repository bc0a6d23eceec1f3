"""
Pydantic schemas for authentication API requests and responses.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys; accepts either case on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class LoginRequest(CamelModel):
    """Request schema for email/password login."""

    email: EmailStr = Field(..., description="Institutional email address")
    password: str = Field(..., min_length=1, max_length=128, description="Password")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "docente@unsaac.edu.pe",
                "password": "Secreto123"
            }
        }
    )


class LoginUser(CamelModel):
    """User summary returned on login."""

    id: int
    name: str
    email: str
    roles: List[str] = Field(default_factory=list, description="Active role names")


class LoginResponse(CamelModel):
    """Response schema for a successful login."""

    token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiration in seconds")
    user: LoginUser


class CurrentUserResponse(CamelModel):
    """Profile of the authenticated user with live role information."""

    id: int
    name: str
    email: str
    is_active: bool
    last_access_at: Optional[datetime] = None
    roles: List[str] = Field(default_factory=list)
    principal_role: Optional[str] = None
    active_role: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)


class SuccessResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
