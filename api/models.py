"""
API request and response schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from bookshelf.models import CamelModel, UserInfo


class RegisterRequest(CamelModel):
    """Registration body. Field rules are enforced by the auth service."""
    email: str = Field(..., description="Email address")
    first_name: str = Field(..., description="First name, at least 2 characters")
    last_name: str = Field(..., description="Last name, at least 2 characters")
    password: str = Field(..., description="At least 8 characters with upper, lower and digit")


class LoginRequest(CamelModel):
    email: str = Field(..., description="Email address")
    password: str = Field(..., description="Password")


class AuthResponse(CamelModel):
    """Body of register, login and refresh. The token itself travels in a cookie."""
    user: UserInfo = Field(..., description="Public user profile")
    expires_at: datetime = Field(..., description="Token expiry")


class MessageResponse(BaseModel):
    message: str = Field(..., description="Human-readable message")


class ErrorResponse(BaseModel):
    """Error response model."""
    message: str = Field(..., description="Error message")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: Optional[str] = Field(None, description="Database connection status")
