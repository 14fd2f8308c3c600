"""Pydantic schemas for authentication requests and responses."""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class RegisterRequest(BaseModel):
    """Registration request schema."""
    username: str
    email: EmailStr
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    """Login request schema."""
    username: str
    password: str


class AuthenticationResponse(BaseModel):
    """Token response schema. Serialized as {"accessToken": ...} for the mobile client."""
    access_token: str = Field(..., serialization_alias="accessToken")
