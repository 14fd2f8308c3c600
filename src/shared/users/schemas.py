"""Pydantic schemas for user profiles."""

from pydantic import BaseModel, Field, AliasChoices
from typing import Optional
from datetime import datetime


class UserResponse(BaseModel):
    """Public profile of a user."""
    id: int
    username: str
    name: Optional[str] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CurrentUserResponse(UserResponse):
    """Profile of the authenticated user, including private fields."""
    email: str


class UpdateBioRequest(BaseModel):
    bio: Optional[str] = None


class UpdateProfileRequest(BaseModel):
    """Fields left out are not changed."""
    username: Optional[str] = None
    name: Optional[str] = None
    bio: Optional[str] = None


class UpdateProfileImageRequest(BaseModel):
    """Image as a data URL, http(s) URL or raw base64."""
    image_base64: str = Field(..., validation_alias=AliasChoices("image_base64", "imageBase64", "image"))
