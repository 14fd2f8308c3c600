"""Pydantic schemas for posts, comments, likes and follows."""

from pydantic import BaseModel, Field, AliasChoices, field_validator
from typing import Optional, List, Union
from datetime import datetime


class PostCreate(BaseModel):
    """
    Schema for creating a post.

    Images may be sent as a single string or a list under `images`, or as a
    single string under `image_url`. Each entry is a data URL, an http(s) URL
    or raw base64.
    """
    content: Optional[str] = None
    caption: Optional[str] = None
    images: Optional[Union[List[str], str]] = None
    image_url: Optional[str] = Field(None, validation_alias=AliasChoices("image_url", "imageUrl"))
    tagged_people: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("tagged_people", "taggedPeople")
    )

    @field_validator("tagged_people", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []

    def image_payloads(self) -> List[str]:
        """All image strings in the request, in order."""
        payloads: List[str] = []
        if isinstance(self.images, str):
            payloads.append(self.images)
        elif self.images:
            payloads.extend(self.images)
        if self.image_url:
            payloads.append(self.image_url)
        return payloads


class PostResponse(BaseModel):
    """Schema for post response."""
    id: int
    user_id: int
    username: Optional[str] = None
    content: Optional[str] = None
    caption: Optional[str] = None
    display_caption: Optional[str] = None  # Caption with "with @a and @b" appended
    image_urls: List[str] = []
    tagged_people: List[str] = []
    created_at: datetime
    like_count: int = 0
    comment_count: int = 0
    is_liked: bool = False  # Whether current user has liked this post
    is_saved: bool = False

    class Config:
        from_attributes = True


class CommentCreate(BaseModel):
    """Schema for creating a comment."""
    comment: str = Field(..., validation_alias=AliasChoices("comment", "content"))


class CommentResponse(BaseModel):
    """Schema for comment response."""
    id: int
    post_id: int
    user_id: int
    username: Optional[str] = None
    profile_picture: Optional[str] = None
    comment: str
    created_at: datetime

    class Config:
        from_attributes = True


class LikeResponse(BaseModel):
    """Schema for like response."""
    id: int
    post_id: int
    user_id: int
    username: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    """Minimal user info for lists (likers, tagging candidates)."""
    id: int
    username: str
    name: Optional[str] = None
    profile_picture: Optional[str] = None

    class Config:
        from_attributes = True


class FollowResponse(BaseModel):
    """User card with follow counts, as seen by the caller."""
    user_id: int
    username: str
    profile_picture: Optional[str] = None
    is_following: bool = False  # Whether current user follows this user
    followers_count: int = 0
    following_count: int = 0
    posts_count: int = 0


class FollowToggleResponse(BaseModel):
    status: str  # "followed" or "unfollowed"
    followers_count: int


class SavedStatusResponse(BaseModel):
    saved: bool


class CountResponse(BaseModel):
    count: int


class ImageUploadResponse(BaseModel):
    image_url: str
    thumbnail_url: Optional[str] = None
