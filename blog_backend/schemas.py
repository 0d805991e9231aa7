"""
Pydantic schemas for the blog backend.

Responses use camelCase keys; request models accept both camelCase and
snake_case field names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from blog_backend.content import PostWithCategory
    from blog_backend.db import CategoryRecord, ContactRecord


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    message: str
    username: str


class AuthStatusResponse(BaseModel):
    authenticated: bool
    username: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class SeedResponse(BaseModel):
    message: str
    created: int


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    """Partial update: only fields present in the payload are written."""

    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None

    def changes(self) -> dict:
        return self.model_dump(include=self.model_fields_set)


class PostCreate(CamelModel):
    title: str
    content: str
    excerpt: Optional[str] = None
    category_id: Optional[str] = Field(default=None, alias="category")
    author: Optional[str] = None

    @field_validator("excerpt", "category_id", "author", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class PostUpdate(PostCreate):
    """
    Partial update. A field absent from the payload is left untouched; an
    empty excerpt or category clears it.
    """

    title: Optional[str] = None
    content: Optional[str] = None
    published: Optional[bool] = None

    def changes(self) -> dict:
        return self.model_dump(include=self.model_fields_set)


class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    subject: Optional[str] = None
    message: str = Field(..., min_length=1)


class CategoryResponse(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: "CategoryRecord") -> "CategoryResponse":
        return cls(
            id=record.id,
            name=record.name,
            slug=record.slug,
            description=record.description,
            created_at=_to_datetime(record.created_at),
        )


class PublicPostResponse(CamelModel):
    id: str
    title: str
    slug: str
    content: str
    excerpt: Optional[str] = None
    category: Optional[CategoryResponse] = None
    featured_image: Optional[str] = None
    author: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_view(cls, view: "PostWithCategory"):
        post = view.post
        return cls(
            id=post.id,
            title=post.title,
            slug=post.slug,
            content=post.content,
            excerpt=post.excerpt,
            category=(
                CategoryResponse.from_record(view.category) if view.category else None
            ),
            featured_image=post.featured_image,
            author=post.author,
            published=post.published,
            created_at=_to_datetime(post.created_at),
            updated_at=_to_datetime(post.updated_at),
        )


class PostResponse(PublicPostResponse):
    published: bool


class PostPageResponse(CamelModel):
    posts: list[PublicPostResponse]
    total_pages: int
    current_page: int


class ContactResponse(CamelModel):
    id: str
    name: str
    email: str
    subject: Optional[str] = None
    message: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: "ContactRecord") -> "ContactResponse":
        return cls(
            id=record.id,
            name=record.name,
            email=record.email,
            subject=record.subject,
            message=record.message,
            created_at=_to_datetime(record.created_at),
        )
