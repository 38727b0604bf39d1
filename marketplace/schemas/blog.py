from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from marketplace.models.blog import BlogStatus
from marketplace.schemas.common import CamelModel, OwnerSummary, Page, RequestModel, coerce_str_list


class BlogCreate(RequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    tags: List[str] = []

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return coerce_str_list(v)

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class BlogUpdate(RequestModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    tags: Optional[List[str]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        return coerce_str_list(v)

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            raise ValueError("cannot be null")
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    def changes(self) -> dict:
        changes = self.model_dump(exclude_unset=True)
        if changes.get("tags") is None:
            changes.pop("tags", None)
        return changes


class CommentCreate(RequestModel):
    content: str = Field(..., min_length=1, max_length=5000)

    @field_validator("content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class BlogSearchParams(CamelModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    status: Optional[BlogStatus] = None
    tag: Optional[str] = None
    search: Optional[str] = None

    @field_validator("tag", "search")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class CommentResponse(CamelModel):
    id: UUID
    post_id: UUID
    author_id: UUID
    content: str
    likes: int
    created_at: datetime


class BlogResponse(CamelModel):
    id: UUID
    author_id: UUID
    title: str
    content: str
    tags: List[str] = []
    cover_image: Optional[str] = None
    status: BlogStatus
    views: int
    comment_count: int = 0
    author: Optional[OwnerSummary] = None
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []


class BlogDetailResponse(BlogResponse):
    comments: List[CommentResponse] = []


BlogPage = Page[BlogResponse]
