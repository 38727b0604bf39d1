import json
import math
from typing import Any, Generic, List, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from marketplace.core.errors import ValidationError, format_validation_errors

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class CamelModel(BaseModel):
    """Base for every API schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RequestModel(CamelModel):
    """Request bodies reject unknown fields instead of silently dropping them."""

    model_config = ConfigDict(extra="forbid")


# ─── Envelope ─────────────────────────────────────────────────────────────────

class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    error: Optional[str] = None


class PageInfo(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PageInfo":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class Page(CamelModel, Generic[T]):
    items: List[T] = []
    page_info: PageInfo


# ─── Owner projection ─────────────────────────────────────────────────────────
# Public subset of a user's profile joined onto listings and posts.

class OwnerSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    name: str = Field(validation_alias="full_name")
    email: str
    avatar: Optional[str] = Field(None, validation_alias="profile_image")
    phone: Optional[str] = Field(None, validation_alias="phone_number")
    verified: bool = Field(False, validation_alias="is_verified")
    rating: Optional[float] = None


# ─── Input helpers ────────────────────────────────────────────────────────────

def validate_payload(model: Type[M], data: Any) -> M:
    """Validate raw request data against ``model``; failures become ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(format_validation_errors(exc.errors())) from exc


def coerce_str_list(value: Any) -> Any:
    """
    Accept list fields in the shapes clients send them:
    a real list, a JSON array string (multipart forms) or a comma separated string.
    Blank entries are dropped and duplicates removed, keeping first-seen order.
    """
    if value is None:
        return value
    if isinstance(value, str):
        raw = value.strip()
        if raw.startswith("["):
            try:
                value = json.loads(raw)
            except json.JSONDecodeError:
                raise ValueError("must be a JSON array of strings")
        else:
            value = raw.split(",") if raw else []
    if not isinstance(value, list):
        return value

    seen = []
    for item in value:
        if not isinstance(item, str):
            return value  # let pydantic report the type error
        item = item.strip()
        if item and item not in seen:
            seen.append(item)
    return seen
