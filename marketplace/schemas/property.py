from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import Field, StrictBool, field_validator, model_validator

from marketplace.models.property import GenderPreference, PropertyType
from marketplace.schemas.common import (
    CamelModel, OwnerSummary, Page, RequestModel, coerce_str_list,
)

# Columns a caller may sort search results by (wire name -> model attribute)
SORTABLE_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "totalRent": "total_rent",
    "totalRooms": "total_rooms",
    "views": "views",
    "availableFrom": "available_from",
    "propertyName": "property_name",
}

# Fields the database requires; an update may omit them but never null them
_NON_NULLABLE = (
    "property_name", "property_type", "total_rooms", "total_rent",
    "deposit", "city", "preferred_gender", "is_active", "amenities",
    "rules", "nearby_places",
)


# ─── Create / Update ──────────────────────────────────────────────────────────

class PropertyCreate(RequestModel):
    property_name: str = Field(..., min_length=1, max_length=200)
    property_type: PropertyType
    total_rooms: int = Field(..., gt=0)
    total_rent: float = Field(..., gt=0)
    deposit: float = Field(0, ge=0)

    address: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    description: Optional[str] = None
    amenities: List[str] = []
    rules: List[str] = []
    nearby_places: List[str] = []
    preferred_gender: GenderPreference = GenderPreference.ANY
    available_from: Optional[date] = None
    is_active: bool = True

    @field_validator("amenities", "rules", "nearby_places", mode="before")
    @classmethod
    def split_lists(cls, v):
        return coerce_str_list(v)

    @field_validator("property_name", "city")
    @classmethod
    def strip_required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class PropertyUpdate(RequestModel):
    """Partial update: only the fields the caller sends are applied."""

    property_name: Optional[str] = Field(None, min_length=1, max_length=200)
    property_type: Optional[PropertyType] = None
    total_rooms: Optional[int] = Field(None, gt=0)
    total_rent: Optional[float] = Field(None, gt=0)
    deposit: Optional[float] = Field(None, ge=0)

    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    description: Optional[str] = None
    amenities: Optional[List[str]] = None
    rules: Optional[List[str]] = None
    nearby_places: Optional[List[str]] = None
    preferred_gender: Optional[GenderPreference] = None
    available_from: Optional[date] = None
    is_active: Optional[bool] = None

    @field_validator("amenities", "rules", "nearby_places", mode="before")
    @classmethod
    def split_lists(cls, v):
        return coerce_str_list(v)

    @model_validator(mode="after")
    def reject_nulls(self):
        for name in _NON_NULLABLE:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class PropertyStatusUpdate(RequestModel):
    active: StrictBool


class ReviewCreate(RequestModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


# ─── Search ───────────────────────────────────────────────────────────────────

class PropertySearchParams(CamelModel):
    page: int = Field(1, ge=1)
    limit: int = Field(12, ge=1, le=100)
    city: Optional[str] = None
    property_type: Optional[PropertyType] = None
    gender_preference: Optional[GenderPreference] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=1)
    amenities: List[str] = []
    available_from: Optional[date] = None
    sort_by: str = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"
    search: Optional[str] = None
    is_active: bool = True
    verified: Optional[bool] = None

    @field_validator("amenities", mode="before")
    @classmethod
    def split_amenities(cls, v):
        return coerce_str_list(v) or []

    @field_validator("city", "search")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("sort_by")
    @classmethod
    def known_sort_field(cls, v: str) -> str:
        if v not in SORTABLE_FIELDS:
            raise ValueError(f"must be one of: {', '.join(SORTABLE_FIELDS)}")
        return v

    @model_validator(mode="after")
    def price_range_ordered(self):
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("minPrice must not exceed maxPrice")
        return self


# ─── Responses ────────────────────────────────────────────────────────────────

class ReviewResponse(CamelModel):
    id: UUID
    property_id: UUID
    author_id: UUID
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class PropertyResponse(CamelModel):
    id: UUID
    owner_id: UUID
    property_name: str
    property_type: PropertyType
    total_rooms: int
    total_rent: float
    deposit: float
    address: Optional[str] = None
    city: str
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: Optional[str] = None
    images: List[str] = []
    videos: List[str] = []
    amenities: List[str] = []
    rules: List[str] = []
    nearby_places: List[str] = []
    preferred_gender: GenderPreference
    available_from: Optional[date] = None
    is_active: bool
    verified: bool
    featured: bool = False
    views: int
    rating: Optional[float] = None
    review_count: int = 0
    owner: Optional[OwnerSummary] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("rules", "nearby_places", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []


class PropertyDetailResponse(PropertyResponse):
    reviews: List[ReviewResponse] = []


PropertyPage = Page[PropertyResponse]
