from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from marketplace.api.deps import (
    get_current_active_user, get_current_user, get_media_store, get_property_repository, require_roles,
)
from marketplace.api.payload import read_payload
from marketplace.core.errors import Forbidden, ValidationError
from marketplace.core.permissions import ADMIN_ROLES, LISTING_ROLES, Identity, authorize
from marketplace.core.rate_limit import rate_limit
from marketplace.models.property import GenderPreference, PropertyType
from marketplace.repositories.base import parse_id
from marketplace.repositories.properties import PropertyRepository
from marketplace.schemas.common import ApiResponse, PageInfo, validate_payload
from marketplace.schemas.property import (
    PropertyCreate, PropertyDetailResponse, PropertyPage, PropertyResponse, PropertySearchParams,
    PropertyStatusUpdate, PropertyUpdate, ReviewCreate, ReviewResponse,
)
from marketplace.utils.file_storage import MediaStore

router = APIRouter(prefix="/properties", tags=["Properties"])

MEDIA_FIELD = "media"


# ─── Helpers ──────────────────────────────────────────────────────────────────

def property_search_params(
    page: int = Query(1),
    limit: int = Query(12),
    city: Optional[str] = Query(None),
    property_type: Optional[PropertyType] = Query(None, alias="propertyType"),
    gender_preference: Optional[GenderPreference] = Query(None, alias="genderPreference"),
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    bedrooms: Optional[int] = Query(None),
    amenities: Optional[List[str]] = Query(None),
    amenities_brackets: Optional[List[str]] = Query(None, alias="amenities[]"),
    available_from: Optional[date] = Query(None, alias="availableFrom"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    search: Optional[str] = Query(None),
    is_active: bool = Query(True, alias="isActive"),
    verified: Optional[bool] = Query(None),
) -> PropertySearchParams:
    """Collect the listing query string (camelCase, as the web client sends it)."""
    requested_amenities = (amenities or []) + (amenities_brackets or [])
    return validate_payload(PropertySearchParams, {
        "page": page,
        "limit": limit,
        "city": city,
        "property_type": property_type,
        "gender_preference": gender_preference,
        "min_price": min_price,
        "max_price": max_price,
        "bedrooms": bedrooms,
        # a single "wifi,parking" value is split by the schema
        "amenities": requested_amenities[0] if len(requested_amenities) == 1 else requested_amenities,
        "available_from": available_from,
        "sort_by": sort_by,
        "sort_order": sort_order,
        "search": search,
        "is_active": is_active,
        "verified": verified,
    })


def _load_owned(repo: PropertyRepository, property_id: str, current_user: Identity, action: str):
    """Existence (404) is checked before ownership (403)."""
    prop = repo.get_by_id(parse_id(property_id, "property"))
    authorize(current_user, action, prop.owner_id, ADMIN_ROLES)
    return prop


def owned_property(action: str):
    """Dependency form of _load_owned, for routes that also take a typed body."""
    async def loader(
        property_id: str,
        current_user: Identity = Depends(get_current_active_user),
        repo: PropertyRepository = Depends(get_property_repository),
    ):
        return _load_owned(repo, property_id, current_user, action)
    return loader


async def reviewable_property(
    property_id: str,
    current_user: Identity = Depends(get_current_active_user),
    repo: PropertyRepository = Depends(get_property_repository),
):
    prop = repo.get_by_id(parse_id(property_id, "property"))
    if prop.owner_id == current_user.id:
        raise Forbidden("You cannot review your own property.")
    return prop


def _detail(prop) -> PropertyDetailResponse:
    return PropertyDetailResponse.model_validate(prop)


# ─── LIST / SEARCH (public, optional auth) ────────────────────────────────────

@router.get(
    "",
    response_model=ApiResponse[PropertyPage],
    dependencies=[Depends(rate_limit("properties:search", "SEARCH_RATE_LIMIT"))],
)
async def list_properties(
    params: PropertySearchParams = Depends(property_search_params),
    current_user: Optional[Identity] = Depends(get_current_user),
    repo: PropertyRepository = Depends(get_property_repository),
):
    """
    Search active listings with filtering, sorting and pagination.

    ``isActive=false`` lists deactivated listings: all of them for admins, the
    caller's own for anyone else signed in, none for anonymous callers.
    """
    owner_scope = None
    if not params.is_active and not (current_user and current_user.is_admin):
        if current_user is None:
            empty = PropertyPage(items=[], page_info=PageInfo.build(params.page, params.limit, 0))
            return ApiResponse(data=empty)
        owner_scope = current_user.id

    result = repo.search(params, owner_id=owner_scope)
    page = PropertyPage(
        items=[PropertyResponse.model_validate(p) for p in result.items],
        page_info=result.page_info,
    )
    return ApiResponse(data=page)


@router.get("/unique-cities", response_model=ApiResponse[List[str]])
async def list_unique_cities(repo: PropertyRepository = Depends(get_property_repository)):
    return ApiResponse(data=repo.unique_cities())


@router.get("/user/{user_id}", response_model=ApiResponse[List[PropertyResponse]])
async def list_user_properties(
    user_id: str,
    current_user: Identity = Depends(get_current_active_user),
    repo: PropertyRepository = Depends(get_property_repository),
):
    """All listings of one user, inactive included. Self or admin."""
    owner_id = parse_id(user_id, "user")
    authorize(current_user, "view this user's properties", owner_id, ADMIN_ROLES)
    return ApiResponse(data=[PropertyResponse.model_validate(p) for p in repo.list_by_owner(owner_id)])


# ─── GET single property (public) ────────────────────────────────────────────

@router.get("/{property_id}", response_model=ApiResponse[PropertyDetailResponse])
async def get_property(
    property_id: str,
    repo: PropertyRepository = Depends(get_property_repository),
):
    """Get a single property. Public, no auth required. Increments view count."""
    pid = parse_id(property_id, "property")
    repo.increment_view(pid)
    return ApiResponse(data=_detail(repo.get_by_id(pid)))


@router.post("/{property_id}/views", response_model=ApiResponse[PropertyResponse])
async def record_property_view(
    property_id: str,
    repo: PropertyRepository = Depends(get_property_repository),
):
    pid = parse_id(property_id, "property")
    repo.get_by_id(pid)
    repo.increment_view(pid)
    return ApiResponse(data=PropertyResponse.model_validate(repo.get_by_id(pid)))


# ─── CREATE: JSON or multipart form + media uploads ───────────────────────────

@router.post("", response_model=ApiResponse[PropertyDetailResponse], status_code=status.HTTP_201_CREATED)
async def create_property(
    request: Request,
    current_user: Identity = Depends(require_roles(*LISTING_ROLES)),
    repo: PropertyRepository = Depends(get_property_repository),
    media: MediaStore = Depends(get_media_store),
):
    """
    Create a new property listing.
    Accepts JSON, or multipart/form-data with optional image/video files in
    the 'media' field.
    """
    fields, files = await read_payload(request, file_fields=[MEDIA_FIELD])
    payload = validate_payload(PropertyCreate, fields)

    stored = await media.accept(files.get(MEDIA_FIELD, []), media.property_media)
    try:
        prop = repo.create(payload, owner_id=current_user.id, media=stored)
    except Exception:
        # the listing was never written, so its files must not outlive the request
        media.remove(m.url for m in stored)
        raise

    return ApiResponse(data=_detail(prop), message="Property created successfully")


# ─── UPDATE: partial, multipart media replaces existing ───────────────────────

@router.put("/{property_id}", response_model=ApiResponse[PropertyDetailResponse])
async def update_property(
    property_id: str,
    request: Request,
    current_user: Identity = Depends(get_current_active_user),
    repo: PropertyRepository = Depends(get_property_repository),
    media: MediaStore = Depends(get_media_store),
):
    """Update a property. Upload 'media' files to replace all media, or omit to keep it."""
    prop = _load_owned(repo, property_id, current_user, "update this property")

    fields, files = await read_payload(request, file_fields=[MEDIA_FIELD])
    payload = validate_payload(PropertyUpdate, fields)

    stored = await media.accept(files.get(MEDIA_FIELD, []), media.property_media)
    try:
        prop = repo.update(prop.id, payload.changes(), media=stored or None)
    except Exception:
        media.remove(m.url for m in stored)
        raise

    return ApiResponse(data=_detail(prop), message="Property updated successfully")


@router.delete("/{property_id}", response_model=ApiResponse[None])
async def delete_property(
    property_id: str,
    current_user: Identity = Depends(get_current_active_user),
    repo: PropertyRepository = Depends(get_property_repository),
):
    prop = _load_owned(repo, property_id, current_user, "delete this property")
    repo.delete(prop.id)
    return ApiResponse(message="Property deleted successfully")


@router.patch("/{property_id}/status", response_model=ApiResponse[PropertyResponse])
async def update_property_status(
    payload: PropertyStatusUpdate,
    prop=Depends(owned_property("change this property's status")),
    repo: PropertyRepository = Depends(get_property_repository),
):
    """Activate or deactivate a listing. Sending the current value again is a no-op."""
    prop = repo.set_active(prop.id, payload.active)
    state = "activated" if prop.is_active else "deactivated"
    return ApiResponse(data=PropertyResponse.model_validate(prop), message=f"Property {state}")


@router.post("/{property_id}/media", response_model=ApiResponse[PropertyDetailResponse])
async def upload_property_media(
    property_id: str,
    request: Request,
    current_user: Identity = Depends(get_current_active_user),
    repo: PropertyRepository = Depends(get_property_repository),
    media: MediaStore = Depends(get_media_store),
):
    """Append up to 10 images/videos (field 'media') to a listing."""
    prop = _load_owned(repo, property_id, current_user, "upload media for this property")

    fields, files = await read_payload(request, file_fields=[MEDIA_FIELD])
    if fields:
        raise ValidationError(f"Unexpected field(s): {', '.join(sorted(fields))}.")
    uploads = files.get(MEDIA_FIELD, [])
    if not uploads:
        raise ValidationError("No files uploaded.")

    stored = await media.accept(uploads, media.property_media)
    try:
        prop = repo.add_media(prop.id, stored)
    except Exception:
        media.remove(m.url for m in stored)
        raise

    return ApiResponse(data=_detail(prop), message=f"{len(stored)} file(s) uploaded")


# ─── REVIEWS ──────────────────────────────────────────────────────────────────

@router.get("/{property_id}/reviews", response_model=ApiResponse[List[ReviewResponse]])
async def list_property_reviews(
    property_id: str,
    repo: PropertyRepository = Depends(get_property_repository),
):
    reviews = repo.list_reviews(parse_id(property_id, "property"))
    return ApiResponse(data=[ReviewResponse.model_validate(r) for r in reviews])


@router.post("/{property_id}/reviews", response_model=ApiResponse[ReviewResponse], status_code=status.HTTP_201_CREATED)
async def create_property_review(
    payload: ReviewCreate,
    prop=Depends(reviewable_property),
    current_user: Identity = Depends(get_current_active_user),
    repo: PropertyRepository = Depends(get_property_repository),
):
    review = repo.add_review(prop.id, current_user.id, payload.rating, payload.comment)
    return ApiResponse(data=ReviewResponse.model_validate(review), message="Review added")
