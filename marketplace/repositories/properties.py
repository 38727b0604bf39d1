from dataclasses import dataclass
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager, joinedload, selectinload
from structlog import get_logger

from marketplace.core.errors import NotFound
from marketplace.models.base import utcnow
from marketplace.models.property import (
    GenderPreference, Property, PropertyAmenity, PropertyImage, PropertyReview, PropertyVideo,
)
from marketplace.models.user import User
from marketplace.repositories.base import Repository, contains
from marketplace.schemas.common import PageInfo
from marketplace.schemas.property import SORTABLE_FIELDS, PropertyCreate, PropertySearchParams
from marketplace.utils.file_storage import MediaStore, StoredMedia

logger = get_logger()

_CHILDREN = (
    selectinload(Property.image_rows),
    selectinload(Property.video_rows),
    selectinload(Property.amenity_rows),
    selectinload(Property.reviews),
)


@dataclass
class PropertyPageResult:
    items: list[Property]
    page_info: PageInfo


def _search_conditions(params: PropertySearchParams, owner_id: Optional[UUID]) -> list:
    conditions = [Property.is_active.is_(params.is_active)]

    if owner_id is not None:
        conditions.append(Property.owner_id == owner_id)

    # ── Equality ──────────────────────────────────────────────────────────────
    if params.property_type is not None:
        conditions.append(Property.property_type == params.property_type)
    if params.bedrooms is not None:
        conditions.append(Property.total_rooms == params.bedrooms)
    if params.verified is not None:
        conditions.append(Property.verified.is_(params.verified))
    if params.gender_preference not in (None, GenderPreference.ANY):
        conditions.append(Property.preferred_gender == params.gender_preference)

    # ── Substring / range / set / date ────────────────────────────────────────
    if params.city:
        conditions.append(contains(Property.city, params.city))
    if params.min_price is not None:
        conditions.append(Property.total_rent >= params.min_price)
    if params.max_price is not None:
        conditions.append(Property.total_rent <= params.max_price)
    if params.amenities:
        conditions.append(Property.amenity_rows.any(PropertyAmenity.name.in_(params.amenities)))
    if params.available_from is not None:
        conditions.append(Property.available_from <= params.available_from)

    # ── Free text ─────────────────────────────────────────────────────────────
    if params.search:
        conditions.append(or_(
            contains(Property.property_name, params.search),
            contains(Property.city, params.search),
            contains(Property.description, params.search),
        ))
    return conditions


class PropertyRepository(Repository):
    def __init__(self, db: Session, media: Optional[MediaStore] = None):
        super().__init__(db)
        self.media = media

    # ─── Reads ────────────────────────────────────────────────────────────────

    def find_by_id(self, property_id: UUID) -> Optional[Property]:
        stmt = (
            select(Property)
            .where(Property.id == property_id)
            .options(joinedload(Property.owner), *_CHILDREN)
        )
        with self._guard("load property"):
            return self.db.scalars(stmt).first()

    def get_by_id(self, property_id: UUID) -> Property:
        prop = self.find_by_id(property_id)
        if prop is None:
            raise NotFound("Property not found")
        return prop

    def search(self, params: PropertySearchParams, owner_id: Optional[UUID] = None) -> PropertyPageResult:
        conditions = _search_conditions(params, owner_id)

        sort_column = getattr(Property, SORTABLE_FIELDS[params.sort_by])
        primary = sort_column.desc() if params.sort_order == "desc" else sort_column.asc()

        offset = (params.page - 1) * params.limit
        count_stmt = select(func.count()).select_from(Property).where(*conditions)

        with self._guard("search properties"):
            total = self.db.scalar(count_stmt) or 0
            items = []
            # pages past the end never reach the database as an OFFSET
            if offset < total:
                stmt = (
                    select(Property)
                    .outerjoin(Property.owner)
                    .options(contains_eager(Property.owner), *_CHILDREN)
                    .where(*conditions)
                    .order_by(primary, Property.created_at.asc())
                    .offset(offset)
                    .limit(params.limit)
                )
                items = list(self.db.scalars(stmt).unique())

        return PropertyPageResult(items=items, page_info=PageInfo.build(params.page, params.limit, total))

    def list_by_owner(self, owner_id: UUID) -> list[Property]:
        stmt = (
            select(Property)
            .where(Property.owner_id == owner_id)
            .options(joinedload(Property.owner), *_CHILDREN)
            .order_by(Property.created_at.desc())
        )
        with self._guard("load properties"):
            return list(self.db.scalars(stmt).unique())

    def unique_cities(self) -> list[str]:
        stmt = select(Property.city).where(Property.is_active.is_(True)).distinct().order_by(Property.city)
        with self._guard("load cities"):
            return list(self.db.scalars(stmt))

    def list_reviews(self, property_id: UUID) -> list[PropertyReview]:
        return list(self.get_by_id(property_id).reviews)

    # ─── Writes ───────────────────────────────────────────────────────────────

    def create(self, payload: PropertyCreate, owner_id: UUID, media: Sequence[StoredMedia] = ()) -> Property:
        data = payload.model_dump(exclude={"amenities"})
        now = utcnow()
        prop = Property(
            **data, owner_id=owner_id, verified=False, featured=False, views=0, created_at=now, updated_at=now,
        )
        prop.amenity_rows = [PropertyAmenity(name=name) for name in payload.amenities]
        self._append_media(prop, media)

        with self._guard("create property"):
            self.db.add(prop)
            self.db.commit()
        logger.info("Property created", property_id=str(prop.id), owner_id=str(owner_id))
        return self.get_by_id(prop.id)

    def update(self, property_id: UUID, changes: dict, media: Optional[Sequence[StoredMedia]] = None) -> Property:
        """
        Apply ``changes`` (only the keys present) and refresh updated_at.
        A non-empty ``media`` replaces every stored image and video; the old
        files are removed once the new state is committed.
        """
        prop = self.get_by_id(property_id)
        replaced: list[str] = []

        amenities = changes.pop("amenities", None)
        for field, value in changes.items():
            setattr(prop, field, value)
        if amenities is not None:
            prop.amenity_rows = [PropertyAmenity(name=name) for name in amenities]
        if media:
            replaced = prop.media_urls
            prop.image_rows = []
            prop.video_rows = []
            self._append_media(prop, media)
        prop.updated_at = utcnow()

        with self._guard("update property"):
            self.db.commit()

        if replaced:
            self._remove_media(replaced, property_id)
        return self.get_by_id(property_id)

    def set_active(self, property_id: UUID, active: bool) -> Property:
        prop = self.get_by_id(property_id)
        prop.is_active = active
        prop.updated_at = utcnow()
        with self._guard("update property status"):
            self.db.commit()
        return self.get_by_id(property_id)

    def add_media(self, property_id: UUID, media: Sequence[StoredMedia]) -> Property:
        prop = self.get_by_id(property_id)
        self._append_media(prop, media)
        prop.updated_at = utcnow()
        with self._guard("attach media"):
            self.db.commit()
        return self.get_by_id(property_id)

    def add_review(self, property_id: UUID, author_id: UUID, rating: int, comment: Optional[str]) -> PropertyReview:
        self.get_by_id(property_id)
        review = PropertyReview(
            property_id=property_id,
            author_id=author_id,
            rating=rating,
            comment=comment,
        )
        with self._guard("add review"):
            self.db.add(review)
            self.db.commit()
            self.db.refresh(review)
        return review

    def delete(self, property_id: UUID) -> None:
        """Delete the listing and its child rows, then its media files (best-effort)."""
        prop = self.get_by_id(property_id)
        media_urls = prop.media_urls

        with self._guard("delete property"):
            self.db.delete(prop)
            self.db.commit()
        logger.info("Property deleted", property_id=str(property_id))

        self._remove_media(media_urls, property_id)

    def increment_view(self, property_id: UUID) -> bool:
        """
        Atomically bump the view counter. Never raises: a failure is logged and
        reported as False so the surrounding read still succeeds.
        """
        stmt = (
            update(Property)
            .where(Property.id == property_id)
            .values(views=Property.views + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to increment property views", property_id=str(property_id))
            return False
        self.db.expire_all()
        return True

    # ─── Helpers ──────────────────────────────────────────────────────────────

    @staticmethod
    def _append_media(prop: Property, media: Sequence[StoredMedia]) -> None:
        image_order = len(prop.image_rows)
        video_order = len(prop.video_rows)
        for item in media:
            if item.kind == "video":
                prop.video_rows.append(PropertyVideo(video_url=item.url, display_order=video_order))
                video_order += 1
            else:
                prop.image_rows.append(PropertyImage(image_url=item.url, display_order=image_order))
                image_order += 1

    def _remove_media(self, urls: list[str], property_id: UUID) -> None:
        if not urls or self.media is None:
            return
        try:
            self.media.remove(urls)
        except Exception:
            logger.exception("Failed to remove property media", property_id=str(property_id))
