from sqlalchemy import (
    Boolean, Column, Date, Enum, Float, ForeignKey, Integer, JSON, String, Text, Uuid,
)
from sqlalchemy.orm import relationship
from marketplace.models.base import BaseModel, enum_values
from marketplace.models.user import User
import enum


class PropertyType(str, enum.Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    VILLA = "villa"
    STUDIO = "studio"
    SHARED_ROOM = "shared_room"
    PG = "pg"
    HOSTEL = "hostel"
    INDEPENDENT_FLOOR = "independent_floor"


class GenderPreference(str, enum.Enum):
    ANY = "any"
    MALE = "male"
    FEMALE = "female"
    FAMILY = "family"


class Property(BaseModel):
    __tablename__ = "properties"

    # Basic Info
    property_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    property_type = Column(
        Enum(PropertyType, values_callable=enum_values, native_enum=False, length=30),
        nullable=False,
    )

    # Location
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False, index=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Pricing
    total_rooms = Column(Integer, nullable=False)
    total_rent = Column(Float, nullable=False)
    deposit = Column(Float, nullable=False, default=0)

    # Occupancy
    preferred_gender = Column(
        Enum(GenderPreference, values_callable=enum_values, native_enum=False, length=20),
        nullable=False,
        default=GenderPreference.ANY,
    )
    available_from = Column(Date, nullable=True)

    # House rules and nearby landmarks, in the order the owner wrote them
    rules = Column(JSON, nullable=False, default=list)
    nearby_places = Column(JSON, nullable=False, default=list)

    # Flags
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    verified = Column(Boolean, nullable=False, default=False)
    featured = Column(Boolean, nullable=False, default=False)

    # Views/Engagement
    views = Column(Integer, nullable=False, default=0)

    # Relationships
    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    owner = relationship(User, foreign_keys=[owner_id])

    image_rows = relationship(
        "PropertyImage",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="PropertyImage.display_order",
    )
    video_rows = relationship(
        "PropertyVideo",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="PropertyVideo.display_order",
    )
    amenity_rows = relationship(
        "PropertyAmenity",
        back_populates="property",
        cascade="all, delete-orphan",
    )
    reviews = relationship(
        "PropertyReview",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="PropertyReview.created_at",
    )

    @property
    def images(self) -> list[str]:
        return [row.image_url for row in self.image_rows]

    @property
    def videos(self) -> list[str]:
        return [row.video_url for row in self.video_rows]

    @property
    def media_urls(self) -> list[str]:
        return self.images + self.videos

    @property
    def amenities(self) -> list[str]:
        return sorted(row.name for row in self.amenity_rows)

    @property
    def rating(self):
        if not self.reviews:
            return None
        return round(sum(r.rating for r in self.reviews) / len(self.reviews), 2)

    @property
    def review_count(self) -> int:
        return len(self.reviews)


class PropertyImage(BaseModel):
    __tablename__ = "property_images"

    property_id = Column(Uuid, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(255), nullable=False)
    display_order = Column(Integer, default=0)

    property = relationship("Property", back_populates="image_rows")


class PropertyVideo(BaseModel):
    __tablename__ = "property_videos"

    property_id = Column(Uuid, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    video_url = Column(String(255), nullable=False)
    display_order = Column(Integer, default=0)

    property = relationship("Property", back_populates="video_rows")


class PropertyAmenity(BaseModel):
    __tablename__ = "property_amenities"

    property_id = Column(Uuid, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False, index=True)

    property = relationship("Property", back_populates="amenity_rows")


class PropertyReview(BaseModel):
    __tablename__ = "property_reviews"

    property_id = Column(Uuid, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)

    property = relationship("Property", back_populates="reviews")
