import enum

from sqlalchemy import Boolean, Column, Enum, Float, String

from marketplace.models.base import BaseModel, enum_values


class UserRole(str, enum.Enum):
    GUEST = "guest"
    USER = "user"
    EDITOR = "editor"
    ADMIN = "admin"
    OWNER = "owner"


class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    phone_number = Column(String(20), nullable=True)
    password_hash = Column(String(255), nullable=False)

    role = Column(
        Enum(UserRole, values_callable=enum_values, native_enum=False, length=20),
        nullable=True,
        default=UserRole.USER,
    )

    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    profile_image = Column(String(255), nullable=True)
    rating = Column(Float, nullable=True)
