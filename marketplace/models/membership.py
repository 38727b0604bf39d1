import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Uuid

from marketplace.models.base import BaseModel, enum_values


class MembershipStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class Membership(BaseModel):
    __tablename__ = "memberships"

    # one membership per user; writes go through an upsert keyed on this column
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, unique=True, index=True)
    plan_id = Column(String(50), nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    status = Column(
        Enum(MembershipStatus, values_callable=enum_values, native_enum=False, length=20),
        nullable=False,
        default=MembershipStatus.ACTIVE,
    )
