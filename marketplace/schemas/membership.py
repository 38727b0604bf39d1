from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from marketplace.models.membership import MembershipStatus
from marketplace.schemas.common import CamelModel, RequestModel


class MembershipUpdate(RequestModel):
    user_id: UUID
    plan_id: str = Field(..., min_length=1, max_length=50)
    start_date: Optional[datetime] = None

    @field_validator("plan_id")
    @classmethod
    def strip_plan(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("start_date")
    @classmethod
    def naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # stored columns are naive UTC
        if v is not None and v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class MembershipResponse(CamelModel):
    id: UUID
    user_id: UUID
    plan_id: str
    start_date: datetime
    end_date: Optional[datetime] = None
    status: MembershipStatus
    created_at: datetime
    updated_at: datetime
