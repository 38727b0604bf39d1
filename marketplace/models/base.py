import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Uuid
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum *values* ("apartment") rather than member names ("APARTMENT")."""
    return [member.value for member in enum_cls]


class BaseModel(Base):
    __abstract__ = True

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    # refreshed explicitly by the repositories, never by counter updates
    updated_at = Column(DateTime, default=utcnow, nullable=False)
