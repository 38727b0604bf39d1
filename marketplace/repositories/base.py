from contextlib import contextmanager
from typing import Iterator, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from structlog import get_logger

from marketplace.core.errors import InternalError, InvalidId

logger = get_logger()


def parse_id(raw: Union[str, UUID], label: str = "resource") -> UUID:
    """Parse a path identifier. A malformed value is InvalidId, never NotFound."""
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw))
    except (TypeError, ValueError):
        raise InvalidId(f"Invalid {label} id: '{raw}'")


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains(column, text: str):
    """Case-insensitive substring predicate with LIKE wildcards escaped."""
    return column.ilike(f"%{escape_like(text)}%", escape="\\")


class Repository:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Roll back and surface any database failure as InternalError."""
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Database operation failed", action=action)
            raise InternalError(f"Failed to {action}") from exc
