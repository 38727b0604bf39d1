from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session
from structlog import get_logger

from marketplace.core.config import Settings
from marketplace.core.database import get_db
from marketplace.core.errors import (
    Forbidden, InvalidCredential, MalformedCredential, Unauthenticated, UnknownSubject,
)
from marketplace.core.permissions import Identity, authorize
from marketplace.models.user import UserRole
from marketplace.repositories.blogs import BlogRepository
from marketplace.repositories.memberships import MembershipRepository
from marketplace.repositories.properties import PropertyRepository
from marketplace.repositories.users import UserRepository
from marketplace.utils.auth import decode_token
from marketplace.utils.file_storage import MediaStore

logger = get_logger()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media


# ─── Identity verification ────────────────────────────────────────────────────

def extract_token(cookie_token: Optional[str], authorization: Optional[str]) -> str:
    """Cookie first, then an exact ``Bearer <token>`` header."""
    if cookie_token:
        return cookie_token
    if not authorization:
        raise Unauthenticated()

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise MalformedCredential()
    return parts[1]


def verify_identity(
    db: Session,
    settings: Settings,
    cookie_token: Optional[str],
    authorization: Optional[str],
) -> Identity:
    token = extract_token(cookie_token, authorization)

    payload = decode_token(token, settings)
    if payload is None:
        raise InvalidCredential()

    subject = payload.get("sub")
    try:
        user_id = UUID(str(subject))
    except ValueError:
        raise UnknownSubject()

    user = UserRepository(db).find_by_id(user_id)
    if user is None:
        raise UnknownSubject()

    return Identity(
        id=user.id,
        email=user.email,
        role=UserRole(user.role) if user.role else UserRole.USER,
        is_active=user.is_active,
    )


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
) -> Optional[Identity]:
    """Optional authentication: any credential failure reads as anonymous."""
    settings = get_settings(request)
    try:
        identity = verify_identity(db, settings, request.cookies.get(settings.AUTH_COOKIE_NAME), authorization)
    except Unauthenticated:
        return None
    return identity if identity.is_active else None


async def get_current_active_user(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
) -> Identity:
    settings = get_settings(request)
    try:
        identity = verify_identity(db, settings, request.cookies.get(settings.AUTH_COOKIE_NAME), authorization)
    except Unauthenticated as exc:
        logger.debug("Authentication failed", path=request.url.path, reason=exc.code)
        raise
    if not identity.is_active:
        raise Forbidden("Account is deactivated")
    return identity


def require_roles(*roles: UserRole):
    async def role_checker(
        current_user: Identity = Depends(get_current_active_user),
    ) -> Identity:
        authorize(current_user, "access this resource", required_roles=roles)
        return current_user
    return role_checker


# ─── Repositories ─────────────────────────────────────────────────────────────

def get_property_repository(
    db: Session = Depends(get_db),
    media: MediaStore = Depends(get_media_store),
) -> PropertyRepository:
    return PropertyRepository(db, media)


def get_blog_repository(
    db: Session = Depends(get_db),
    media: MediaStore = Depends(get_media_store),
) -> BlogRepository:
    return BlogRepository(db, media)


def get_membership_repository(db: Session = Depends(get_db)) -> MembershipRepository:
    return MembershipRepository(db)


def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)
