from fastapi import APIRouter, Depends, Response, status

from marketplace.api.deps import get_current_active_user, get_settings, get_user_repository
from marketplace.core.config import Settings
from marketplace.core.errors import Forbidden, Unauthenticated
from marketplace.core.permissions import Identity
from marketplace.models.user import User, UserRole
from marketplace.repositories.users import UserRepository
from marketplace.schemas.common import ApiResponse
from marketplace.schemas.user import TokenResponse, UserCreate, UserLogin, UserResponse
from marketplace.utils.auth import create_access_token, get_password_hash, verify_password

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _issue_token(user: User, response: Response, settings: Settings) -> TokenResponse:
    access_token = create_access_token(
        data={"sub": str(user.id), "role": (user.role or UserRole.USER).value},
        settings=settings,
    )
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
    return TokenResponse(access_token=access_token, user=UserResponse.model_validate(user))


@router.post("/register", response_model=ApiResponse[TokenResponse], status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    response: Response,
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings),
):
    user = users.create(
        email=user_data.email,
        password_hash=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        phone_number=user_data.phone_number,
        role=UserRole(user_data.role),
    )
    return ApiResponse(data=_issue_token(user, response, settings), message="Registration successful")


@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(
    credentials: UserLogin,
    response: Response,
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings),
):
    user = users.get_by_email(credentials.email)
    # same error whether or not the email exists
    if not user or not verify_password(credentials.password, user.password_hash):
        raise Unauthenticated("Incorrect email or password")
    if not user.is_active:
        raise Forbidden("Account is deactivated")

    return ApiResponse(data=_issue_token(user, response, settings), message="Login successful")


@router.post("/logout", response_model=ApiResponse[None])
async def logout(response: Response, settings: Settings = Depends(get_settings)):
    response.delete_cookie(settings.AUTH_COOKIE_NAME, httponly=True, samesite="lax")
    return ApiResponse(message="Logged out")


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user_info(
    current_user: Identity = Depends(get_current_active_user),
    users: UserRepository = Depends(get_user_repository),
):
    return ApiResponse(data=UserResponse.model_validate(users.get_by_id(current_user.id)))
