from typing import List

from fastapi import APIRouter, Depends

from marketplace.api.deps import (
    get_current_active_user, get_membership_repository, get_user_repository, require_roles,
)
from marketplace.core.permissions import ADMIN_ROLES, Identity, authorize
from marketplace.repositories.base import parse_id
from marketplace.repositories.memberships import MembershipRepository
from marketplace.repositories.users import UserRepository
from marketplace.schemas.common import ApiResponse
from marketplace.schemas.membership import MembershipResponse, MembershipUpdate

router = APIRouter(prefix="/membership", tags=["Membership"])


@router.get("", response_model=ApiResponse[List[MembershipResponse]])
async def list_memberships(
    current_user: Identity = Depends(require_roles(*ADMIN_ROLES)),
    repo: MembershipRepository = Depends(get_membership_repository),
):
    """All memberships. Admin only."""
    return ApiResponse(data=[MembershipResponse.model_validate(m) for m in repo.list_all()])


@router.get("/user/{user_id}", response_model=ApiResponse[MembershipResponse])
async def get_user_membership(
    user_id: str,
    current_user: Identity = Depends(get_current_active_user),
    repo: MembershipRepository = Depends(get_membership_repository),
):
    uid = parse_id(user_id, "user")
    authorize(current_user, "view this membership", uid, ADMIN_ROLES)
    return ApiResponse(data=MembershipResponse.model_validate(repo.get_by_user(uid)))


@router.post("/update", response_model=ApiResponse[MembershipResponse])
async def update_membership(
    payload: MembershipUpdate,
    current_user: Identity = Depends(get_current_active_user),
    repo: MembershipRepository = Depends(get_membership_repository),
    users: UserRepository = Depends(get_user_repository),
):
    """Create or update a membership (upsert keyed by user). Self or admin."""
    authorize(current_user, "update this membership", payload.user_id, ADMIN_ROLES)
    users.get_by_id(payload.user_id)

    membership = repo.upsert(payload.user_id, payload.plan_id, payload.start_date)
    return ApiResponse(
        data=MembershipResponse.model_validate(membership),
        message="Membership updated successfully",
    )


@router.post("/cancel/{user_id}", response_model=ApiResponse[MembershipResponse])
async def cancel_membership(
    user_id: str,
    current_user: Identity = Depends(get_current_active_user),
    repo: MembershipRepository = Depends(get_membership_repository),
):
    uid = parse_id(user_id, "user")
    authorize(current_user, "cancel this membership", uid, ADMIN_ROLES)

    membership = repo.cancel(uid)
    return ApiResponse(
        data=MembershipResponse.model_validate(membership),
        message=f"Membership cancelled for user {uid}",
    )
