from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from structlog import get_logger

from marketplace.core.errors import NotFound
from marketplace.models.base import utcnow
from marketplace.models.membership import Membership, MembershipStatus
from marketplace.repositories.base import Repository

logger = get_logger()


class MembershipRepository(Repository):
    def list_all(self) -> list[Membership]:
        with self._guard("load memberships"):
            return list(self.db.scalars(select(Membership).order_by(Membership.created_at.desc())))

    def find_by_user(self, user_id: UUID) -> Optional[Membership]:
        with self._guard("load membership"):
            return self.db.scalars(select(Membership).where(Membership.user_id == user_id)).first()

    def get_by_user(self, user_id: UUID) -> Membership:
        membership = self.find_by_user(user_id)
        if membership is None:
            raise NotFound("Membership not found")
        return membership

    def upsert(self, user_id: UUID, plan_id: str, start_date: Optional[datetime] = None) -> Membership:
        """
        Create or update the user's membership in place. Every update (re)enters
        the active state, so a cancelled membership can be renewed.
        """
        with self._guard("update membership"):
            try:
                membership = self._apply(user_id, plan_id, start_date)
                self.db.commit()
            except IntegrityError:
                # a concurrent request inserted the row first; apply ours as an update
                self.db.rollback()
                membership = self._apply(user_id, plan_id, start_date)
                self.db.commit()
            self.db.refresh(membership)
        logger.info("Membership updated", user_id=str(user_id), plan_id=plan_id)
        return membership

    def _apply(self, user_id: UUID, plan_id: str, start_date: Optional[datetime]) -> Membership:
        now = utcnow()
        membership = self.find_by_user(user_id)
        if membership is None:
            membership = Membership(
                user_id=user_id,
                plan_id=plan_id,
                start_date=start_date or now,
                status=MembershipStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            self.db.add(membership)
        else:
            membership.plan_id = plan_id
            if start_date is not None:
                membership.start_date = start_date
            membership.status = MembershipStatus.ACTIVE
            membership.end_date = None
            membership.updated_at = now
        return membership

    def cancel(self, user_id: UUID) -> Membership:
        """active -> cancelled, stamping end_date. Cancelling twice keeps the first stamp."""
        membership = self.get_by_user(user_id)
        if membership.status == MembershipStatus.CANCELLED:
            return membership

        now = utcnow()
        membership.status = MembershipStatus.CANCELLED
        membership.end_date = now
        membership.updated_at = now
        with self._guard("cancel membership"):
            self.db.commit()
            self.db.refresh(membership)
        logger.info("Membership cancelled", user_id=str(user_id))
        return membership
