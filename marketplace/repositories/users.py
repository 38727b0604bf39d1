from typing import Optional
from uuid import UUID

from sqlalchemy import select

from marketplace.core.errors import NotFound, ValidationError
from marketplace.models.base import utcnow
from marketplace.models.user import User, UserRole
from marketplace.repositories.base import Repository


class UserRepository(Repository):
    def find_by_id(self, user_id: UUID) -> Optional[User]:
        with self._guard("load user"):
            return self.db.get(User, user_id)

    def get_by_id(self, user_id: UUID) -> User:
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def get_by_email(self, email: str) -> Optional[User]:
        with self._guard("load user"):
            return self.db.scalars(select(User).where(User.email == email.lower())).first()

    def create(
        self,
        email: str,
        password_hash: str,
        full_name: str,
        role: UserRole = UserRole.USER,
        phone_number: Optional[str] = None,
        is_verified: bool = False,
    ) -> User:
        if self.get_by_email(email) is not None:
            raise ValidationError("Email already registered")

        now = utcnow()
        user = User(
            email=email.lower(),
            password_hash=password_hash,
            full_name=full_name,
            phone_number=phone_number,
            role=role,
            is_active=True,
            is_verified=is_verified,
            created_at=now,
            updated_at=now,
        )
        with self._guard("create user"):
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        return user
