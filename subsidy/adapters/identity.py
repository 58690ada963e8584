"""Identity provider backed by the ``users`` table."""

from typing import Optional
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.orm import Session

from subsidy.core.collaborators import UserInfo
from subsidy.core.roles import Role
from subsidy.db.models import User


class DatabaseIdentityProvider:

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: UUID) -> Optional[UserInfo]:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            return None
        return UserInfo(id=user.id, role=Role(user.role), active=bool(user.is_active), name=user.name)

    def exists_with_role(self, user_id: UUID, role: Role) -> bool:
        return self.db.query(User.id).filter(
            and_(
                User.id == user_id,
                User.role == role.value,
                User.is_active.is_(True),
            )
        ).first() is not None
