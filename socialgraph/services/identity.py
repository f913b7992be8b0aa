import logging
from datetime import datetime
from typing import List, Optional, Protocol, Union, runtime_checkable

from sqlalchemy import select, update, or_, exists
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.core.exceptions import NotFound
from socialgraph.core.pagination import Page, PageRequest, apply_sort, paginate
from socialgraph.models import User
from socialgraph.schemas.user import UserRef

logger = logging.getLogger(__name__)

UserLike = Union[int, UserRef, User]


def user_id_of(user: UserLike) -> int:
    """Accept a raw id or a resolved reference and return the id."""
    if isinstance(user, int):
        return user
    return user.id


@runtime_checkable
class IdentityLookup(Protocol):
    """What the social graph needs from the identity collaborator."""

    async def resolve(self, user_id: int) -> UserRef:
        ...

    async def exists(self, user_id: int) -> bool:
        ...


class IdentityService:
    """SQL-backed identity lookup over the ``users`` table.

    Account creation and credentials live elsewhere; apart from
    deactivation this service only reads.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, user_id: int) -> UserRef:
        """Resolve a user id or raise NotFound."""
        user = await self.get_by_id(user_id)
        if not user:
            raise NotFound("User", user_id)
        return UserRef.model_validate(user)

    async def exists(self, user_id: int) -> bool:
        result = await self.db.execute(select(exists().where(User.id == user_id)))
        return bool(result.scalar())

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def username_exists(self, username: str) -> bool:
        result = await self.db.execute(select(exists().where(User.username == username)))
        return bool(result.scalar())

    async def email_exists(self, email: str) -> bool:
        result = await self.db.execute(select(exists().where(User.email == email)))
        return bool(result.scalar())

    async def search(self, keyword: str, page_request: PageRequest) -> Page:
        """Users whose username or email contains ``keyword``."""
        pattern = f"%{keyword}%"
        query = select(User).where(or_(User.username.like(pattern), User.email.like(pattern)))
        query = apply_sort(
            query,
            page_request,
            {"username": User.username, "created_at": User.created_at, "id": User.id},
            default="username",
            tie_breaker=User.id,
        )
        return await paginate(self.db, query, page_request, UserRef.model_validate)

    async def list_active(self) -> List[UserRef]:
        result = await self.db.execute(
            select(User).where(User.is_active.is_(True)).order_by(User.id)
        )
        return [UserRef.model_validate(user) for user in result.scalars().all()]

    async def list_created_after(self, moment: datetime) -> List[UserRef]:
        """Users created at or after ``moment``."""
        result = await self.db.execute(
            select(User).where(User.created_at >= moment).order_by(User.created_at, User.id)
        )
        return [UserRef.model_validate(user) for user in result.scalars().all()]

    async def deactivate(self, user_id: int) -> bool:
        """Clear the active flag. Returns False when the user does not exist."""
        result = await self.db.execute(
            update(User).where(User.id == user_id).values(is_active=False)
        )
        await self.db.flush()
        if result.rowcount:
            logger.info(f"Deactivated user {user_id}")
        return bool(result.rowcount)
