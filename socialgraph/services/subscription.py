import logging
from typing import Optional

from sqlalchemy import select, delete, func, exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.core.exceptions import (
    ConstraintViolation, DuplicatePair, NotFound, ValidationFailed
)
from socialgraph.core.pagination import Page, PageRequest, paginate
from socialgraph.database import is_unique_violation
from socialgraph.models import Subscription, User
from socialgraph.schemas.user import UserRef
from socialgraph.services.identity import IdentityLookup, IdentityService

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Directed, unconditional follow edges."""

    def __init__(self, db: AsyncSession, identity: Optional[IdentityLookup] = None):
        self.db = db
        self.identity = identity or IdentityService(db)

    async def follow(self, follower_id: int, following_id: int) -> Subscription:
        """Follow a user."""
        if follower_id == following_id:
            raise ValidationFailed("Cannot follow yourself", field="following_id")

        # Check both users exist
        for user_id in (follower_id, following_id):
            if not await self.identity.exists(user_id):
                raise NotFound("User", user_id)

        # Check if already following
        if await self.is_following(follower_id, following_id):
            logger.warning(f"Duplicate follow {follower_id} -> {following_id}")
            raise DuplicatePair("Subscription", follower_id, following_id)

        subscription = Subscription(follower_id=follower_id, following_id=following_id)
        self.db.add(subscription)

        try:
            await self.db.flush()
        except IntegrityError as e:
            if is_unique_violation(e):
                raise DuplicatePair("Subscription", follower_id, following_id) from e
            raise ConstraintViolation(f"Follow rejected by the store: {e.orig}") from e

        await self.db.refresh(subscription)
        logger.info(f"User {follower_id} followed {following_id}")
        return subscription

    async def unfollow(self, follower_id: int, following_id: int) -> bool:
        """Remove the exact directed edge. Returns False if there was none."""
        result = await self.db.execute(
            delete(Subscription)
            .where(
                Subscription.follower_id == follower_id,
                Subscription.following_id == following_id,
            )
        )
        await self.db.flush()

        if result.rowcount:
            logger.info(f"User {follower_id} unfollowed {following_id}")
        return bool(result.rowcount)

    async def find_by_pair(self, follower_id: int, following_id: int) -> Optional[Subscription]:
        result = await self.db.execute(
            select(Subscription).where(
                Subscription.follower_id == follower_id,
                Subscription.following_id == following_id,
            )
        )
        return result.scalar_one_or_none()

    async def is_following(self, follower_id: int, following_id: int) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    Subscription.follower_id == follower_id,
                    Subscription.following_id == following_id,
                )
            )
        )
        return bool(result.scalar())

    async def count_following(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Subscription).where(Subscription.follower_id == user_id)
        )
        return result.scalar_one()

    async def count_followers(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Subscription).where(Subscription.following_id == user_id)
        )
        return result.scalar_one()

    async def list_following(self, user_id: int, page_request: PageRequest) -> Page:
        """Users that ``user_id`` follows, most recent edge first."""
        query = (
            select(User)
            .join(Subscription, Subscription.following_id == User.id)
            .where(Subscription.follower_id == user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        )
        return await paginate(self.db, query, page_request, UserRef.model_validate)

    async def list_followers(self, user_id: int, page_request: PageRequest) -> Page:
        """Users following ``user_id``, most recent edge first."""
        query = (
            select(User)
            .join(Subscription, Subscription.follower_id == User.id)
            .where(Subscription.following_id == user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        )
        return await paginate(self.db, query, page_request, UserRef.model_validate)
