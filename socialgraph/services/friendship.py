import logging
from typing import List, Optional

from sqlalchemy import select, delete, or_, and_, exists, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.core.exceptions import (
    ConstraintViolation, DuplicatePair, NotFound, ValidationFailed
)
from socialgraph.core.pagination import Page, PageRequest, apply_sort, paginate
from socialgraph.core.time_utils import utc_now
from socialgraph.database import is_unique_violation
from socialgraph.models import Friendship, FriendshipStatus, User
from socialgraph.schemas.social import FriendshipResponse
from socialgraph.schemas.user import UserRef
from socialgraph.services.identity import IdentityLookup, IdentityService

logger = logging.getLogger(__name__)

SORTABLE = {
    "created_at": Friendship.created_at,
    "updated_at": Friendship.updated_at,
    "id": Friendship.id,
}


def _between(user_a: int, user_b: int):
    """Rows joining the two users, whichever way the request went."""
    return or_(
        and_(Friendship.requester_id == user_a, Friendship.addressee_id == user_b),
        and_(Friendship.requester_id == user_b, Friendship.addressee_id == user_a),
    )


class FriendshipService:
    """Directed friend requests and their approval state.

    A request is a row keyed by the ordered pair (requester, addressee).
    Two users are friends when an ACCEPTED row exists in either direction.
    """

    def __init__(self, db: AsyncSession, identity: Optional[IdentityLookup] = None):
        self.db = db
        self.identity = identity or IdentityService(db)

    async def request(self, requester_id: int, addressee_id: int) -> Friendship:
        """Send a friend request from requester to addressee."""
        if requester_id == addressee_id:
            raise ValidationFailed("Cannot send a friend request to yourself", field="addressee_id")

        for user_id in (requester_id, addressee_id):
            if not await self.identity.exists(user_id):
                raise NotFound("User", user_id)

        if await self.find_by_pair(requester_id, addressee_id):
            logger.warning(f"Duplicate friend request {requester_id} -> {addressee_id}")
            raise DuplicatePair("Friendship", requester_id, addressee_id)

        friendship = Friendship(requester_id=requester_id, addressee_id=addressee_id)
        self.db.add(friendship)

        try:
            await self.db.flush()
        except IntegrityError as e:
            # Lost a race on the ordered-pair index
            if is_unique_violation(e):
                raise DuplicatePair("Friendship", requester_id, addressee_id) from e
            raise ConstraintViolation(f"Friend request rejected by the store: {e.orig}") from e

        await self.db.refresh(friendship)
        logger.info(f"Friend request {friendship.id}: {requester_id} -> {addressee_id}")
        return friendship

    async def get(self, friendship_id: int) -> Friendship:
        result = await self.db.execute(select(Friendship).where(Friendship.id == friendship_id))
        friendship = result.scalar_one_or_none()
        if not friendship:
            raise NotFound("Friendship", friendship_id)
        return friendship

    async def respond(
        self,
        friendship_id: int,
        decision: FriendshipStatus,
        acting_user_id: Optional[int] = None,
    ) -> Friendship:
        """Accept or reject a request.

        When ``acting_user_id`` is given it must be the addressee.
        """
        try:
            decision = FriendshipStatus(decision)
        except ValueError as e:
            raise ValidationFailed(f"Unknown decision {decision!r}", field="decision") from e
        if decision == FriendshipStatus.PENDING:
            raise ValidationFailed("Decision must be ACCEPTED or REJECTED", field="decision")

        friendship = await self.get(friendship_id)

        if acting_user_id is not None and acting_user_id != friendship.addressee_id:
            raise ValidationFailed("Only the addressee can respond to a friend request")

        friendship.status = decision
        friendship.updated_at = utc_now()
        await self.db.flush()
        await self.db.refresh(friendship)

        logger.info(f"Friend request {friendship_id} {decision.value.lower()}")
        return friendship

    async def find_by_pair(self, requester_id: int, addressee_id: int) -> Optional[Friendship]:
        """Exact ordered lookup; (A, B) does not find a B -> A row."""
        result = await self.db.execute(
            select(Friendship).where(
                Friendship.requester_id == requester_id,
                Friendship.addressee_id == addressee_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_requester_and_status(
        self, user_id: int, status: FriendshipStatus
    ) -> List[Friendship]:
        result = await self.db.execute(
            select(Friendship)
            .where(Friendship.requester_id == user_id, Friendship.status == status)
            .order_by(Friendship.created_at, Friendship.id)
        )
        return list(result.scalars().all())

    async def list_by_addressee_and_status(
        self, user_id: int, status: FriendshipStatus
    ) -> List[Friendship]:
        result = await self.db.execute(
            select(Friendship)
            .where(Friendship.addressee_id == user_id, Friendship.status == status)
            .order_by(Friendship.created_at, Friendship.id)
        )
        return list(result.scalars().all())

    async def page_by_requester_and_status(
        self, user_id: int, status: FriendshipStatus, page_request: PageRequest
    ) -> Page:
        """Sent requests in a given state, one page at a time."""
        query = select(Friendship).where(
            Friendship.requester_id == user_id, Friendship.status == status
        )
        query = apply_sort(query, page_request, SORTABLE, "created_at", Friendship.id)
        return await paginate(self.db, query, page_request, FriendshipResponse.model_validate)

    async def page_by_addressee_and_status(
        self, user_id: int, status: FriendshipStatus, page_request: PageRequest
    ) -> Page:
        """Received requests in a given state, one page at a time."""
        query = select(Friendship).where(
            Friendship.addressee_id == user_id, Friendship.status == status
        )
        query = apply_sort(query, page_request, SORTABLE, "created_at", Friendship.id)
        return await paginate(self.db, query, page_request, FriendshipResponse.model_validate)

    async def are_friends(self, user_a: int, user_b: int) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    _between(user_a, user_b),
                    Friendship.status == FriendshipStatus.ACCEPTED,
                )
            )
        )
        return bool(result.scalar())

    async def pending_requesters(self, user_id: int) -> List[UserRef]:
        """Users with a still-pending request addressed to ``user_id``."""
        result = await self.db.execute(
            select(User)
            .join(Friendship, Friendship.requester_id == User.id)
            .where(
                Friendship.addressee_id == user_id,
                Friendship.status == FriendshipStatus.PENDING,
            )
            .order_by(Friendship.created_at, Friendship.id)
        )
        return [UserRef.model_validate(user) for user in result.scalars().all()]

    async def list_friends(self, user_id: int) -> List[UserRef]:
        """The other party of every accepted friendship of ``user_id``."""
        other_id = case(
            (Friendship.requester_id == user_id, Friendship.addressee_id),
            else_=Friendship.requester_id,
        )
        friend_ids = (
            select(other_id)
            .where(
                or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id),
                Friendship.status == FriendshipStatus.ACCEPTED,
            )
        )
        result = await self.db.execute(
            select(User).where(User.id.in_(friend_ids)).order_by(User.username)
        )
        return [UserRef.model_validate(user) for user in result.scalars().all()]

    async def delete_between(self, user_a: int, user_b: int) -> int:
        """Remove every row between the two users. Missing rows are a no-op."""
        result = await self.db.execute(
            delete(Friendship).where(_between(user_a, user_b))
        )
        await self.db.flush()
        if result.rowcount:
            logger.info(f"Removed {result.rowcount} friendship row(s) between {user_a} and {user_b}")
        return result.rowcount
