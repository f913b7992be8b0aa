import logging
from typing import List, Optional, Sequence

from sqlalchemy import select, update, func, or_, and_, case
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.core.exceptions import NotFound, ValidationFailed
from socialgraph.core.pagination import Page, PageRequest, paginate
from socialgraph.core.validation import parse_input
from socialgraph.models import Message
from socialgraph.schemas.message import MessageCreate, MessageResponse, ConversationSummary
from socialgraph.services.identity import IdentityLookup, IdentityService, UserLike, user_id_of

logger = logging.getLogger(__name__)


def conversation_between(user_a: int, user_b: int):
    """Messages exchanged by two users, in either direction."""
    return or_(
        and_(Message.sender_id == user_a, Message.receiver_id == user_b),
        and_(Message.sender_id == user_b, Message.receiver_id == user_a),
    )


def newest_first(query):
    return query.order_by(Message.created_at.desc(), Message.id.desc())


class MessagingService:
    """Private messages, conversations and read state."""

    def __init__(self, db: AsyncSession, identity: Optional[IdentityLookup] = None):
        self.db = db
        self.identity = identity or IdentityService(db)

    async def send(self, sender_id: int, receiver_id: int, content: str) -> Message:
        """Send a message. It starts out unread."""
        data = parse_input(MessageCreate, content=content)
        if sender_id == receiver_id:
            raise ValidationFailed("Cannot send a message to yourself", field="receiver_id")

        for user_id in (sender_id, receiver_id):
            if not await self.identity.exists(user_id):
                raise NotFound("User", user_id)

        message = Message(sender_id=sender_id, receiver_id=receiver_id, content=data.content)
        self.db.add(message)
        await self.db.flush()
        await self.db.refresh(message)

        logger.info(f"Message {message.id}: {sender_id} -> {receiver_id}")
        return message

    async def get(self, message_id: int) -> Message:
        result = await self.db.execute(select(Message).where(Message.id == message_id))
        message = result.scalar_one_or_none()
        if not message:
            raise NotFound("Message", message_id)
        return message

    async def list_by_sender(self, user_id: int, page_request: PageRequest) -> Page:
        query = newest_first(select(Message).where(Message.sender_id == user_id))
        return await paginate(self.db, query, page_request, MessageResponse.model_validate)

    async def list_by_receiver(self, user_id: int, page_request: PageRequest) -> Page:
        query = newest_first(select(Message).where(Message.receiver_id == user_id))
        return await paginate(self.db, query, page_request, MessageResponse.model_validate)

    async def get_conversation(
        self, user_a: UserLike, user_b: UserLike, page_request: PageRequest
    ) -> Page:
        """Both directions of a conversation, newest first.

        Takes raw ids or resolved references; the argument order does not
        change the result.
        """
        query = newest_first(
            select(Message).where(conversation_between(user_id_of(user_a), user_id_of(user_b)))
        )
        return await paginate(self.db, query, page_request, MessageResponse.model_validate)

    async def count_unread(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Message)
            .where(Message.receiver_id == user_id, Message.is_read.is_(False))
        )
        return result.scalar_one()

    async def mark_read_by_sender_receiver(self, receiver_id: int, sender_id: int) -> int:
        """Mark what ``sender_id`` sent to ``receiver_id`` as read.

        Returns how many messages changed state. The reverse direction is
        left alone.
        """
        result = await self.db.execute(
            update(Message)
            .where(
                Message.receiver_id == receiver_id,
                Message.sender_id == sender_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
        )
        await self.db.flush()
        if result.rowcount:
            logger.info(f"User {receiver_id} read {result.rowcount} message(s) from {sender_id}")
        return result.rowcount

    async def mark_read_by_ids(self, message_ids: Sequence[int]) -> int:
        """Mark the listed messages read in one statement. Unknown ids are ignored."""
        if not message_ids:
            return 0

        result = await self.db.execute(
            update(Message)
            .where(Message.id.in_(list(message_ids)), Message.is_read.is_(False))
            .values(is_read=True)
        )
        await self.db.flush()
        return result.rowcount

    async def list_all_unread(self, user_id: int) -> List[Message]:
        result = await self.db.execute(
            newest_first(
                select(Message).where(Message.receiver_id == user_id, Message.is_read.is_(False))
            )
        )
        return list(result.scalars().all())

    async def list_conversations(self, user_id: int) -> List[ConversationSummary]:
        """One summary per conversation partner, most recently active first."""
        partner = case(
            (Message.sender_id == user_id, Message.receiver_id),
            else_=Message.sender_id,
        ).label("partner_id")
        unread = func.sum(
            case(
                (and_(Message.receiver_id == user_id, Message.is_read.is_(False)), 1),
                else_=0,
            )
        ).label("unread_count")
        last_at = func.max(Message.created_at).label("last_message_at")

        result = await self.db.execute(
            select(partner, last_at, unread)
            .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .group_by(partner)
            .order_by(last_at.desc(), partner)
        )
        return [
            ConversationSummary(
                partner_id=row.partner_id,
                last_message_at=row.last_message_at,
                unread_count=row.unread_count or 0,
            )
            for row in result.all()
        ]
