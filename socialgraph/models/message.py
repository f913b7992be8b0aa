from datetime import datetime
from sqlalchemy import Integer, DateTime, ForeignKey, Index, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from socialgraph.database import Base
from socialgraph.core.time_utils import utc_now


class Message(Base):
    """Private message. Only ``is_read`` changes after creation."""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    sender_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False, index=True)

    __table_args__ = (
        Index("idx_messages_pair_created", "sender_id", "receiver_id", "created_at"),
        Index("idx_messages_receiver_read", "receiver_id", "is_read"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("is_read", False)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, sender={self.sender_id}, receiver={self.receiver_id})>"
