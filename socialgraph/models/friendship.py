import enum
from datetime import datetime
from sqlalchemy import Integer, DateTime, ForeignKey, Index, UniqueConstraint, Enum
from sqlalchemy.orm import Mapped, mapped_column
from socialgraph.database import Base
from socialgraph.core.time_utils import utc_now


class FriendshipStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class Friendship(Base):
    """Directed friend request from requester to addressee."""

    __tablename__ = "friendships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    requester_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    addressee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[FriendshipStatus] = mapped_column(
        Enum(FriendshipStatus, name="friendship_status", native_enum=False, length=20),
        default=FriendshipStatus.PENDING,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    # Uniqueness is on the ordered pair: A->B and B->A are distinct rows
    __table_args__ = (
        UniqueConstraint("requester_id", "addressee_id", name="uk_friendships_pair"),
        Index("idx_friendships_addressee_status", "addressee_id", "status"),
        Index("idx_friendships_requester_status", "requester_id", "status"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("status", FriendshipStatus.PENDING)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return (
            f"<Friendship(requester={self.requester_id}, addressee={self.addressee_id}, "
            f"status={self.status})>"
        )
