from datetime import datetime
from sqlalchemy import Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from socialgraph.database import Base
from socialgraph.core.time_utils import utc_now


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    follower_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    following_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_subscriptions_follower", "follower_id"),
        Index("idx_subscriptions_following", "following_id"),
        Index("uk_subscriptions_pair", "follower_id", "following_id", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Subscription(follower={self.follower_id}, following={self.following_id})>"
