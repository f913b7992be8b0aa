from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship
from socialgraph.database import Base
from socialgraph.core.time_utils import utc_now


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    # Soft-delete flag: every read path must filter on it explicitly
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Images live and die with their post
    images: Mapped[list["Image"]] = relationship(
        "Image",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Image.id",
        lazy="selectin",
    )

    # Indexes for author listings and the feed
    __table_args__ = (
        Index("idx_posts_user_created", "user_id", "created_at"),
        Index("idx_posts_user_deleted", "user_id", "is_deleted"),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("is_deleted", False)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, user_id={self.user_id}, deleted={self.is_deleted})>"


class Image(Base):
    __tablename__ = "images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    upload_date: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    post: Mapped["Post"] = relationship("Post", back_populates="images")

    def __repr__(self) -> str:
        return f"<Image(id={self.id}, post_id={self.post_id})>"
