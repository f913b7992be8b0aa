import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.core.pagination import Page, PageRequest, paginate
from socialgraph.models import Post, Subscription
from socialgraph.schemas.post import PostResponse
from socialgraph.services.content import active_posts, sort_posts
from socialgraph.services.identity import UserLike, user_id_of

logger = logging.getLogger(__name__)


class FeedService:
    """Home feed: active posts of everyone a user follows, newest first.

    The feed is a read-only join computed per request. Nothing is cached or
    materialized, so follows, unfollows and soft-deletes show up on the
    next read.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_feed(self, user: UserLike, page_request: PageRequest) -> Page:
        """Get one page of the feed for a user id or resolved reference."""
        user_id = user_id_of(user)

        followed = select(Subscription.following_id).where(Subscription.follower_id == user_id)
        query = sort_posts(active_posts().where(Post.user_id.in_(followed)), page_request)

        page = await paginate(self.db, query, page_request, PostResponse.model_validate)
        logger.debug(
            f"Feed for user {user_id}: page {page.page}, "
            f"{len(page.items)} of {page.total_elements} post(s)"
        )
        return page
