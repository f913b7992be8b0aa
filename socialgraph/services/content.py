import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.core.exceptions import NotFound, ValidationFailed
from socialgraph.core.pagination import Page, PageRequest, apply_sort, empty_page, paginate
from socialgraph.core.validation import parse_input
from socialgraph.models import Post, Image
from socialgraph.schemas.post import PostCreate, ImageCreate, PostResponse
from socialgraph.services.identity import IdentityLookup, IdentityService

logger = logging.getLogger(__name__)


def active_posts():
    """Base query for posts visible to readers. Soft-deleted rows never pass."""
    return select(Post).where(Post.is_deleted.is_(False))


SORTABLE = {
    "created_at": Post.created_at,
    "updated_at": Post.updated_at,
    "title": Post.title,
    "id": Post.id,
}


def order_newest_first(query):
    return query.order_by(Post.created_at.desc(), Post.id.desc())


def sort_posts(query, page_request: PageRequest):
    """Newest first unless the request names a sort field."""
    if page_request.sort is None:
        return order_newest_first(query)
    return apply_sort(query, page_request, SORTABLE, "created_at", Post.id)


class ContentService:
    """Posts, their soft-delete state and the images they own."""

    def __init__(self, db: AsyncSession, identity: Optional[IdentityLookup] = None):
        self.db = db
        self.identity = identity or IdentityService(db)

    # Posts

    async def create_post(self, author_id: int, title: str, content: str) -> Post:
        """Create a post. Input is validated before anything is written."""
        data = parse_input(PostCreate, title=title, content=content)

        if not await self.identity.exists(author_id):
            raise NotFound("User", author_id)

        post = Post(user_id=author_id, title=data.title, content=data.content)
        self.db.add(post)
        await self.db.flush()
        await self.db.refresh(post)

        logger.info(f"User {author_id} created post {post.id}")
        return post

    async def get_post(self, post_id: int) -> Post:
        """Get an active post by id."""
        result = await self.db.execute(active_posts().where(Post.id == post_id))
        post = result.scalar_one_or_none()
        if not post:
            raise NotFound("Post", post_id)
        return post

    async def soft_delete(self, post_id: int) -> bool:
        """Hide a post from every read path. Missing or hidden posts are a no-op."""
        result = await self.db.execute(
            update(Post)
            .where(Post.id == post_id, Post.is_deleted.is_(False))
            .values(is_deleted=True)
        )
        await self.db.flush()
        if result.rowcount:
            logger.info(f"Soft-deleted post {post_id}")
        return bool(result.rowcount)

    async def soft_delete_all_by_author(self, author_id: int) -> int:
        """Hide every post of an author in one statement."""
        result = await self.db.execute(
            update(Post)
            .where(Post.user_id == author_id, Post.is_deleted.is_(False))
            .values(is_deleted=True)
        )
        await self.db.flush()
        logger.info(f"Soft-deleted {result.rowcount} post(s) of user {author_id}")
        return result.rowcount

    async def delete_post(self, post_id: int) -> bool:
        """Physically remove a post together with its images."""
        result = await self.db.execute(select(Post).where(Post.id == post_id))
        post = result.scalar_one_or_none()
        if not post:
            return False

        await self.db.delete(post)
        await self.db.flush()

        logger.info(f"Deleted post {post_id}")
        return True

    async def list_by_author(
        self, author_id: int, page_request: PageRequest, newest_first: bool = True
    ) -> Page:
        """Active posts of one author. ``newest_first`` applies when no sort field is named."""
        query = active_posts().where(Post.user_id == author_id)
        if page_request.sort is not None or newest_first:
            query = sort_posts(query, page_request)
        else:
            query = query.order_by(Post.created_at.asc(), Post.id.asc())
        return await paginate(self.db, query, page_request, PostResponse.model_validate)

    async def list_by_authors(self, author_ids: Sequence[int], page_request: PageRequest) -> Page:
        if not author_ids:
            return empty_page(page_request)

        query = sort_posts(active_posts().where(Post.user_id.in_(list(author_ids))), page_request)
        return await paginate(self.db, query, page_request, PostResponse.model_validate)

    async def list_all(self, page_request: PageRequest) -> Page:
        return await paginate(
            self.db, sort_posts(active_posts(), page_request), page_request, PostResponse.model_validate
        )

    async def count_active_by_author(self, author_id: int) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Post)
            .where(Post.user_id == author_id, Post.is_deleted.is_(False))
        )
        return result.scalar_one()

    async def find_in_date_range(
        self, start: datetime, end: datetime, page_request: PageRequest
    ) -> Page:
        """Active posts created between ``start`` and ``end``, both inclusive."""
        if start > end:
            raise ValidationFailed("Range start must not be after its end", field="start")

        query = sort_posts(active_posts().where(Post.created_at.between(start, end)), page_request)
        return await paginate(self.db, query, page_request, PostResponse.model_validate)

    # Images

    async def add_image(
        self,
        post_id: int,
        url: str,
        file_name: str,
        file_size: Optional[int] = None,
    ) -> Image:
        """Attach an image to an active post."""
        data = parse_input(ImageCreate, url=url, file_name=file_name, file_size=file_size)
        post = await self.get_post(post_id)

        image = Image(url=data.url, file_name=data.file_name, file_size=data.file_size)
        post.images.append(image)
        await self.db.flush()
        await self.db.refresh(image)

        logger.info(f"Added image {image.id} to post {post_id}")
        return image

    async def remove_image(self, image_id: int) -> bool:
        """Detach an image from its post, which deletes it."""
        result = await self.db.execute(select(Image).where(Image.id == image_id))
        image = result.scalar_one_or_none()
        if not image:
            return False

        post = (await self.db.execute(select(Post).where(Post.id == image.post_id))).scalar_one()
        post.images.remove(image)
        await self.db.flush()

        logger.info(f"Removed image {image_id} from post {post.id}")
        return True

    async def list_images(self, post_id: int) -> List[Image]:
        result = await self.db.execute(
            select(Image).where(Image.post_id == post_id).order_by(Image.id)
        )
        return list(result.scalars().all())

    async def list_images_for_posts(self, post_ids: Sequence[int]) -> List[Image]:
        if not post_ids:
            return []
        result = await self.db.execute(
            select(Image).where(Image.post_id.in_(list(post_ids))).order_by(Image.post_id, Image.id)
        )
        return list(result.scalars().all())

    async def count_images(self, post_id: int) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Image).where(Image.post_id == post_id)
        )
        return result.scalar_one()

    async def remove_all_images(self, post_id: int) -> int:
        """Delete every image of a post, keeping the post."""
        result = await self.db.execute(select(Post).where(Post.id == post_id))
        post = result.scalar_one_or_none()
        if not post or not post.images:
            return 0

        count = len(post.images)
        post.images.clear()
        await self.db.flush()

        logger.info(f"Removed {count} image(s) from post {post_id}")
        return count

    async def remove_images(self, image_ids: Sequence[int]) -> int:
        """Delete the listed images through their posts. Unknown ids are ignored."""
        if not image_ids:
            return 0

        result = await self.db.execute(
            select(Post).join(Image, Image.post_id == Post.id).where(Image.id.in_(list(image_ids)))
        )
        wanted = set(image_ids)
        count = 0
        for post in result.scalars().unique().all():
            for image in [image for image in post.images if image.id in wanted]:
                post.images.remove(image)
                count += 1

        await self.db.flush()
        if count:
            logger.info(f"Removed {count} image(s)")
        return count
