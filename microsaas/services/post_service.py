"""Post CRUD operations for the demo posts API."""

from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from microsaas.constants import RECENT_POSTS_WINDOW_MINUTES
from microsaas.models.post import Post
from microsaas.schemas.post import PostCreate
from microsaas.utils import now_utc


async def list_recent_posts(db: AsyncSession, now: datetime | None = None) -> list[Post]:
    # Demo page only shows posts from the last few minutes
    cutoff = (now or now_utc()) - timedelta(minutes=RECENT_POSTS_WINDOW_MINUTES)
    result = await db.execute(
        select(Post).where(Post.created_at >= cutoff).order_by(Post.created_at)
    )
    return list(result.scalars().all())


async def get_post(db: AsyncSession, post_id: int) -> Post | None:
    result = await db.execute(select(Post).where(Post.id == post_id))
    return result.scalar_one_or_none()


async def create_post(db: AsyncSession, data: PostCreate) -> Post:
    post = Post(title=data.title, content=data.content)
    db.add(post)
    await db.commit()
    await db.refresh(post)
    return post


async def delete_post(db: AsyncSession, post_id: int) -> None:
    await db.execute(delete(Post).where(Post.id == post_id))
    await db.commit()
