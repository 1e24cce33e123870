"""Posts routes — demo CRUD resource."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from microsaas.db.session import get_db
from microsaas.schemas.post import PostCreate, PostOut
from microsaas.services.post_service import create_post, delete_post, get_post, list_recent_posts

router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.get("", response_model=list[PostOut])
async def list_posts(db: AsyncSession = Depends(get_db)):
    return await list_recent_posts(db)


@router.get("/{post_id}", response_model=PostOut)
async def read_post(post_id: int, db: AsyncSession = Depends(get_db)):
    post = await get_post(db, post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.post("", response_model=PostOut, status_code=201)
async def create_post_route(body: PostCreate, db: AsyncSession = Depends(get_db)):
    return await create_post(db, body)


@router.delete("/{post_id}")
async def delete_post_route(post_id: int, db: AsyncSession = Depends(get_db)):
    await delete_post(db, post_id)
    return {"success": True}
