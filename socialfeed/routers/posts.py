from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from socialfeed.auth.deps import get_authenticated_user_sub, require_admin
from socialfeed.core.normalize import lenient_limit, valid_post_id
from socialfeed.core.paging import page_params, paginated
from socialfeed.core.settings import S
from socialfeed.metrics import POSTS_CREATED
from socialfeed.models import PostCreateReq, PostPatchReq
from socialfeed.services.identity import IdentityResolver
from socialfeed.services.posts import PostStore
from socialfeed.services.providers import get_identity_resolver, get_post_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("")
async def list_posts(
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    posts: PostStore = Depends(get_post_store),
):
    limit_n, offset_n = page_params(limit, offset, S.posts_page_size)
    data, has_more = posts.list_posts(limit_n, offset_n)
    return paginated(data, limit_n, offset_n, has_more)


@router.post("", status_code=201)
async def create_post(
    body: PostCreateReq,
    user_sub: str = Depends(get_authenticated_user_sub),
    identity: IdentityResolver = Depends(get_identity_resolver),
    posts: PostStore = Depends(get_post_store),
):
    if not body.description or not body.description.strip():
        raise HTTPException(400, "Description is required")
    author_id = identity.caller_id(user_sub)
    post = posts.create_post(author_id, body.description.strip(), body.image_id_bucket)
    POSTS_CREATED.inc()
    return {"success": True, "data": post, "message": "Post created successfully"}


@router.get("/trending")
async def trending_posts(limit: Optional[str] = None, posts: PostStore = Depends(get_post_store)):
    return {"success": True, "data": posts.trending(lenient_limit(limit, S.trending_limit, S.max_page_size))}


@router.get("/count")
async def count_posts(posts: PostStore = Depends(get_post_store)):
    return {"success": True, "data": {"count": posts.count_posts()}}


@router.get("/user/{user_id}")
async def posts_by_user(
    user_id: str,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    identity: IdentityResolver = Depends(get_identity_resolver),
    posts: PostStore = Depends(get_post_store),
):
    limit_n, offset_n = page_params(limit, offset, S.posts_page_size)
    author_id = identity.resolve(user_id)
    return paginated(posts.list_posts_by_author(author_id, limit_n, offset_n), limit_n, offset_n)


@router.get("/{post_id}")
async def get_post(post_id: int = Depends(valid_post_id), posts: PostStore = Depends(get_post_store)):
    return {"success": True, "data": posts.get_post(post_id)}


@router.patch("/{post_id}")
async def patch_post(
    body: PostPatchReq,
    post_id: int = Depends(valid_post_id),
    admin_sub: str = Depends(require_admin),
    posts: PostStore = Depends(get_post_store),
):
    fields = body.model_dump(exclude_unset=True)
    post = posts.update_post(post_id, fields)
    logger.info("Post id=%s updated by admin %s: %s", post_id, admin_sub, sorted(fields))
    return {"success": True, "data": post}


@router.delete("/{post_id}")
async def delete_post(
    post_id: int = Depends(valid_post_id),
    user_sub: str = Depends(get_authenticated_user_sub),
    identity: IdentityResolver = Depends(get_identity_resolver),
    posts: PostStore = Depends(get_post_store),
):
    post = posts.require_post(post_id)
    caller_id = identity.caller_id(user_sub)
    if post["post_id_user"] != caller_id:
        raise HTTPException(403, "You can only delete your own posts")
    posts.delete_post(post_id)
    return {"success": True, "message": "Post deleted successfully"}


@router.post("/{post_id}/pin")
async def pin_post(
    post_id: int = Depends(valid_post_id),
    admin_sub: str = Depends(require_admin),
    posts: PostStore = Depends(get_post_store),
):
    post = posts.pin(post_id)
    logger.info("Post id=%s pinned by %s", post_id, admin_sub)
    return {"success": True, "data": post}


@router.delete("/{post_id}/pin")
async def unpin_post(
    post_id: int = Depends(valid_post_id),
    admin_sub: str = Depends(require_admin),
    posts: PostStore = Depends(get_post_store),
):
    post = posts.unpin(post_id)
    logger.info("Post id=%s unpinned by %s", post_id, admin_sub)
    return {"success": True, "data": post}
