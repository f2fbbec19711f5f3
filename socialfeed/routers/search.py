from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from socialfeed.core.normalize import require_search_query
from socialfeed.core.paging import page_params, paginated
from socialfeed.core.settings import S
from socialfeed.services.posts import PostStore
from socialfeed.services.providers import get_post_store, get_user_directory
from socialfeed.services.users import UserDirectory

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/posts")
async def search_posts(
    q: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    posts: PostStore = Depends(get_post_store),
):
    query = require_search_query(q)
    limit_n, offset_n = page_params(limit, offset, S.posts_page_size)
    return paginated(posts.search(query, limit_n, offset_n), limit_n, offset_n)


@router.get("/users")
async def search_users(
    q: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    users: UserDirectory = Depends(get_user_directory),
):
    query = require_search_query(q)
    limit_n, offset_n = page_params(limit, offset, S.posts_page_size)
    return paginated(users.search_profiles(query, limit_n, offset_n), limit_n, offset_n)
