from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from socialfeed.auth.deps import get_authenticated_user_sub
from socialfeed.core.normalize import valid_post_id
from socialfeed.core.paging import page_params, paginated
from socialfeed.core.settings import S
from socialfeed.services.identity import IdentityResolver
from socialfeed.services.likes import LikeLedger
from socialfeed.services.providers import get_identity_resolver, get_like_ledger

router = APIRouter(prefix="/posts", tags=["likes"])


@router.get("/{post_id}/like")
async def like_status(
    post_id: int = Depends(valid_post_id),
    user_sub: str = Depends(get_authenticated_user_sub),
    identity: IdentityResolver = Depends(get_identity_resolver),
    likes: LikeLedger = Depends(get_like_ledger),
):
    user_id = identity.caller_id(user_sub)
    return {"success": True, "data": {"liked": likes.has_liked(post_id, user_id)}}


@router.post("/{post_id}/like")
async def toggle_like(
    post_id: int = Depends(valid_post_id),
    user_sub: str = Depends(get_authenticated_user_sub),
    identity: IdentityResolver = Depends(get_identity_resolver),
    likes: LikeLedger = Depends(get_like_ledger),
):
    user_id = identity.caller_id(user_sub)
    result = likes.toggle(post_id, user_id)
    return {
        "success": True,
        "data": result,
        "message": "Post liked" if result["liked"] else "Post unliked",
    }


@router.get("/{post_id}/likes")
async def list_likers(
    post_id: int = Depends(valid_post_id),
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    likes: LikeLedger = Depends(get_like_ledger),
):
    limit_n, offset_n = page_params(limit, offset, S.likers_page_size)
    return paginated(likes.list_likers(post_id, limit_n, offset_n), limit_n, offset_n)
