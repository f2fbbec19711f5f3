from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from socialfeed.auth.deps import get_authenticated_user_sub
from socialfeed.core.normalize import valid_comment_id, valid_post_id
from socialfeed.core.paging import page_params, paginated
from socialfeed.core.settings import S
from socialfeed.models import CommentReq
from socialfeed.services.comments import CommentLedger
from socialfeed.services.identity import IdentityResolver
from socialfeed.services.providers import get_comment_ledger, get_identity_resolver

router = APIRouter(tags=["comments"])


@router.get("/posts/{post_id}/comments")
async def list_post_comments(
    post_id: int = Depends(valid_post_id),
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    comments: CommentLedger = Depends(get_comment_ledger),
):
    limit_n, offset_n = page_params(limit, offset, S.comments_page_size)
    return paginated(comments.list_by_post(post_id, limit_n, offset_n), limit_n, offset_n)


@router.post("/posts/{post_id}/comments", status_code=201)
async def create_comment(
    body: CommentReq,
    post_id: int = Depends(valid_post_id),
    user_sub: str = Depends(get_authenticated_user_sub),
    identity: IdentityResolver = Depends(get_identity_resolver),
    comments: CommentLedger = Depends(get_comment_ledger),
):
    if not body.comment_text or not body.comment_text.strip():
        raise HTTPException(400, "Comment text is required")
    author_id = identity.caller_id(user_sub)
    comment = comments.create(post_id, author_id, body.comment_text.strip())
    return {"success": True, "data": comment, "message": "Comment created successfully"}


def _own_comment(comments: CommentLedger, comment_id: int, caller_id: int):
    comment = comments.get_comment(comment_id)
    if comment["user_id"] != caller_id:
        raise HTTPException(403, "You can only modify your own comments")
    return comment


@router.put("/comments/{comment_id}")
async def update_comment(
    body: CommentReq,
    comment_id: int = Depends(valid_comment_id),
    user_sub: str = Depends(get_authenticated_user_sub),
    identity: IdentityResolver = Depends(get_identity_resolver),
    comments: CommentLedger = Depends(get_comment_ledger),
):
    if not body.comment_text or not body.comment_text.strip():
        raise HTTPException(400, "Comment text is required")
    _own_comment(comments, comment_id, identity.caller_id(user_sub))
    return {"success": True, "data": comments.update(comment_id, body.comment_text.strip())}


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: int = Depends(valid_comment_id),
    user_sub: str = Depends(get_authenticated_user_sub),
    identity: IdentityResolver = Depends(get_identity_resolver),
    comments: CommentLedger = Depends(get_comment_ledger),
):
    _own_comment(comments, comment_id, identity.caller_id(user_sub))
    comments.delete(comment_id)
    return {"success": True, "message": "Comment deleted successfully"}


@router.get("/comments/user/{user_id}")
async def list_user_comments(
    user_id: str,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    identity: IdentityResolver = Depends(get_identity_resolver),
    comments: CommentLedger = Depends(get_comment_ledger),
):
    limit_n, offset_n = page_params(limit, offset, S.comments_page_size)
    author_id = identity.resolve(user_id)
    return paginated(comments.list_by_author(author_id, limit_n, offset_n), limit_n, offset_n)
