from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from fastapi import HTTPException

from socialfeed.core import dynamo
from socialfeed.core.dynamo import ConditionFailed
from socialfeed.core.settings import S
from socialfeed.core.tables import Tables
from socialfeed.core.time import now_iso
from socialfeed.metrics import COMMENTS_CREATED, COUNTER_RECOMPUTE_FAILURES
from socialfeed.services.notifications import NotificationDispatcher
from socialfeed.services.posts import PostStore
from socialfeed.services.users import UserDirectory

logger = logging.getLogger(__name__)

MAX_COMMENT_LEN = 2000


def _clean_text(value: Optional[str]) -> str:
    text = (value or "").strip()
    if not text:
        raise HTTPException(400, "Comment text is required")
    if len(text) > MAX_COMMENT_LEN:
        raise HTTPException(400, f"Comment too long (max {MAX_COMMENT_LEN})")
    return text


class CommentLedger:
    """Comments keyed by (post_id, id) so a post's comments can be counted with a consistent read."""

    def __init__(
        self,
        tables: Tables,
        posts: PostStore,
        users: UserDirectory,
        notifier: Optional[NotificationDispatcher] = None,
    ) -> None:
        self.tables = tables
        self.posts = posts
        self.users = users
        self.notifier = notifier

    def create(self, post_id: int, author_id: int, text: str) -> Dict[str, Any]:
        body = _clean_text(text)
        post = self.posts.require_post(post_id)
        item = {
            "id": dynamo.next_id(self.tables.counters, "comments"),
            "post_id": int(post_id),
            "user_id": int(author_id),
            "comment_content": body,
            "created_at": now_iso(),
        }
        dynamo.put_item(self.tables.comments, item, condition=Attr("id").not_exists())
        COMMENTS_CREATED.inc()
        logger.info("Comment id=%s on post id=%s by user id=%s", item["id"], post_id, author_id)
        self.recompute(post_id)
        if self.notifier is not None:
            try:
                self.notifier.notify_comment(post["post_id_user"], author_id, body, post.get("description", ""))
            except Exception:
                logger.exception("Could not queue comment notification for post id=%s", post_id)
        return item

    def _key(self, comment: Dict[str, Any]) -> Dict[str, int]:
        return {"post_id": int(comment["post_id"]), "id": int(comment["id"])}

    def get_comment(self, comment_id: int) -> Dict[str, Any]:
        # The id index only locates the row; the row itself is read from the base table.
        hits = dynamo.query_page(
            self.tables.comments,
            limit=1,
            IndexName=S.comments_id_index,
            KeyConditionExpression=Key("id").eq(int(comment_id)),
        )
        item = dynamo.get_item(self.tables.comments, self._key(hits[0]), consistent=True) if hits else None
        if not item:
            raise HTTPException(404, "Comment not found")
        return item

    def update(self, comment_id: int, text: str) -> Dict[str, Any]:
        body = _clean_text(text)
        comment = self.get_comment(comment_id)
        try:
            return dynamo.update_fields(
                self.tables.comments,
                self._key(comment),
                {"comment_content": body, "updated_at": now_iso()},
                condition=Attr("id").exists(),
            )
        except ConditionFailed:
            raise HTTPException(404, "Comment not found") from None

    def delete(self, comment_id: int) -> Dict[str, Any]:
        comment = self.get_comment(comment_id)
        old = dynamo.delete_item(self.tables.comments, self._key(comment))
        if not old:
            raise HTTPException(404, "Comment not found")
        self.recompute(comment["post_id"])
        return old

    def list_by_post(self, post_id: int, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        # Comment ids are allocated in order, so the sort key is creation order.
        rows = dynamo.query_page(
            self.tables.comments,
            offset=offset,
            limit=limit,
            KeyConditionExpression=Key("post_id").eq(int(post_id)),
            ScanIndexForward=True,
        )
        names = self.users.display_names(r["user_id"] for r in rows)
        return [dict(r, display_name=names.get(r["user_id"])) for r in rows]

    def list_by_author(self, author_id: int, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        return dynamo.query_page(
            self.tables.comments,
            offset=offset,
            limit=limit,
            IndexName=S.comments_author_index,
            KeyConditionExpression=Key("user_id").eq(int(author_id)),
            ScanIndexForward=False,
        )

    def count(self, post_id: int) -> int:
        return dynamo.count(
            self.tables.comments,
            consistent=True,
            KeyConditionExpression=Key("post_id").eq(int(post_id)),
        )

    def recompute(self, post_id: int) -> Optional[int]:
        try:
            total = self.count(post_id)
            self.posts.set_counter(post_id, "comments", total)
        except HTTPException as exc:
            logger.error("Could not update comment counter for post id=%s: %s", post_id, exc.detail)
            COUNTER_RECOMPUTE_FAILURES.labels(counter="comments").inc()
            return None
        return total
