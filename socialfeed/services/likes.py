from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from fastapi import HTTPException

from socialfeed.core import dynamo
from socialfeed.core.dynamo import ConditionFailed
from socialfeed.core.settings import S
from socialfeed.core.tables import Tables
from socialfeed.core.time import now_iso
from socialfeed.metrics import COUNTER_RECOMPUTE_FAILURES, record_like_toggle
from socialfeed.services.notifications import NotificationDispatcher
from socialfeed.services.posts import PostStore
from socialfeed.services.users import UserDirectory

logger = logging.getLogger(__name__)


class LikeLedger:
    """One row per (post_id, user_id); the post's ``likes`` field is derived from it.

    The table key is the pair itself, so a second like by the same user is
    rejected by the conditional put instead of creating a duplicate row.
    """

    def __init__(
        self,
        tables: Tables,
        posts: PostStore,
        users: UserDirectory,
        notifier: Optional[NotificationDispatcher] = None,
        notify_on_like: bool = False,
    ) -> None:
        self.tables = tables
        self.posts = posts
        self.users = users
        self.notifier = notifier
        self.notify_on_like = notify_on_like

    def _key(self, post_id: int, user_id: int) -> Dict[str, int]:
        return {"post_id": int(post_id), "user_id": int(user_id)}

    def toggle(self, post_id: int, user_id: int) -> Dict[str, Any]:
        post = self.posts.require_post(post_id)
        existing = dynamo.get_item(self.tables.likes, self._key(post_id, user_id), consistent=True)
        if existing:
            self.unlike(post_id, user_id, like_id=existing.get("id"))
            liked = False
        else:
            self.like(post_id, user_id, post=post)
            liked = True
        record_like_toggle(liked)
        return {"liked": liked, "likes": self.count_likes(post_id)}

    def like(self, post_id: int, user_id: int, *, post: Optional[Dict[str, Any]] = None) -> bool:
        """Insert the like row. Returns False when the user had already liked the post."""
        post = post or self.posts.require_post(post_id)
        item = dict(self._key(post_id, user_id), id=uuid.uuid4().hex, created_at=now_iso())
        try:
            dynamo.put_item(self.tables.likes, item, condition=Attr("user_id").not_exists())
        except ConditionFailed:
            logger.info("User id=%s already likes post id=%s", user_id, post_id)
            return False
        self.recompute(post_id)
        if self.notify_on_like and self.notifier is not None:
            self.notifier.notify_like(post["post_id_user"], user_id, post.get("description", ""))
        return True

    def unlike(self, post_id: int, user_id: int, like_id: Optional[str] = None) -> bool:
        """Delete the like row, optionally only if it is still the row ``like_id``."""
        condition = Attr("id").eq(like_id) if like_id else Attr("user_id").exists()
        try:
            dynamo.delete_item(self.tables.likes, self._key(post_id, user_id), condition=condition)
        except ConditionFailed:
            logger.info("No like by user id=%s on post id=%s to remove", user_id, post_id)
            return False
        self.recompute(post_id)
        return True

    def has_liked(self, post_id: int, user_id: int) -> bool:
        return dynamo.get_item(self.tables.likes, self._key(post_id, user_id), consistent=True) is not None

    def count_likes(self, post_id: int) -> int:
        return dynamo.count(
            self.tables.likes,
            consistent=True,
            KeyConditionExpression=Key("post_id").eq(int(post_id)),
        )

    def recompute(self, post_id: int) -> Optional[int]:
        """Re-derive the post's like counter from the ledger. Failures are logged only."""
        try:
            total = self.count_likes(post_id)
            self.posts.set_counter(post_id, "likes", total)
        except HTTPException as exc:
            logger.error("Could not update like counter for post id=%s: %s", post_id, exc.detail)
            COUNTER_RECOMPUTE_FAILURES.labels(counter="likes").inc()
            return None
        logger.debug("Post id=%s likes=%s", post_id, total)
        return total

    def list_likers(self, post_id: int, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        rows = dynamo.query_page(
            self.tables.likes,
            offset=offset,
            limit=limit,
            IndexName=S.likes_created_index,
            KeyConditionExpression=Key("post_id").eq(int(post_id)),
            ScanIndexForward=False,
        )
        names = self.users.display_names(r["user_id"] for r in rows)
        return [dict(r, display_name=names.get(r["user_id"])) for r in rows]
