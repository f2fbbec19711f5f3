from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from boto3.dynamodb.conditions import Attr, Key
from fastapi import HTTPException

from socialfeed.core import dynamo
from socialfeed.core.dynamo import ConditionFailed, StoreError
from socialfeed.core.settings import S
from socialfeed.core.tables import Tables
from socialfeed.core.time import now_iso
from socialfeed.services.users import UserDirectory

logger = logging.getLogger(__name__)

PINNED = "PINNED"
REGULAR = "REGULAR"

COUNTER_FIELDS = ("likes", "comments")
UPDATABLE_FIELDS = ("description", "image_id_bucket", "is_pinned") + COUNTER_FIELDS
MAX_DESCRIPTION_LEN = 5000

_INTERNAL_FIELDS = ("description_lc", "feed_partition")
_AUTHOR_FIELDS = ("id", "display_name", "user_id_reg", "user_image_bucket")


def public_post(item: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if item is None:
        return None
    return {k: v for k, v in item.items() if k not in _INTERNAL_FIELDS}


def _coerce_count(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _clean_description(value: Optional[str]) -> str:
    text = (value or "").strip()
    if not text:
        raise HTTPException(400, "Description is required")
    if len(text) > MAX_DESCRIPTION_LEN:
        raise HTTPException(400, f"Description too long (max {MAX_DESCRIPTION_LEN})")
    return text


def _author_summary(profile: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return {k: profile.get(k) for k in _AUTHOR_FIELDS} if profile else None


def _newest_first(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(items, key=lambda i: (i.get("created_at", ""), i.get("id", 0)), reverse=True)


class PostStore:
    def __init__(self, tables: Tables, users: UserDirectory) -> None:
        self.tables = tables
        self.users = users

    # -----------------------------
    # Writes
    # -----------------------------
    def create_post(self, author_id: int, description: str, image_ref: Optional[str] = None) -> Dict[str, Any]:
        text = _clean_description(description)
        item: Dict[str, Any] = {
            "id": dynamo.next_id(self.tables.counters, "posts"),
            "post_id_user": int(author_id),
            "description": text,
            "description_lc": text.lower(),
            "image_id_bucket": image_ref or None,
            "likes": 0,
            "comments": 0,
            "is_pinned": False,
            "feed_partition": REGULAR,
            "created_at": now_iso(),
        }
        dynamo.put_item(self.tables.posts, item, condition=Attr("id").not_exists())
        logger.info("Created post id=%s by user id=%s", item["id"], author_id)
        return public_post(item)

    def _update(self, post_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            item = dynamo.update_fields(
                self.tables.posts,
                {"id": int(post_id)},
                fields,
                condition=Attr("id").exists(),
            )
        except ConditionFailed:
            raise HTTPException(404, "Post not found") from None
        return public_post(item)

    def update_post(self, post_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Generic partial update. Counter values are written as given (coerced to int)."""
        updates: Dict[str, Any] = {}
        for name in UPDATABLE_FIELDS:
            if name not in fields:
                continue
            value = fields[name]
            if name in COUNTER_FIELDS:
                updates[name] = _coerce_count(value)
            elif name == "description":
                updates["description"] = _clean_description(value)
                updates["description_lc"] = updates["description"].lower()
            elif name == "is_pinned":
                updates["is_pinned"] = bool(value)
                updates["feed_partition"] = PINNED if value else REGULAR
            else:
                updates[name] = value
        if not updates:
            raise HTTPException(400, "No post fields provided")
        return self._update(post_id, updates)

    def set_counter(self, post_id: int, name: str, value: int) -> Dict[str, Any]:
        if name not in COUNTER_FIELDS:
            raise ValueError(f"unknown counter {name}")
        return self._update(post_id, {name: int(value)})

    def pin(self, post_id: int) -> Dict[str, Any]:
        return self._update(post_id, {"is_pinned": True, "feed_partition": PINNED})

    def unpin(self, post_id: int) -> Dict[str, Any]:
        return self._update(post_id, {"is_pinned": False, "feed_partition": REGULAR})

    def delete_post(self, post_id: int) -> Dict[str, Any]:
        # Likes and comments of the post are not removed.
        old = dynamo.delete_item(self.tables.posts, {"id": int(post_id)})
        if not old:
            raise HTTPException(404, "Post not found")
        logger.info("Deleted post id=%s", post_id)
        return public_post(old)

    # -----------------------------
    # Reads
    # -----------------------------
    def find_post(self, post_id: int) -> Optional[Dict[str, Any]]:
        return dynamo.get_item(self.tables.posts, {"id": int(post_id)})

    def require_post(self, post_id: int) -> Dict[str, Any]:
        item = self.find_post(post_id)
        if not item:
            raise HTTPException(404, "Post not found")
        return public_post(item)

    def _with_authors(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        profiles = self.users.profiles_by_internal_id(i["post_id_user"] for i in items)
        return [dict(public_post(i), author=_author_summary(profiles.get(i["post_id_user"]))) for i in items]

    def get_post(self, post_id: int) -> Dict[str, Any]:
        return self._with_authors([self.require_post(post_id)])[0]

    def _feed_segment(self, partition: str, *, offset: int = 0, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return dynamo.query_page(
            self.tables.posts,
            offset=offset,
            limit=limit,
            IndexName=S.posts_feed_index,
            KeyConditionExpression=Key("feed_partition").eq(partition),
            ScanIndexForward=False,
        )

    def list_posts(self, limit: int, offset: int = 0) -> Tuple[List[Dict[str, Any]], bool]:
        """All pinned posts (newest first) followed by one page of regular posts.

        Returns (posts, has_more) where has_more refers to the regular page.
        """
        try:
            pinned = self._feed_segment(PINNED)
        except StoreError:
            logger.exception("Pinned posts could not be loaded, serving regular feed only")
            pinned = []
        regular = self._feed_segment(REGULAR, offset=offset, limit=limit)
        return self._with_authors(pinned + regular), len(regular) == limit

    def list_posts_by_author(self, author_id: int, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        items = dynamo.query_page(
            self.tables.posts,
            offset=offset,
            limit=limit,
            IndexName=S.posts_author_index,
            KeyConditionExpression=Key("post_id_user").eq(int(author_id)),
            ScanIndexForward=False,
        )
        return self._with_authors(items)

    def count_posts(self) -> int:
        return dynamo.count(self.tables.posts, scan=True)

    def trending(self, limit: int) -> List[Dict[str, Any]]:
        items = dynamo.scan_all(self.tables.posts)
        items.sort(key=lambda i: (i.get("likes", 0), i.get("created_at", "")), reverse=True)
        return self._with_authors(items[:limit])

    def search(self, q: str, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        items = dynamo.scan_all(
            self.tables.posts,
            FilterExpression=Attr("description_lc").contains(q.lower()),
        )
        return self._with_authors(_newest_first(items)[offset:offset + limit])
