from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from boto3.dynamodb.conditions import Attr, Key
from fastapi import HTTPException

from socialfeed.core import dynamo
from socialfeed.core.dynamo import ConditionFailed
from socialfeed.core.settings import S
from socialfeed.core.tables import Tables
from socialfeed.core.time import now_iso

logger = logging.getLogger(__name__)

# Fields a caller may change through update_profile.
PROFILE_FIELDS = ("display_name", "user_image_bucket")
MAX_DISPLAY_NAME_LEN = 80

_INTERNAL_FIELDS = ("display_name_lc",)


def public_profile(item: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if item is None:
        return None
    return {k: v for k, v in item.items() if k not in _INTERNAL_FIELDS}


def _clean_display_name(value: Optional[str]) -> str:
    name = (value or "").strip()
    if not name:
        raise HTTPException(400, "displayName is required")
    if len(name) > MAX_DISPLAY_NAME_LEN:
        raise HTTPException(400, f"displayName too long (max {MAX_DISPLAY_NAME_LEN})")
    return name


def _newest_first(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(items, key=lambda i: (i.get("created_at", ""), i.get("id", 0)), reverse=True)


class UserDirectory:
    """Profile records keyed by the auth provider's identity (``user_id_reg``).

    Every profile also carries an integer ``id`` allocated from the counters
    table; posts, likes and comments reference that id.
    """

    def __init__(self, tables: Tables) -> None:
        self.tables = tables

    def find_profile(self, external_id: str, *, consistent: bool = False) -> Optional[Dict[str, Any]]:
        if not external_id:
            return None
        return dynamo.get_item(self.tables.users, {"user_id_reg": external_id}, consistent=consistent)

    def get_profile(self, external_id: str) -> Dict[str, Any]:
        item = self.find_profile(external_id)
        if not item:
            raise HTTPException(404, "User profile not found")
        return public_profile(item)

    def find_profile_by_internal_id(self, internal_id: int) -> Optional[Dict[str, Any]]:
        items = dynamo.query_page(
            self.tables.users,
            limit=1,
            IndexName=S.users_id_index,
            KeyConditionExpression=Key("id").eq(int(internal_id)),
        )
        return items[0] if items else None

    def get_profile_by_internal_id(self, internal_id: int) -> Dict[str, Any]:
        item = self.find_profile_by_internal_id(internal_id)
        if not item:
            raise HTTPException(404, "User profile not found")
        return public_profile(item)

    def profile_exists(self, external_id: str) -> bool:
        return self.find_profile(external_id) is not None

    def create_profile(
        self,
        external_id: str,
        display_name: str,
        *,
        email: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        """Create the profile unless one exists. Returns (profile, already_existed)."""
        if not external_id:
            raise HTTPException(400, "userId is required")
        existing = self.find_profile(external_id)
        if existing:
            return public_profile(existing), True

        name = _clean_display_name(display_name)
        item: Dict[str, Any] = {
            "user_id_reg": external_id,
            "id": dynamo.next_id(self.tables.counters, "users"),
            "display_name": name,
            "display_name_lc": name.lower(),
            "created_at": now_iso(),
        }
        if email:
            item["email"] = email
        try:
            dynamo.put_item(self.tables.users, item, condition=Attr("user_id_reg").not_exists())
        except ConditionFailed:
            # Lost a creation race; the other writer's profile wins.
            logger.info("Profile for %s created concurrently, using existing record", external_id)
            return public_profile(self.find_profile(external_id, consistent=True)), True
        logger.info("Created profile id=%s for %s", item["id"], external_id)
        return public_profile(item), False

    def update_profile(self, external_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        for name in PROFILE_FIELDS:
            if name in fields and fields[name] is not None:
                updates[name] = fields[name]
        if "display_name" in updates:
            updates["display_name"] = _clean_display_name(updates["display_name"])
            updates["display_name_lc"] = updates["display_name"].lower()
        if not updates:
            raise HTTPException(400, "No profile fields provided")
        try:
            item = dynamo.update_fields(
                self.tables.users,
                {"user_id_reg": external_id},
                updates,
                condition=Attr("user_id_reg").exists(),
            )
        except ConditionFailed:
            raise HTTPException(404, "User profile not found") from None
        return public_profile(item)

    def update_display_name(self, external_id: str, display_name: str) -> Dict[str, Any]:
        return self.update_profile(external_id, {"display_name": display_name})

    def update_profile_image(self, external_id: str, image_name: str) -> Dict[str, Any]:
        return self.update_profile(external_id, {"user_image_bucket": image_name})

    def delete_profile(self, external_id: str) -> Dict[str, Any]:
        # Posts, likes and comments by this user are left in place.
        old = dynamo.delete_item(self.tables.users, {"user_id_reg": external_id})
        if not old:
            raise HTTPException(404, "User profile not found")
        logger.info("Deleted profile id=%s for %s", old.get("id"), external_id)
        return public_profile(old)

    def list_profiles(self) -> List[Dict[str, Any]]:
        return [public_profile(i) for i in _newest_first(dynamo.scan_all(self.tables.users))]

    def search_profiles(self, q: str, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        items = dynamo.scan_all(
            self.tables.users,
            FilterExpression=Attr("display_name_lc").contains(q.lower()),
        )
        return [public_profile(i) for i in _newest_first(items)[offset:offset + limit]]

    def random_profiles(self, limit: int, *, rng: Optional[random.Random] = None) -> List[Dict[str, Any]]:
        pool = self.list_profiles()[: limit * S.random_users_oversample]
        (rng or random).shuffle(pool)
        return pool[:limit]

    def profiles_by_internal_id(self, internal_ids) -> Dict[int, Optional[Dict[str, Any]]]:
        """One lookup per distinct id; ids without a profile map to None."""
        return {uid: self.find_profile_by_internal_id(uid) for uid in set(internal_ids)}

    def display_names(self, internal_ids) -> Dict[int, Optional[str]]:
        profiles = self.profiles_by_internal_id(internal_ids)
        return {uid: p.get("display_name") if p else None for uid, p in profiles.items()}
