from __future__ import annotations

import logging
from typing import Any, Dict, Tuple, Union

from fastapi import HTTPException

from socialfeed.core.normalize import is_numeric_id
from socialfeed.services.users import UserDirectory

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Single place where auth identities become internal integer user ids."""

    def __init__(self, users: UserDirectory) -> None:
        self.users = users

    def resolve(self, candidate: Union[int, str, None]) -> int:
        """Internal ids and numeric strings pass through; anything else is looked up.

        Write paths never create a profile here: an unknown identity is a 404.
        Store failures propagate unchanged.
        """
        if isinstance(candidate, bool):
            raise HTTPException(400, "Invalid user id")
        if isinstance(candidate, int):
            return candidate
        value = (candidate or "").strip()
        if not value:
            raise HTTPException(400, "userId is required")
        if is_numeric_id(value):
            return int(value)
        return self.caller_id(value)

    def caller_id(self, external_id: str) -> int:
        """Internal id of an authenticated caller. The identity is never parsed as a number."""
        profile = self.users.find_profile(external_id)
        if not profile:
            raise HTTPException(404, "User profile not found")
        return int(profile["id"])

    def resolve_or_create(self, external_id: str, display_name: str, *, email=None) -> Tuple[Dict[str, Any], bool]:
        """Sign-in / first-request path: the profile is created on first use."""
        profile, existed = self.users.create_profile(external_id, display_name, email=email)
        if not existed:
            logger.info("Backfilled profile for %s", external_id)
        return profile, not existed

    def external_id_for(self, internal_id: int) -> str:
        return self.users.get_profile_by_internal_id(internal_id)["user_id_reg"]
