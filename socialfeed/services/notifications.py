from __future__ import annotations

import html
import logging
from concurrent.futures import Executor
from typing import Any, Callable, Dict, Optional

from socialfeed.metrics import record_notification
from socialfeed.services.users import UserDirectory

logger = logging.getLogger(__name__)

EmailLookup = Callable[[str], Optional[str]]


def excerpt(text: Optional[str], limit: int) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _email_message(subject: str, text_body: str) -> Dict[str, Any]:
    html_body = "<p>" + html.escape(text_body).replace("\n\n", "</p><p>").replace("\n", "<br>") + "</p>"
    return {
        "Subject": {"Data": subject, "Charset": "UTF-8"},
        "Body": {
            "Text": {"Data": text_body, "Charset": "UTF-8"},
            "Html": {"Data": html_body, "Charset": "UTF-8"},
        },
    }


class NotificationDispatcher:
    """Best-effort emails to post owners.

    Work is handed to ``executor`` so the request that triggered it never
    waits on SES, and delivery failures are only logged.
    """

    def __init__(
        self,
        users: UserDirectory,
        email_lookup: EmailLookup,
        ses,
        sender: str,
        executor: Executor,
        excerpt_chars: int = 100,
    ) -> None:
        self.users = users
        self.email_lookup = email_lookup
        self.ses = ses
        self.sender = sender
        self.executor = executor
        self.excerpt_chars = excerpt_chars

    def notify_comment(self, owner_id: int, commenter_id: int, comment_text: str, post_description: str) -> bool:
        if int(owner_id) == int(commenter_id):
            return False
        self.executor.submit(self._deliver, "comment", owner_id, commenter_id, comment_text, post_description)
        return True

    def notify_like(self, owner_id: int, liker_id: int, post_description: str) -> bool:
        if int(owner_id) == int(liker_id):
            return False
        self.executor.submit(self._deliver, "like", owner_id, liker_id, None, post_description)
        return True

    def _owner_email(self, owner: Dict[str, Any]) -> Optional[str]:
        if owner.get("email"):
            return owner["email"]
        return self.email_lookup(owner["user_id_reg"])

    def compose(self, kind: str, actor_name: str, comment_text: Optional[str], post_description: str) -> Dict[str, Any]:
        snippet = excerpt(post_description, self.excerpt_chars)
        if kind == "comment":
            subject = f"{actor_name} commented on your post"
            body = f'{actor_name} commented on your post "{snippet}":\n\n{comment_text}'
        else:
            subject = f"{actor_name} liked your post"
            body = f'{actor_name} liked your post "{snippet}".'
        return _email_message(subject, body)

    def _deliver(
        self,
        kind: str,
        owner_id: int,
        actor_id: int,
        comment_text: Optional[str],
        post_description: str,
    ) -> None:
        try:
            if self.ses is None or not self.sender:
                logger.warning("SES sender not configured, dropping %s notification for user id=%s", kind, owner_id)
                record_notification(kind, "skipped")
                return
            owner = self.users.find_profile_by_internal_id(owner_id)
            if not owner:
                logger.warning("Post owner id=%s has no profile, %s notification dropped", owner_id, kind)
                record_notification(kind, "skipped")
                return
            to_addr = self._owner_email(owner)
            if not to_addr:
                logger.warning("No email on record for user id=%s, %s notification dropped", owner_id, kind)
                record_notification(kind, "skipped")
                return
            actor = self.users.find_profile_by_internal_id(actor_id) or {}
            actor_name = actor.get("display_name") or "Someone"
            self.ses.send_email(
                Source=self.sender,
                Destination={"ToAddresses": [to_addr]},
                Message=self.compose(kind, actor_name, comment_text, post_description),
            )
        except Exception:
            logger.exception("Failed to send %s notification to user id=%s", kind, owner_id)
            record_notification(kind, "failed")
            return
        logger.info("Sent %s notification to user id=%s", kind, owner_id)
        record_notification(kind, "sent")
