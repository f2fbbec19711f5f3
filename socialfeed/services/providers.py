"""FastAPI dependency providers wiring the service objects together.

Everything hangs off ``get_tables`` so tests can swap the whole store with
``app.dependency_overrides[get_tables]``.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache

from fastapi import Depends

from socialfeed.core.aws import s3_client, ses_client
from socialfeed.core.settings import S
from socialfeed.core.tables import Tables, build_tables
from socialfeed.services.cognito import cognito_email_for_sub
from socialfeed.services.comments import CommentLedger
from socialfeed.services.identity import IdentityResolver
from socialfeed.services.likes import LikeLedger
from socialfeed.services.notifications import NotificationDispatcher
from socialfeed.services.posts import PostStore
from socialfeed.services.storage import ImageStorage
from socialfeed.services.users import UserDirectory


@lru_cache(maxsize=1)
def _tables() -> Tables:
    return build_tables()


@lru_cache(maxsize=1)
def notification_executor() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=max(S.notification_workers, 1), thread_name_prefix="notify")


def shutdown_notifications() -> None:
    if notification_executor.cache_info().currsize:
        notification_executor().shutdown(wait=True)
        notification_executor.cache_clear()


def get_tables() -> Tables:
    return _tables()


def get_user_directory(tables: Tables = Depends(get_tables)) -> UserDirectory:
    return UserDirectory(tables)


def get_identity_resolver(users: UserDirectory = Depends(get_user_directory)) -> IdentityResolver:
    return IdentityResolver(users)


def get_post_store(
    tables: Tables = Depends(get_tables),
    users: UserDirectory = Depends(get_user_directory),
) -> PostStore:
    return PostStore(tables, users)


def get_notifier(users: UserDirectory = Depends(get_user_directory)) -> NotificationDispatcher:
    return NotificationDispatcher(
        users,
        cognito_email_for_sub,
        ses_client(),
        S.ses_from_email,
        notification_executor(),
        excerpt_chars=S.notification_excerpt_chars,
    )


def get_like_ledger(
    tables: Tables = Depends(get_tables),
    posts: PostStore = Depends(get_post_store),
    users: UserDirectory = Depends(get_user_directory),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> LikeLedger:
    return LikeLedger(tables, posts, users, notifier, notify_on_like=S.notify_on_like)


def get_comment_ledger(
    tables: Tables = Depends(get_tables),
    posts: PostStore = Depends(get_post_store),
    users: UserDirectory = Depends(get_user_directory),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> CommentLedger:
    return CommentLedger(tables, posts, users, notifier)


def get_storage() -> ImageStorage:
    return ImageStorage(s3_client(), S)
