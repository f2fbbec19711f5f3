from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .aws import dynamodb
from .settings import S


@dataclass(frozen=True)
class Tables:
    users: Any
    posts: Any
    likes: Any
    comments: Any
    counters: Any


def build_tables() -> Tables:
    ddb = dynamodb()
    return Tables(
        users=ddb.Table(S.users_table_name),
        posts=ddb.Table(S.posts_table_name),
        likes=ddb.Table(S.likes_table_name),
        comments=ddb.Table(S.comments_table_name),
        counters=ddb.Table(S.counters_table_name),
    )
