from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) not in ("0", "false", "False", "")


def _csv(name: str, default: str = "") -> Tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    app_name: str = os.environ.get("APP_NAME", "Social Feed API")
    app_version: str = os.environ.get("APP_VERSION", "0.1.0")
    api_prefix: str = os.environ.get("API_PREFIX", "/api/auth").rstrip("/")
    log_level: str = os.environ.get("LOG_LEVEL", "INFO").upper()
    metrics_enabled: bool = _flag("METRICS_ENABLED", "1")
    cors_origins: Tuple[str, ...] = _csv("CORS_ORIGINS", "*")

    # AWS
    aws_region: str = os.environ.get("AWS_REGION", "us-east-1")

    # Cognito (sign-up / sign-in / bearer verification)
    cognito_user_pool_id: str = os.environ.get("COGNITO_USER_POOL_ID", "")
    cognito_region: str = os.environ.get("COGNITO_REGION", "")
    cognito_app_client_id: str = os.environ.get("COGNITO_APP_CLIENT_ID", "")
    cognito_app_client_secret: str = os.environ.get("COGNITO_APP_CLIENT_SECRET", "")
    cognito_expected_token_use: str = os.environ.get("COGNITO_EXPECTED_TOKEN_USE", "access")

    # DynamoDB tables
    users_table_name: str = os.environ.get("USERS_TABLE_NAME", "users")
    posts_table_name: str = os.environ.get("POSTS_TABLE_NAME", "posts")
    likes_table_name: str = os.environ.get("LIKES_TABLE_NAME", "likes")
    comments_table_name: str = os.environ.get("COMMENTS_TABLE_NAME", "comments")
    counters_table_name: str = os.environ.get("COUNTERS_TABLE_NAME", "counters")

    # DynamoDB indexes
    users_id_index: str = os.environ.get("USERS_ID_INDEX", "id-index")
    posts_feed_index: str = os.environ.get("POSTS_FEED_INDEX", "feed-index")
    posts_author_index: str = os.environ.get("POSTS_AUTHOR_INDEX", "author-index")
    likes_created_index: str = os.environ.get("LIKES_CREATED_INDEX", "post-created-index")
    comments_id_index: str = os.environ.get("COMMENTS_ID_INDEX", "id-index")
    comments_author_index: str = os.environ.get("COMMENTS_AUTHOR_INDEX", "author-index")

    # S3
    post_images_bucket: str = os.environ.get("POST_IMAGES_BUCKET", "posts_images")
    user_images_bucket: str = os.environ.get("USER_IMAGES_BUCKET", "user_image")
    signed_url_ttl_seconds: int = int(os.environ.get("SIGNED_URL_TTL_SECONDS", "3600"))
    max_upload_bytes: int = int(os.environ.get("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
    upload_content_type_prefix: str = os.environ.get("UPLOAD_CONTENT_TYPE_PREFIX", "image/")
    upload_cache_control: str = os.environ.get("UPLOAD_CACHE_CONTROL", "max-age=3600")

    # SES notifications
    ses_from_email: str = os.environ.get("SES_FROM_EMAIL", "")
    notification_workers: int = int(os.environ.get("NOTIFICATION_WORKERS", "2"))
    notify_on_like: bool = _flag("NOTIFY_ON_LIKE", "0")
    notification_excerpt_chars: int = int(os.environ.get("NOTIFICATION_EXCERPT_CHARS", "100"))

    # Administrative routes (pin / unpin / raw post update)
    admin_user_subs: Tuple[str, ...] = _csv("ADMIN_USER_SUBS")

    # Paging defaults
    posts_page_size: int = int(os.environ.get("POSTS_PAGE_SIZE", "10"))
    comments_page_size: int = int(os.environ.get("COMMENTS_PAGE_SIZE", "20"))
    likers_page_size: int = int(os.environ.get("LIKERS_PAGE_SIZE", "20"))
    max_page_size: int = int(os.environ.get("MAX_PAGE_SIZE", "100"))
    trending_limit: int = int(os.environ.get("TRENDING_LIMIT", "5"))
    random_users_limit: int = int(os.environ.get("RANDOM_USERS_LIMIT", "5"))
    random_users_oversample: int = int(os.environ.get("RANDOM_USERS_OVERSAMPLE", "3"))


S = Settings()
