from __future__ import annotations

from functools import lru_cache

import boto3

from .settings import S


@lru_cache(maxsize=1)
def aws_session() -> boto3.session.Session:
    return boto3.session.Session(region_name=S.aws_region or "us-east-1")


@lru_cache(maxsize=1)
def dynamodb():
    return aws_session().resource("dynamodb")


@lru_cache(maxsize=1)
def s3_client():
    return aws_session().client("s3")


@lru_cache(maxsize=1)
def ses_client():
    # SES is optional; notifications are dropped (and logged) without a sender.
    if not S.ses_from_email:
        return None
    return aws_session().client("ses")


@lru_cache(maxsize=1)
def cognito_idp():
    return boto3.client("cognito-idp", region_name=S.cognito_region or S.aws_region)
