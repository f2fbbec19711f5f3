from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from socialfeed.auth.deps import bearer_token, resolve_auth_user
from socialfeed.core.normalize import email_local_part, normalize_email
from socialfeed.metrics import PROFILES_BACKFILLED, SIGNUPS
from socialfeed.models import SigninReq, SignupReq
from socialfeed.services.cognito import cognito_sign_in, cognito_sign_up
from socialfeed.services.identity import IdentityResolver
from socialfeed.services.providers import get_identity_resolver, get_user_directory
from socialfeed.services.users import UserDirectory, public_profile

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _require_credentials(email, password) -> str:
    if not email or not password:
        raise HTTPException(400, "Email and password are required")
    return normalize_email(email)


def _backfill(identity: IdentityResolver, external_id: str, display_name: str, email=None):
    """Create the caller's profile if missing. Failures are logged, never raised."""
    try:
        profile, created = identity.resolve_or_create(external_id, display_name, email=email)
    except HTTPException as exc:
        logger.error("Could not create profile for %s: %s", external_id, exc.detail)
        return None
    if created:
        PROFILES_BACKFILLED.inc()
    return profile


@router.post("/signup", status_code=201)
async def signup(body: SignupReq, identity: IdentityResolver = Depends(get_identity_resolver)):
    email = _require_credentials(body.email, body.password)
    account = cognito_sign_up(email, body.password)
    SIGNUPS.inc()
    display_name = (body.display_name or "").strip() or email_local_part(email)
    profile = _backfill(identity, account["user_sub"], display_name, email=email)
    return {
        "success": True,
        "message": "User created successfully",
        "data": {"user": account, "profile": profile},
    }


@router.post("/signin")
async def signin(body: SigninReq, identity: IdentityResolver = Depends(get_identity_resolver)):
    email = _require_credentials(body.email, body.password)
    session = cognito_sign_in(email, body.password)
    try:
        auth_user = resolve_auth_user(session["access_token"])
    except HTTPException as exc:
        logger.warning("Signed in but could not read user for %s: %s", email, exc.detail)
        auth_user = None
    if auth_user:
        _backfill(identity, auth_user["id"], email_local_part(email), email=email)
    return {
        "success": True,
        "message": "Sign in successful",
        "data": {"session": session, "user": auth_user},
    }


@router.get("/user")
async def current_user(
    request: Request,
    identity: IdentityResolver = Depends(get_identity_resolver),
    users: UserDirectory = Depends(get_user_directory),
):
    token = bearer_token(request)
    auth_user = resolve_auth_user(token)
    email = auth_user.get("email")
    if not users.profile_exists(auth_user["id"]):
        logger.info("No profile for %s, creating it now", auth_user["id"])
        _backfill(identity, auth_user["id"], email_local_part(email), email=email)
    profile = public_profile(users.find_profile(auth_user["id"], consistent=True))
    return {"success": True, "user": dict(auth_user, user_data=profile)}
