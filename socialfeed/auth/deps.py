from __future__ import annotations

import base64
import json
from functools import lru_cache
from typing import Any, Dict, Optional

import jwt
import requests
from fastapi import Depends, HTTPException, Request

from socialfeed.core.settings import S
from socialfeed.services.cognito import cognito_enabled, cognito_get_user

_MALFORMED = "Authorization header missing or malformed"


def _cognito_issuer() -> str:
    return "https://cognito-idp.{}.amazonaws.com/{}".format(
        S.cognito_region or S.aws_region, S.cognito_user_pool_id
    )


@lru_cache(maxsize=1)
def _cognito_jwks() -> Dict[str, Any]:
    resp = requests.get(_cognito_issuer() + "/.well-known/jwks.json", timeout=10)
    resp.raise_for_status()
    return resp.json()


def _signing_key(token: str):
    """Public key for the token's ``kid`` from the pool's JWKS document."""
    try:
        kid = jwt.get_unverified_header(token).get("kid", "")
    except jwt.PyJWTError as exc:
        raise HTTPException(401, "Invalid token header") from exc
    jwk = next((k for k in _cognito_jwks().get("keys", []) if k.get("kid") == kid), None)
    if jwk is None:
        raise HTTPException(401, "Unknown Cognito key id")
    return jwt.algorithms.RSAAlgorithm.from_jwk(json.dumps(jwk))


def _decode_cognito_token(token: str) -> Dict[str, Any]:
    public_key = _signing_key(token)
    id_tokens = S.cognito_expected_token_use == "id"
    try:
        # Access tokens carry client_id instead of aud.
        claims = jwt.decode(
            token,
            public_key,
            algorithms=["RS256"],
            issuer=_cognito_issuer(),
            audience=S.cognito_app_client_id if id_tokens else None,
            options={} if id_tokens else {"verify_aud": False},
        )
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(401, "Token expired") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(401, "Invalid token") from exc

    use = claims.get("token_use")
    if S.cognito_expected_token_use and use != S.cognito_expected_token_use:
        raise HTTPException(401, "Unexpected token use")
    if use == "access" and claims.get("client_id") != S.cognito_app_client_id:
        raise HTTPException(401, "Token issued for another client")
    return claims


def _decode_jwt_claims(token: str) -> Optional[Dict[str, Any]]:
    """Unverified JWT body, or None when ``token`` is not a JWT."""
    parts = token.split(".")
    if len(parts) != 3 or not parts[1]:
        return None
    body = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(body).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    return claims if isinstance(claims, dict) else None


def _decode_jwt_sub(token: str) -> Optional[str]:
    sub = (_decode_jwt_claims(token) or {}).get("sub")
    if isinstance(sub, str) and sub.strip():
        return sub
    return None


def extract_bearer_token(auth_header: Optional[str]) -> str:
    scheme, _, token = (auth_header or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(401, _MALFORMED)
    return token.strip()


def bearer_token(request: Request) -> str:
    return extract_bearer_token(request.headers.get("authorization"))


async def get_authenticated_user_sub(request: Request) -> str:
    """
    Verify the bearer token against the Cognito pool and return its subject.

    Local dev (no pool configured): Authorization: Bearer <jwt-with-sub | user_sub>
    """
    token = bearer_token(request)
    if cognito_enabled():
        payload = _decode_cognito_token(token)
        user_sub = payload.get("sub") or payload.get("username") or payload.get("cognito:username")
        if not user_sub:
            raise HTTPException(401, "Token missing subject")
        return str(user_sub)
    return _decode_jwt_sub(token) or token


def resolve_auth_user(token: str) -> Dict[str, Any]:
    """Return the auth provider's view of the token's user (id + email)."""
    if cognito_enabled():
        return cognito_get_user(token)
    claims = _decode_jwt_claims(token) or {}
    return {
        "id": _decode_jwt_sub(token) or token,
        "username": claims.get("username"),
        "email": claims.get("email"),
        "email_verified": bool(claims.get("email_verified")),
    }


def require_admin(user_sub: str = Depends(get_authenticated_user_sub)) -> str:
    if user_sub not in S.admin_user_subs:
        raise HTTPException(403, "Administrator privileges required")
    return user_sub
