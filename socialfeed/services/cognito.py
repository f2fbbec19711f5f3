from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError
from fastapi import HTTPException

from socialfeed.core.aws import cognito_idp
from socialfeed.core.settings import S

logger = logging.getLogger(__name__)

_SIGNUP_CLIENT_ERRORS = {
    "UsernameExistsException",
    "InvalidPasswordException",
    "InvalidParameterException",
    "CodeDeliveryFailureException",
}
_SIGNIN_CLIENT_ERRORS = {
    "NotAuthorizedException",
    "UserNotFoundException",
    "UserNotConfirmedException",
    "PasswordResetRequiredException",
}


def cognito_enabled() -> bool:
    return bool(S.cognito_user_pool_id and S.cognito_app_client_id)


def _cognito_client_id() -> str:
    if not S.cognito_app_client_id:
        raise HTTPException(500, "Cognito app client id not configured")
    return S.cognito_app_client_id


def _secret_hash(username: str) -> Optional[str]:
    if not S.cognito_app_client_secret:
        return None
    digest = hmac.new(
        S.cognito_app_client_secret.encode("utf-8"),
        (username + _cognito_client_id()).encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def _error_message(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Message", "Auth provider error")


def _attributes(raw) -> Dict[str, str]:
    return {a["Name"]: a["Value"] for a in raw or []}


def cognito_sign_up(email: str, password: str) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = dict(
        ClientId=_cognito_client_id(),
        Username=email,
        Password=password,
        UserAttributes=[{"Name": "email", "Value": email}],
    )
    secret_hash = _secret_hash(email)
    if secret_hash:
        kwargs["SecretHash"] = secret_hash
    try:
        resp = cognito_idp().sign_up(**kwargs)
    except ClientError as exc:
        if _error_code(exc) in _SIGNUP_CLIENT_ERRORS:
            raise HTTPException(400, _error_message(exc)) from exc
        raise
    return {
        "user_sub": resp["UserSub"],
        "user_confirmed": bool(resp.get("UserConfirmed")),
        "email": email,
    }


def cognito_sign_in(email: str, password: str) -> Dict[str, Any]:
    params = {"USERNAME": email, "PASSWORD": password}
    secret_hash = _secret_hash(email)
    if secret_hash:
        params["SECRET_HASH"] = secret_hash
    try:
        resp = cognito_idp().initiate_auth(
            ClientId=_cognito_client_id(),
            AuthFlow="USER_PASSWORD_AUTH",
            AuthParameters=params,
        )
    except ClientError as exc:
        if _error_code(exc) in _SIGNIN_CLIENT_ERRORS:
            logger.info("Sign-in rejected for %s: %s", email, _error_code(exc))
            raise HTTPException(401, "Invalid credentials") from exc
        raise
    result = resp.get("AuthenticationResult")
    if not result:
        # A challenge (MFA, new password) is pending; this API only does password sign-in.
        raise HTTPException(401, f"Additional challenge required: {resp.get('ChallengeName', 'unknown')}")
    return {
        "access_token": result["AccessToken"],
        "id_token": result.get("IdToken"),
        "refresh_token": result.get("RefreshToken"),
        "expires_in": result.get("ExpiresIn"),
        "token_type": result.get("TokenType", "Bearer"),
    }


def cognito_get_user(access_token: str) -> Dict[str, Any]:
    try:
        resp = cognito_idp().get_user(AccessToken=access_token)
    except ClientError as exc:
        if _error_code(exc) in ("NotAuthorizedException", "UserNotFoundException"):
            raise HTTPException(401, "Invalid or expired token") from exc
        raise
    attrs = _attributes(resp.get("UserAttributes"))
    return {
        "id": attrs.get("sub") or resp.get("Username"),
        "username": resp.get("Username"),
        "email": attrs.get("email"),
        "email_verified": attrs.get("email_verified") == "true",
    }


def cognito_email_for_sub(user_sub: str) -> Optional[str]:
    if not S.cognito_user_pool_id:
        return None
    resp = cognito_idp().list_users(
        UserPoolId=S.cognito_user_pool_id,
        Filter=f'sub = "{user_sub}"',
        Limit=1,
    )
    users = resp.get("Users", [])
    if not users:
        return None
    return _attributes(users[0].get("Attributes")).get("email")
