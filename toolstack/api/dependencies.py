"""
ToolStack API Dependencies
==========================

FastAPI dependencies: the service factory stored on the app, bearer
JWT authentication for chat callers and the shared sync token.
"""

import hmac
import logging
from typing import Any, Dict, Optional

import jwt
from fastapi import Header, Request

from ..errors import UnauthenticatedError
from ..factory import ServiceFactory

logger = logging.getLogger(__name__)


def get_factory(request: Request) -> ServiceFactory:
    return request.app.state.factory


def decode_token(token: str, secret: str, algorithm: str = "HS256", audience: Optional[str] = None) -> Dict[str, Any]:
    """
    Verify a bearer token and return its claims.

    Raises:
        UnauthenticatedError: bad signature, expired, wrong audience or no subject
    """
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            audience=audience,
            options={"verify_aud": audience is not None},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise UnauthenticatedError("The function must be called while authenticated.")

    if not claims.get("sub"):
        raise UnauthenticatedError("Token has no subject")
    return claims


def require_user(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Dict[str, Any]:
    """Claims of the authenticated caller."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise UnauthenticatedError("The function must be called while authenticated.")

    auth = get_factory(request).settings.auth
    if not auth.jwt_secret:
        logger.error("AUTH_JWT_SECRET is not configured, rejecting chat caller")
        raise UnauthenticatedError("The function must be called while authenticated.")

    token = authorization.split(" ", 1)[1].strip()
    return decode_token(token, auth.jwt_secret, auth.jwt_algorithm, auth.jwt_audience)


def verify_sync_token(
    request: Request,
    x_sync_token: Optional[str] = Header(None, alias="X-Sync-Token"),
) -> None:
    """Checks X-Sync-Token when SYNC_API_TOKEN is configured."""
    expected = get_factory(request).settings.auth.sync_token
    if not expected:
        return
    if not x_sync_token or not hmac.compare_digest(x_sync_token, expected):
        raise UnauthenticatedError("Invalid or missing sync token")
