"""Common FastAPI dependencies."""
import re
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Depends, Header
from starlette.concurrency import run_in_threadpool
from supabase import AuthError, Client

from xanime_api.core.exceptions import AuthenticationError
from xanime_api.core.supabase import get_auth_client

logger = structlog.get_logger()

_BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)


@dataclass
class CurrentUser:
    id: str
    email: Optional[str] = None


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token part of an ``Authorization: Bearer <token>`` header"""
    if not authorization:
        return None
    token = _BEARER_PREFIX.sub("", authorization).strip()
    return token or None


async def resolve_user(client: Client, authorization: Optional[str]) -> Optional[CurrentUser]:
    token = parse_bearer_token(authorization)
    if not token:
        return None

    try:
        response = await run_in_threadpool(client.auth.get_user, token)
    except AuthError as e:
        logger.warning("Bearer token rejected", error=str(e))
        return None

    user = getattr(response, "user", None)
    if user is None:
        return None
    return CurrentUser(id=str(user.id), email=getattr(user, "email", None))


async def get_current_user(
    authorization: Optional[str] = Header(None, description="Bearer <access token>"),
    client: Client = Depends(get_auth_client),
) -> CurrentUser:
    """
    Resolve the caller from the bearer token.

    Raises:
        AuthenticationError: If the header is missing or the token is rejected
    """
    if not authorization:
        logger.warning("Missing Authorization header")
        raise AuthenticationError()

    user = await resolve_user(client, authorization)
    if user is None:
        raise AuthenticationError()
    return user


async def get_optional_user(
    authorization: Optional[str] = Header(None, description="Bearer <access token>"),
    client: Client = Depends(get_auth_client),
) -> Optional[CurrentUser]:
    """Same as get_current_user but anonymous callers get None"""
    if not authorization:
        return None
    return await resolve_user(client, authorization)
