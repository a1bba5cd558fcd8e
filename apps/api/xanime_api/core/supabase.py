"""Supabase client construction and helpers for running SDK calls from async code."""

from functools import lru_cache
from typing import Any, Optional

from starlette.concurrency import run_in_threadpool
from supabase import Client, create_client

from xanime_api.core.config import settings
from xanime_api.core.exceptions import ConfigurationError


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise ConfigurationError(f"Supabase のサーバー用環境変数が不足しています: {name}")
    return value


@lru_cache(maxsize=1)
def _service_role_client() -> Client:
    return create_client(
        _require(settings.supabase_url, "SUPABASE_URL"),
        _require(settings.supabase_service_role, "SUPABASE_SERVICE_ROLE"),
    )


@lru_cache(maxsize=1)
def _anon_client() -> Client:
    return create_client(
        _require(settings.supabase_url, "SUPABASE_URL"),
        _require(settings.supabase_anon_key, "SUPABASE_ANON_KEY"),
    )


# Dependencies
def get_supabase() -> Client:
    """Service-role client used for every table and storage call"""
    return _service_role_client()


def get_auth_client() -> Client:
    """Anon-key client used only to resolve bearer tokens"""
    return _anon_client()


async def execute(query) -> Any:
    """Run a PostgREST request builder without blocking the event loop"""
    return await run_in_threadpool(query.execute)


async def fetch_one(query) -> Optional[dict]:
    """First row of a select, or None"""
    response = await execute(query.limit(1))
    rows = response.data or []
    return rows[0] if rows else None
