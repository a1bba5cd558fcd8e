"""
Ownership checks along the video → episode → season → series → owner chain.
"""
from typing import Optional

from supabase import Client, PostgrestAPIError

from xanime_api.core.exceptions import AuthorizationError, NotFoundError, upstream_error
from xanime_api.core.supabase import fetch_one
from xanime_api.services.series import OWNER_COLUMNS, SERIES_TABLE


def series_owner(series: dict) -> Optional[str]:
    """Owner id from whichever owner column the deployment uses"""
    for column in OWNER_COLUMNS:
        value = series.get(column)
        if value:
            return str(value)
    return None


async def _fetch(client: Client, table: str, columns: str, column: str, value: str) -> Optional[dict]:
    try:
        return await fetch_one(client.table(table).select(columns).eq(column, value))
    except PostgrestAPIError as e:
        raise upstream_error(e, "データの取得に失敗しました。")


async def require_series_owner(
    client: Client,
    series_id: str,
    user_id: str,
    message: str = "シリーズへのアクセス権限がありません。",
) -> dict:
    series = await _fetch(client, SERIES_TABLE, "*", "id", series_id)
    if not series or series_owner(series) != user_id:
        raise AuthorizationError(message)
    return series


async def require_season_owner(
    client: Client,
    season_id: str,
    user_id: str,
    message: str = "シーズンへのアクセス権限がありません。",
) -> tuple[dict, dict]:
    """Returns (season, series)"""
    season = await _fetch(client, "seasons", "id, series_id, slug", "id", season_id)
    if not season:
        raise NotFoundError("シーズンが見つかりません。", season_id)

    series = await require_series_owner(client, season["series_id"], user_id, message)
    return season, series


async def require_episode_owner(
    client: Client,
    episode_id: str,
    user_id: str,
    columns: str = "id, season_id",
    message: str = "エピソードへのアクセス権限がありません。",
) -> tuple[dict, dict]:
    """Returns (episode, season)"""
    if "season_id" not in columns:
        columns = f"{columns}, season_id"
    episode = await _fetch(client, "episodes", columns, "id", episode_id)
    if not episode:
        raise NotFoundError("エピソードが見つかりません。", episode_id)

    season, _ = await require_season_owner(client, episode["season_id"], user_id, message)
    return episode, season


async def require_video_owner(
    client: Client,
    video_id: str,
    user_id: str,
    columns: str = "id, owner_id",
    message: str = "この動画を操作する権限がありません。",
) -> dict:
    if "owner_id" not in columns:
        columns = f"{columns}, owner_id"
    video = await _fetch(client, "videos", columns, "id", video_id)
    if not video:
        raise NotFoundError("動画が見つかりません。", video_id)

    if str(video.get("owner_id")) != user_id:
        raise AuthorizationError(message)
    return video
