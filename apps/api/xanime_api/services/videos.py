"""
Video feed rows: likes, view counts and the episode → videos sync.
"""
from datetime import datetime, timezone
from typing import Optional

import structlog
from supabase import Client, PostgrestAPIError

from xanime_api.core.exceptions import NotFoundError, upstream_error
from xanime_api.core.supabase import execute, fetch_one
from xanime_api.models.dto import CreateVideoFileRequest, LikeToggleResponse

logger = structlog.get_logger()


def utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def episode_title(episode: dict) -> str:
    clean = (episode.get("title_clean") or "").strip()
    return clean or (episode.get("title_raw") or "").strip()


def tags_csv(tags) -> Optional[str]:
    if not isinstance(tags, list):
        return None
    cleaned = [tag.strip() for tag in tags if isinstance(tag, str) and tag.strip()]
    return ",".join(cleaned) if cleaned else None


def episode_video_row(
    episode: dict,
    series_id: str,
    owner_id: str,
    request: CreateVideoFileRequest,
    now: Optional[datetime] = None,
) -> dict:
    """
    Denormalised ``videos`` row for an episode that just got its video file.

    The row shares the episode's id so feeds keyed on videos resolve to the
    episode.
    """
    now_iso = (now or utcnow()).isoformat()
    created_at = episode.get("created_at") or now_iso

    return {
        "id": episode["id"],
        "owner_id": owner_id,
        "series_id": series_id,
        "title": episode_title(episode),
        "description": episode.get("description"),
        "tags": tags_csv(episode.get("tags")),
        "is_adult": request.is_adult,
        "mosaic_confirmed": request.mosaic_confirmed,
        "no_repost": request.no_repost,
        "visibility": request.visibility.value,
        "status": request.status.value,
        "file_path": request.file_path,
        "public_url": request.public_url,
        "duration_sec": request.duration_sec if request.duration_sec is not None else episode.get("duration_sec"),
        "width": request.width,
        "height": request.height,
        "thumbnail_url": request.thumbnail_url or episode.get("thumbnail_url"),
        "created_at": created_at,
        "updated_at": now_iso,
        "published_at": created_at,
    }


async def count_likes(client: Client, video_id: str) -> int:
    response = await execute(
        client.table("likes").select("video_id", count="exact").eq("video_id", video_id)
    )
    return response.count or 0


async def toggle_like(client: Client, video_id: str, user_id: str) -> LikeToggleResponse:
    """Like the video, or remove the like if the caller already liked it"""
    try:
        existing = await fetch_one(
            client.table("likes").select("user_id").eq("user_id", user_id).eq("video_id", video_id)
        )
        if existing:
            await execute(
                client.table("likes").delete().eq("user_id", user_id).eq("video_id", video_id)
            )
        else:
            await execute(client.table("likes").insert({"user_id": user_id, "video_id": video_id}))

        like_count = await count_likes(client, video_id)
        await execute(
            client.table("videos")
            .update({"like_count": like_count, "updated_at": utcnow().isoformat()})
            .eq("id", video_id)
        )
    except PostgrestAPIError as e:
        raise upstream_error(e, "いいねに失敗しました。")

    liked = not existing
    logger.info("Like toggled", video_id=video_id, liked=liked, like_count=like_count)
    return LikeToggleResponse(liked=liked, like_count=like_count)


async def record_view(client: Client, video_id: str) -> int:
    """Increment the view counter and mirror it onto the episode's video file"""
    try:
        video = await fetch_one(client.table("videos").select("view_count").eq("id", video_id))
    except PostgrestAPIError as e:
        raise upstream_error(e, "動画が見つかりません。")
    if not video:
        raise NotFoundError("動画が見つかりません。", video_id)

    next_count = (video.get("view_count") or 0) + 1
    now_iso = utcnow().isoformat()

    try:
        response = await execute(
            client.table("videos")
            .update({"view_count": next_count, "updated_at": now_iso})
            .eq("id", video_id)
        )
    except PostgrestAPIError as e:
        raise upstream_error(e, "再生数の更新に失敗しました。")

    rows = response.data or []
    synced_count = rows[0].get("view_count", next_count) if rows else next_count

    try:
        await execute(
            client.table("video_files")
            .update({"view_count": synced_count, "updated_at": now_iso})
            .eq("episode_id", video_id)
        )
    except PostgrestAPIError as e:
        # Counter on videos is authoritative
        logger.warning("video_files view count sync failed", video_id=video_id, error=str(e))

    return synced_count
