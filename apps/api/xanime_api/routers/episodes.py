from fastapi import APIRouter, Depends
from supabase import Client, PostgrestAPIError
import structlog

from xanime_api.core.dependencies import CurrentUser, get_current_user
from xanime_api.core.exceptions import UpstreamError, ValidationError, upstream_error
from xanime_api.core.supabase import execute, fetch_one, get_supabase
from xanime_api.models.dto import (
    CreateEpisodeRequest,
    EpisodeCreateResponse,
    EpisodeSummary,
    MessageResponse,
)
from xanime_api.services.ownership import require_episode_owner, require_season_owner
from xanime_api.services.slug import (
    generate_episode_number_str,
    generate_episode_slug,
    generate_slug,
    normalize_title,
)
from xanime_api.services.storage import collect_object_paths, remove_objects

router = APIRouter()
logger = structlog.get_logger()


@router.post("", response_model=EpisodeCreateResponse)
async def create_episode(
    request: CreateEpisodeRequest,
    user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_supabase),
):
    """
    シーズンにエピソードを追加

    - シーズン → シリーズの所有者のみ
    - title_clean / episode_number_str / slug は省略時に自動生成
    """
    season, _ = await require_season_owner(client, request.season_id, user.id)

    episode_type = request.episode_type.value
    title_clean = (
        (request.title_clean or "").strip()
        or normalize_title(request.title_raw)
        or request.title_raw.strip()
    )
    number_str = request.episode_number_str or generate_episode_number_str(
        request.episode_number_int, episode_type
    )

    slug = generate_slug(request.slug or "")
    if not slug:
        season_slug = season.get("slug")
        if not season_slug:
            raise ValidationError("エピソードスラッグを指定してください。")
        slug = generate_episode_slug(season_slug, request.episode_number_int, episode_type)

    payload = {
        "season_id": request.season_id,
        "episode_number_int": request.episode_number_int,
        "episode_number_str": number_str,
        "episode_type": episode_type,
        "title_raw": request.title_raw,
        "title_clean": title_clean,
        "slug": slug,
        "description": request.description,
        "release_date": request.release_date.isoformat() if request.release_date else None,
        "duration_sec": request.duration_sec,
        "tags": request.tags,
        "thumbnail_url": request.thumbnail_url,
    }

    try:
        response = await execute(client.table("episodes").insert(payload))
    except PostgrestAPIError as e:
        raise upstream_error(e, "エピソードの作成に失敗しました。")

    rows = response.data or []
    if not rows:
        raise UpstreamError("エピソードの作成に失敗しました。")

    row = rows[0]
    return EpisodeCreateResponse(
        episode=EpisodeSummary(
            id=str(row["id"]),
            title_clean=row.get("title_clean", title_clean),
            slug=row.get("slug", slug),
            episode_number_int=row.get("episode_number_int", request.episode_number_int),
            episode_number_str=row.get("episode_number_str", number_str),
        )
    )


@router.delete("/{episode_id}", response_model=MessageResponse)
async def delete_episode(
    episode_id: str,
    user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_supabase),
):
    """
    エピソード削除

    - 動画ファイルとサムネイルをストレージから削除してから行を削除
    """
    episode, _ = await require_episode_owner(
        client,
        episode_id,
        user.id,
        columns="id, season_id, thumbnail_url",
        message="エピソードを削除する権限がありません。",
    )

    try:
        video_file = await fetch_one(
            client.table("video_files").select("file_path, thumbnail_url").eq("episode_id", episode_id)
        ) or {}
    except PostgrestAPIError as e:
        raise upstream_error(e, "エピソードの削除に失敗しました。")

    paths = collect_object_paths(
        [video_file.get("file_path")],
        [episode.get("thumbnail_url"), video_file.get("thumbnail_url")],
    )
    await remove_objects(client, paths)

    try:
        await execute(client.table("episodes").delete().eq("id", episode_id))
    except PostgrestAPIError as e:
        raise upstream_error(e, "エピソードの削除に失敗しました。")

    logger.info("Episode deleted", episode_id=episode_id, removed_objects=len(paths))
    return MessageResponse(message="エピソードを削除しました。")
