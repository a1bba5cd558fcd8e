from fastapi import APIRouter, Depends
from supabase import Client, PostgrestAPIError
import structlog

from xanime_api.core.dependencies import CurrentUser, get_current_user
from xanime_api.core.exceptions import UpstreamError, ValidationError, upstream_error
from xanime_api.core.supabase import execute, get_supabase
from xanime_api.models.dto import (
    CreateVideoFileRequest,
    VideoFileCreateResponse,
    VideoFileSummary,
)
from xanime_api.services.ownership import require_episode_owner
from xanime_api.services.videos import episode_video_row

router = APIRouter()
logger = structlog.get_logger()

EPISODE_COLUMNS = (
    "id, season_id, title_raw, title_clean, description, tags, thumbnail_url, duration_sec, created_at"
)


@router.post("", response_model=VideoFileCreateResponse)
async def create_video_file(
    request: CreateVideoFileRequest,
    user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_supabase),
):
    """
    エピソードに動画ファイルを登録し、videos テーブルへ同期

    - 成人向け・モザイク確認・転載禁止の3項目すべての同意が必要
    - videos への同期に失敗した場合は登録した動画ファイルを取り消す
    """
    if not (request.no_repost and request.mosaic_confirmed and request.is_adult):
        raise ValidationError("必須のチェック項目を満たしていません。")

    episode, season = await require_episode_owner(
        client, request.episode_id, user.id, columns=EPISODE_COLUMNS
    )

    try:
        response = await execute(
            client.table("video_files").insert(
                {
                    "episode_id": request.episode_id,
                    "owner_id": user.id,
                    "file_path": request.file_path,
                    "public_url": request.public_url,
                    "thumbnail_url": request.thumbnail_url,
                    "width": request.width,
                    "height": request.height,
                    "duration_sec": request.duration_sec,
                    "is_adult": request.is_adult,
                    "mosaic_confirmed": request.mosaic_confirmed,
                    "no_repost": request.no_repost,
                    "visibility": request.visibility.value,
                    "status": request.status.value,
                }
            )
        )
    except PostgrestAPIError as e:
        raise upstream_error(e, "動画ファイルの登録に失敗しました。")

    rows = response.data or []
    if not rows:
        raise UpstreamError("動画ファイルの登録に失敗しました。")
    video_file = rows[0]

    row = episode_video_row(episode, season["series_id"], user.id, request)
    try:
        await execute(client.table("videos").upsert(row, on_conflict="id"))
    except PostgrestAPIError as sync_error:
        try:
            await execute(client.table("video_files").delete().eq("id", video_file["id"]))
        except PostgrestAPIError as e:
            logger.error(
                "Rollback of video file failed",
                video_file_id=str(video_file["id"]),
                error=str(e),
            )
        raise upstream_error(sync_error, "動画情報の同期に失敗しました。")

    return VideoFileCreateResponse(
        video_file=VideoFileSummary(
            id=str(video_file["id"]),
            public_url=video_file.get("public_url", request.public_url),
        )
    )
