from fastapi import APIRouter, Depends
from supabase import Client, PostgrestAPIError
import structlog

from xanime_api.core.dependencies import CurrentUser, get_current_user
from xanime_api.core.exceptions import UpstreamError, ValidationError, upstream_error
from xanime_api.core.supabase import execute, get_supabase
from xanime_api.models.dto import (
    CreateVideoRequest,
    LikeToggleResponse,
    MessageResponse,
    UpdateVideoRequest,
    UploadType,
    VideoCreateResponse,
    VideoRef,
    ViewCountResponse,
)
from xanime_api.services.ownership import require_series_owner, require_video_owner
from xanime_api.services.storage import collect_object_paths, remove_objects
from xanime_api.services.videos import record_view, toggle_like, utcnow

router = APIRouter()
logger = structlog.get_logger()


@router.post("", response_model=VideoCreateResponse)
async def create_video(
    request: CreateVideoRequest,
    user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_supabase),
):
    """
    アップロード済みファイルを動画として公開
    """
    if not (request.no_repost and request.mosaic_confirmed and request.is_adult):
        raise ValidationError("必須のチェック項目を満たしていません。")

    if request.type == UploadType.existing_series and not request.series_id:
        raise ValidationError("シリーズを選択してください。")

    if request.series_id:
        await require_series_owner(client, request.series_id, user.id)

    payload = {
        "owner_id": user.id,
        "series_id": request.series_id,
        "title": request.title,
        "description": request.description,
        "tags": request.tags,
        "file_path": request.file_path,
        "public_url": request.public_url,
        "thumbnail_url": request.thumbnail_url,
        "mosaic_confirmed": request.mosaic_confirmed,
        "no_repost": request.no_repost,
        "is_adult": request.is_adult,
        "status": "PUBLISHED",
        "visibility": "PUBLIC",
    }

    try:
        response = await execute(client.table("videos").insert(payload))
    except PostgrestAPIError as e:
        raise upstream_error(e, "動画の登録に失敗しました。")

    rows = response.data or []
    if not rows:
        raise UpstreamError("動画の登録に失敗しました。")

    return VideoCreateResponse(video=VideoRef(id=str(rows[0]["id"])))


@router.patch("/{video_id}", response_model=MessageResponse)
async def update_video(
    video_id: str,
    request: UpdateVideoRequest,
    user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_supabase),
):
    """
    動画情報の更新 (所有者のみ)
    """
    updates = request.model_dump(exclude_none=True, mode="json")
    if "title" in updates and not updates["title"].strip():
        raise ValidationError("タイトルを入力してください。")
    if not updates:
        raise ValidationError("更新する項目がありません。")

    await require_video_owner(
        client, video_id, user.id, message="この動画を編集する権限がありません。"
    )

    updates["updated_at"] = utcnow().isoformat()
    try:
        await execute(client.table("videos").update(updates).eq("id", video_id))
    except PostgrestAPIError as e:
        raise upstream_error(e, "動画の更新に失敗しました。")

    logger.info("Video updated", video_id=video_id, fields=sorted(updates))
    return MessageResponse(message="動画を更新しました。")


@router.delete("/{video_id}", response_model=MessageResponse)
async def delete_video(
    video_id: str,
    user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_supabase),
):
    """
    動画削除

    - ストレージ上の動画ファイルとサムネイルも削除
    """
    video = await require_video_owner(
        client,
        video_id,
        user.id,
        columns="id, owner_id, file_path, thumbnail_url",
        message="この動画を削除する権限がありません。",
    )

    paths = collect_object_paths([video.get("file_path")], [video.get("thumbnail_url")])
    await remove_objects(client, paths)

    try:
        await execute(client.table("videos").delete().eq("id", video_id))
    except PostgrestAPIError as e:
        raise upstream_error(e, "動画の削除に失敗しました。")

    logger.info("Video deleted", video_id=video_id, removed_objects=len(paths))
    return MessageResponse(message="動画を削除しました。")


@router.post("/{video_id}/like", response_model=LikeToggleResponse)
async def like_video(
    video_id: str,
    user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_supabase),
):
    """
    いいねの切り替え
    """
    return await toggle_like(client, video_id, user.id)


@router.post("/{video_id}/view", response_model=ViewCountResponse)
async def view_video(
    video_id: str,
    client: Client = Depends(get_supabase),
):
    """
    再生数カウント (認証不要)
    """
    view_count = await record_view(client, video_id)
    return ViewCountResponse(view_count=view_count)
