from fastapi import APIRouter, Depends
from supabase import Client, PostgrestAPIError

from xanime_api.core.dependencies import CurrentUser, get_current_user
from xanime_api.core.exceptions import UpstreamError, ValidationError, upstream_error
from xanime_api.core.supabase import execute, get_supabase
from xanime_api.models.dto import CreateSeasonRequest, SeasonCreateResponse, SeasonSummary
from xanime_api.services.ownership import require_series_owner
from xanime_api.services.slug import generate_season_slug, generate_slug

router = APIRouter()


@router.post("", response_model=SeasonCreateResponse)
async def create_season(
    request: CreateSeasonRequest,
    user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_supabase),
):
    """
    シリーズにシーズンを追加

    - シリーズの所有者のみ
    - slug 省略時はシリーズの slug から生成 (season_number 0 は "<series>-main")
    """
    series = await require_series_owner(client, request.series_id, user.id)

    slug = generate_slug(request.slug or "")
    if not slug:
        series_slug = series.get("slug")
        if not series_slug:
            raise ValidationError("シーズンスラッグを指定してください。")
        slug = generate_season_slug(series_slug, request.season_number, request.name)

    payload = {
        "series_id": request.series_id,
        "season_number": request.season_number,
        "name": request.name,
        "slug": slug,
        "description": request.description,
    }

    try:
        response = await execute(client.table("seasons").insert(payload))
    except PostgrestAPIError as e:
        raise upstream_error(e, "シーズンの作成に失敗しました。")

    rows = response.data or []
    if not rows:
        raise UpstreamError("シーズンの作成に失敗しました。")

    row = rows[0]
    return SeasonCreateResponse(
        season=SeasonSummary(
            id=str(row["id"]),
            name=row.get("name", request.name),
            season_number=row.get("season_number", request.season_number),
            slug=row.get("slug", slug),
        )
    )
