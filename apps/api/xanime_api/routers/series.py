from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
import pydantic
from supabase import Client

from xanime_api.core.dependencies import CurrentUser, get_current_user
from xanime_api.core.supabase import get_supabase
from xanime_api.models.dto import CreateSeriesRequest, SeriesCreateResponse
from xanime_api.services.series import create_series as insert_series

router = APIRouter()


async def read_series_request(http_request: Request) -> CreateSeriesRequest:
    """Body is parsed after authentication so anonymous callers always get 401"""
    try:
        return CreateSeriesRequest.model_validate_json(await http_request.body())
    except pydantic.ValidationError as e:
        raise RequestValidationError(e.errors())


@router.post(
    "",
    response_model=SeriesCreateResponse,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": CreateSeriesRequest.model_json_schema()}},
        }
    },
)
async def create_series(
    http_request: Request,
    user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_supabase),
):
    """
    新しいシリーズを作成

    - slug を省略した場合は title_clean から生成
    - スラッグ重複時は数字サフィックスを付けて再試行
    """
    request = await read_series_request(http_request)
    series = await insert_series(
        client,
        owner_id=user.id,
        title_raw=request.title_raw,
        title_clean=request.title_clean,
        slug=request.slug,
        description=request.description,
    )
    return SeriesCreateResponse(series=series)
