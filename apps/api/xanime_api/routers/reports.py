from typing import Optional

from fastapi import APIRouter, Depends
from supabase import Client, PostgrestAPIError
import structlog

from xanime_api.core.dependencies import CurrentUser, get_optional_user
from xanime_api.core.exceptions import upstream_error
from xanime_api.core.supabase import execute, get_supabase
from xanime_api.models.dto import CreateReportRequest, SuccessResponse

router = APIRouter()
logger = structlog.get_logger()


@router.post("", response_model=SuccessResponse)
async def create_report(
    request: CreateReportRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    client: Client = Depends(get_supabase),
):
    """
    動画の通報 (匿名でも可)
    """
    try:
        await execute(
            client.table("reports").insert(
                {
                    "reporter_id": user.id if user else None,
                    "video_id": request.video_id,
                    "reason": request.reason,
                    "message": request.message,
                }
            )
        )
    except PostgrestAPIError as e:
        raise upstream_error(e, "通報の送信に失敗しました。")

    logger.info("Report received", video_id=request.video_id, anonymous=user is None)
    return SuccessResponse()
