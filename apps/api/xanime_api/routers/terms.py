from fastapi import APIRouter, Depends
from supabase import Client, PostgrestAPIError

from xanime_api.core.config import settings
from xanime_api.core.dependencies import CurrentUser, get_current_user
from xanime_api.core.exceptions import ValidationError, upstream_error
from xanime_api.core.supabase import execute, get_supabase
from xanime_api.models.dto import AcceptTermsRequest, SuccessResponse

router = APIRouter()


@router.post("/accept", response_model=SuccessResponse)
async def accept_terms(
    request: AcceptTermsRequest,
    user: CurrentUser = Depends(get_current_user),
    client: Client = Depends(get_supabase),
):
    """
    利用規約への同意を記録
    """
    if not (request.no_repost and request.mosaic and request.adult):
        raise ValidationError("すべてのチェック項目に同意してください。")

    try:
        await execute(
            client.table("terms_acceptances").insert(
                {
                    "user_id": user.id,
                    "version": request.version or settings.terms_version,
                    "no_repost": request.no_repost,
                    "mosaic": request.mosaic,
                    "adult": request.adult,
                }
            )
        )
    except PostgrestAPIError as e:
        raise upstream_error(e, "同意の保存に失敗しました。")

    return SuccessResponse()
