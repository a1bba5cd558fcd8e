"""
Series creation against a table whose column set is only known at runtime.

Deployments differ in which of the title, slug and owner columns the
``series`` table actually has. Each insert attempt narrows or widens the
payload according to the error the database reports, until an insert
succeeds, the error is not one we know how to adapt to, or the attempt
budget runs out.
"""
import random
from typing import Optional

import structlog
from supabase import Client, PostgrestAPIError

from xanime_api.core.config import settings
from xanime_api.core.errors import (
    DbErrorCode,
    MISSING_COLUMN_ERRORS,
    error_code,
    error_summary,
    extract_missing_column,
    is_slug_conflict,
)
from xanime_api.core.exceptions import UpstreamError
from xanime_api.core.supabase import execute, fetch_one
from xanime_api.models.dto import SeriesSummary
from xanime_api.services.slug import generate_series_slug, generate_slug

logger = structlog.get_logger()

SERIES_TABLE = "series"
OWNER_COLUMNS = ("owner_id", "user_id", "creator_id")
TITLE_COLUMNS = ("title_clean", "title_raw", "title", "name")

CREATE_FAILED_MESSAGE = "シリーズの作成に失敗しました。"


def pick_owner_column(missing_columns: set[str]) -> Optional[str]:
    for column in OWNER_COLUMNS:
        if column not in missing_columns:
            return column
    return None


def build_series_payload(
    missing_columns: set[str],
    owner_column: str,
    owner_id: str,
    title_raw: str,
    title_clean: str,
    slug: str,
    description: Optional[str],
) -> dict:
    """Insert payload restricted to columns not known to be missing"""
    candidates = {}

    description = (description or "").strip()
    if description:
        candidates["description"] = description

    candidates[owner_column] = owner_id
    candidates["slug"] = slug
    candidates["title_clean"] = title_clean
    candidates["title_raw"] = title_raw

    if "title" not in missing_columns:
        candidates["title"] = title_clean
    else:
        candidates["name"] = title_clean

    return {
        column: value
        for column, value in candidates.items()
        if column not in missing_columns
    }


def lookup_filters(payload: dict, owner_column: str) -> list[tuple[str, str]]:
    """Columns used to find a row the insert did not hand back, most specific first"""
    order = (owner_column, "slug") + TITLE_COLUMNS
    return [(column, payload[column]) for column in order if column in payload]


async def find_created_series(client: Client, payload: dict, owner_column: str) -> Optional[dict]:
    query = client.table(SERIES_TABLE).select("id")
    for column, value in lookup_filters(payload, owner_column):
        query = query.eq(column, value)
    return await fetch_one(query.order("created_at", desc=True))


def _abort(exc: PostgrestAPIError, missing_columns: set[str]) -> UpstreamError:
    summary = error_summary(exc)
    logger.error(
        "Series insert failed",
        missing_columns=sorted(missing_columns),
        **summary,
    )
    return UpstreamError(
        summary.get("message") or CREATE_FAILED_MESSAGE,
        code=summary.get("code"),
        details=summary.get("details"),
    )


async def create_series(
    client: Client,
    owner_id: str,
    title_raw: str,
    title_clean: str,
    slug: Optional[str] = None,
    description: Optional[str] = None,
) -> SeriesSummary:
    """
    Insert one series row, adapting to the deployed schema.

    - 23505 on slug: retry with ``<slug>-<0..9999>``
    - PGRST204 / 42703: drop the cited column and retry
    - 23502: put the cited column back and retry
    - anything else aborts with the driver's code and message

    Raises:
        UpstreamError: on an unrecoverable error, or ``code="max_attempts"``
            once ``settings.series_max_insert_attempts`` inserts have failed
    """
    intended_slug = generate_slug(slug or "") or generate_series_slug(title_clean)
    slug_candidate = intended_slug
    missing_columns: set[str] = set()
    max_attempts = settings.series_max_insert_attempts

    for attempt in range(1, max_attempts + 1):
        owner_column = pick_owner_column(missing_columns)
        if owner_column is None:
            logger.error("No owner column left to try", missing_columns=sorted(missing_columns))
            raise UpstreamError(
                CREATE_FAILED_MESSAGE,
                code="owner_column_unavailable",
                details={"missing_columns": sorted(missing_columns)},
            )

        payload = build_series_payload(
            missing_columns,
            owner_column,
            owner_id,
            title_raw,
            title_clean,
            slug_candidate,
            description,
        )
        logger.debug("Series insert attempt", attempt=attempt, columns=sorted(payload))

        try:
            response = await execute(client.table(SERIES_TABLE).insert(payload))
        except PostgrestAPIError as exc:
            code = error_code(exc)

            if is_slug_conflict(exc):
                slug_candidate = f"{intended_slug}-{random.randint(0, 9999)}"
                logger.info("Series slug taken, retrying", attempt=attempt, slug=slug_candidate)
                continue

            if code in MISSING_COLUMN_ERRORS or code == DbErrorCode.NOT_NULL_VIOLATION.value:
                column = extract_missing_column(exc)
                if column is None:
                    raise _abort(exc, missing_columns)

                if code == DbErrorCode.NOT_NULL_VIOLATION.value:
                    missing_columns.discard(column)
                    logger.info("Series column is required", attempt=attempt, column=column)
                else:
                    missing_columns.add(column)
                    logger.info("Series column missing", attempt=attempt, column=column)
                continue

            raise _abort(exc, missing_columns)

        reported_slug = intended_slug if "slug" in missing_columns else slug_candidate
        rows = response.data or []
        series_id = rows[0].get("id") if rows else None

        if series_id is None:
            logger.warning("Series insert returned no id, looking it up", attempt=attempt)
            try:
                row = await find_created_series(client, payload, owner_column)
            except PostgrestAPIError as exc:
                raise _abort(exc, missing_columns)
            if not row or row.get("id") is None:
                raise UpstreamError(CREATE_FAILED_MESSAGE, code="series_lookup_failed")
            series_id = row["id"]

        logger.info(
            "Series created",
            series_id=str(series_id),
            slug=reported_slug,
            attempts=attempt,
            missing_columns=sorted(missing_columns),
        )
        return SeriesSummary(id=str(series_id), title_clean=title_clean, slug=reported_slug)

    logger.error(
        "Series insert gave up",
        attempts=max_attempts,
        missing_columns=sorted(missing_columns),
    )
    raise UpstreamError(
        CREATE_FAILED_MESSAGE,
        code="max_attempts",
        details={"missing_columns": sorted(missing_columns)},
    )
