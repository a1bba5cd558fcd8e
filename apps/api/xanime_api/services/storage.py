"""
Storage Service: Supabase Storage object paths and removal
"""
from typing import Iterable, Optional
from urllib.parse import unquote, urlparse

import structlog
from starlette.concurrency import run_in_threadpool
from supabase import Client, StorageException

from xanime_api.core.config import settings
from xanime_api.core.exceptions import UpstreamError

logger = structlog.get_logger()


def public_path_prefix(bucket: str) -> str:
    return f"/storage/v1/object/public/{bucket}/"


def extract_storage_path(url: Optional[str], bucket: Optional[str] = None) -> Optional[str]:
    """
    Object path inside the bucket for a Supabase public URL.

    Returns None for empty values and for URLs that do not point at the bucket.
    """
    if not url:
        return None

    prefix = public_path_prefix(bucket or settings.storage_bucket)
    try:
        path = urlparse(url).path
    except ValueError:
        return None

    index = path.find(prefix)
    if index == -1:
        return None

    object_path = path[index + len(prefix):]
    return unquote(object_path) if object_path else None


def collect_object_paths(file_paths: Iterable[Optional[str]], public_urls: Iterable[Optional[str]]) -> list[str]:
    """De-duplicated object paths, keeping first-seen order"""
    paths: list[str] = []
    for path in list(file_paths) + [extract_storage_path(url) for url in public_urls]:
        if path and path not in paths:
            paths.append(path)
    return paths


async def remove_objects(client: Client, paths: list[str]) -> None:
    """
    Delete objects from the video bucket.

    Raises:
        UpstreamError: If storage rejects the removal
    """
    if not paths:
        return

    bucket = client.storage.from_(settings.storage_bucket)
    try:
        await run_in_threadpool(bucket.remove, paths)
    except StorageException as e:
        logger.error("Storage removal failed", paths=paths, error=str(e))
        raise UpstreamError("動画ファイルの削除に失敗しました。", code="STORAGE_REMOVE_FAILED")

    logger.info("Storage objects removed", count=len(paths))
