"""
Background job for mirroring one stored image to Supabase Storage.
This runs in a worker process or a daemon thread, separate from the Flask request handler.
"""

import logging

from pipeline.supabase_client import get_supabase_client
from pipeline.supabase_storage import replicate

logger = logging.getLogger(__name__)


class MirrorFailed(Exception):
    """Raised inside the RQ worker so the job is retried."""


def mirror_image_job(file_path: str, file_name: str) -> dict:
    """
    RQ entry point. Raises MirrorFailed on upload failure so RQ's retry policy
    applies; an unconfigured mirror is skipped without retrying.
    """
    logger.info(f"📤 Mirror job started: {file_name}")
    if get_supabase_client() is None:
        logger.info(f"Supabase not configured; skipping mirror of {file_name}")
        return {"success": False, "skipped": True, "path": file_name}

    result = replicate(file_path, file_name)
    if not result["success"]:
        raise MirrorFailed(f"Mirror of {file_name} failed: {result.get('error')}")
    return result


def mirror_image_now(file_path: str, file_name: str) -> None:
    """Thread entry point: one attempt, errors logged only."""
    try:
        if get_supabase_client() is None:
            logger.info(f"Supabase not configured; skipping mirror of {file_name}")
            return
        replicate(file_path, file_name)
    except Exception as e:
        logger.error(f"❌ Mirror thread failed for {file_name}: {e}", exc_info=True)
