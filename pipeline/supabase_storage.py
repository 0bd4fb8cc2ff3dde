"""
Supabase Storage mirror for stored submission images.
Copies files to the 'image-submissions' bucket; never raises.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional

from pipeline.supabase_client import get_supabase_client

logger = logging.getLogger(__name__)

BUCKET_NAME = os.environ.get("MIRROR_BUCKET", "image-submissions")

CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def upload_file(
    file_bytes: bytes,
    file_path: str,
    content_type: Optional[str] = None,
) -> Dict:
    """
    Upload a file to the Supabase Storage bucket.

    Args:
        file_bytes: File content as bytes
        file_path: Path within the bucket (e.g., "5-8/Asha_a_at_x.com_478abec7.jpg")
        content_type: MIME type (e.g., "image/png")

    Returns:
        dict with:
            - success: bool
            - url: Public URL if successful
            - path: Path in bucket
            - error: Error message if failed
    """
    supabase = get_supabase_client()
    if supabase is None:
        return {"success": False, "error": "Supabase is not configured", "path": file_path}

    try:
        supabase.storage.from_(BUCKET_NAME).upload(
            path=file_path,
            file=file_bytes,
            file_options={
                "content-type": content_type or "application/octet-stream",
                "upsert": "true"  # Overwrite if exists
            }
        )
        url_result = supabase.storage.from_(BUCKET_NAME).get_public_url(file_path)
        return {"success": True, "url": url_result, "path": file_path}
    except Exception as e:
        return {"success": False, "error": str(e), "path": file_path}


def replicate(file_path: str, file_name: str) -> Dict:
    """
    Mirror a stored image to Supabase Storage at ``<category>/<file_name>``.
    The category is the name of the directory holding the file.

    Errors are logged and reported in the returned dict, never raised.
    """
    local = Path(file_path)
    remote_path = f"{local.parent.name}/{file_name}" if local.parent.name else file_name

    try:
        file_bytes = local.read_bytes()
    except OSError as e:
        logger.error(f"❌ Mirror could not read {file_path}: {e}")
        return {"success": False, "error": str(e), "path": remote_path}

    result = upload_file(
        file_bytes=file_bytes,
        file_path=remote_path,
        content_type=CONTENT_TYPES.get(local.suffix.lower()),
    )
    if result["success"]:
        logger.info(f"☁️ Mirrored {remote_path} to bucket {BUCKET_NAME}")
    else:
        logger.warning(f"⚠️ Mirror of {remote_path} failed: {result.get('error')}")
    return result
