"""
Mirror dispatch interface.
Uses Redis/RQ when REDIS_URL is set, otherwise a daemon thread.
"""

import logging
import os
import threading
from typing import Optional

from jobs.mirror_job import mirror_image_now

logger = logging.getLogger(__name__)


def _start_thread(file_path: str, file_name: str) -> threading.Thread:
    thread = threading.Thread(
        target=mirror_image_now,
        args=(file_path, file_name),
        name=f"mirror-{file_name}",
        daemon=True,
    )
    thread.start()
    return thread


def enqueue_mirror(file_path: str, file_name: str) -> Optional[str]:
    """
    Dispatch a detached mirror of a stored image. Never blocks on the upload
    and never raises.

    Returns:
        RQ job ID when queued in Redis, otherwise None
    """
    if os.environ.get("REDIS_URL"):
        try:
            from jobs.redis_queue import enqueue_mirror_job
            job_id = enqueue_mirror_job(file_path, file_name)
            logger.info(f"📬 Mirror queued: job_id={job_id} file={file_name}")
            return job_id
        except Exception as e:
            logger.warning(f"⚠️ Redis unavailable, mirroring {file_name} in a thread: {e}")

    _start_thread(file_path, file_name)
    return None
