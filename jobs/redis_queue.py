"""
Redis-based mirror queue using RQ (Redis Queue).
"""

import os
from redis import Redis
from rq import Queue, Retry

QUEUE_NAME = "mirror"

# Retry a failed mirror upload after 10s, 30s, then 60s
MIRROR_RETRY = Retry(max=3, interval=[10, 30, 60])


def get_redis_client() -> Redis:
    """Get Redis client connection."""
    redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    return Redis.from_url(redis_url, decode_responses=False)


def get_queue() -> Queue:
    """Get RQ queue instance."""
    return Queue(QUEUE_NAME, connection=get_redis_client())


def enqueue_mirror_job(file_path: str, file_name: str) -> str:
    """
    Enqueue a mirror upload for background processing using Redis/RQ.

    Returns:
        Job ID (string)
    """
    from jobs.mirror_job import mirror_image_job

    job = get_queue().enqueue(
        mirror_image_job,
        file_path=file_path,
        file_name=file_name,
        retry=MIRROR_RETRY,
        job_timeout=120,
        result_ttl=3600,  # Keep result for 1 hour
        failure_ttl=86400  # Keep failed jobs for 24 hours
    )
    return job.id
