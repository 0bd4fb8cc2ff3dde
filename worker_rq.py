#!/usr/bin/env python3
"""
Redis Queue (RQ) Worker for mirroring stored images to Supabase Storage.

Usage:
    python worker_rq.py
"""

import os
import sys
import time
import logging
from dotenv import load_dotenv
from rq import Worker
from jobs.redis_queue import QUEUE_NAME, get_queue, get_redis_client

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s'
)
logger = logging.getLogger(__name__)

# Include timestamp to avoid name conflicts on restart
WORKER_ID = os.environ.get("WORKER_ID", f"mirror-worker-{os.getpid()}-{int(time.time())}")


def main():
    """Main worker loop."""
    load_dotenv()

    redis_client = get_redis_client()
    try:
        redis_client.ping()
        logger.info("✅ Connected to Redis successfully")
    except Exception as e:
        logger.error(f"❌ Failed to connect to Redis: {e}")
        logger.error("   Make sure Redis is running and REDIS_URL is set correctly")
        sys.exit(1)

    worker = Worker([get_queue()], connection=redis_client, name=WORKER_ID)
    logger.info(f"👷 Worker {WORKER_ID} listening on '{QUEUE_NAME}' queue")
    try:
        # Interval retries sit in the scheduled registry until the scheduler requeues them
        worker.work(with_scheduler=True)
    except KeyboardInterrupt:
        logger.info("🛑 Worker stopped by user")


if __name__ == '__main__':
    main()
