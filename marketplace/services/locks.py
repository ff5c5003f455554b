"""Redis locks for scheduled batches: one runner at a time across all workers."""
import logging

import redis
from redis.exceptions import LockError
from redis.lock import Lock

from marketplace.core.config import settings

logger = logging.getLogger(__name__)


def batch_lock(name: str, ttl_seconds: int) -> Lock:
    """Non-blocking lock; expires after ttl_seconds if the holder dies mid-batch."""
    client = redis.Redis.from_url(settings.redis_url)
    return client.lock(f"lock:{name}", timeout=ttl_seconds, blocking=False)


def release_batch_lock(lock: Lock) -> None:
    try:
        lock.release()
    except LockError as e:
        # TTL ran out before the batch finished; the key is no longer ours
        logger.warning("batch_lock_expired", extra={"error": type(e).__name__})
