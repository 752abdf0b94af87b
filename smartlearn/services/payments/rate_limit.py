"""
Per-student purchase rate limit, shared between API workers through Redis.
"""
import logging

import redis

from smartlearn.core.config import settings

logger = logging.getLogger("payments")


def check_purchase_rate_limit(student_id: str) -> bool:
    """
    Returns True if another checkout is allowed. Increments the counter on each call.
    """
    try:
        client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        key = f"purchase_attempts:{student_id}"
        current = client.incr(key)
        if current == 1:
            client.expire(key, settings.purchase_rate_window_seconds)
        if current > settings.purchase_rate_limit:
            logger.warning("purchase_rate_limited", extra={"user_id": student_id, "reason": str(current)})
            return False
        return True
    except redis.RedisError as e:
        logger.warning("purchase_rate_limit_redis_error", extra={"error": str(e)})
        return True  # Fail open - Redis outage must not block purchases
