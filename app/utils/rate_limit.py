from fastapi import HTTPException, status
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.logging import get_logger, log_security_event
from app.core.redis import redis_client

logger = get_logger(__name__)


async def check_rate_limit(key: str, max_attempts: int, window_seconds: int) -> None:
    """
    Increment a Redis counter for `key` and raise 429 if `max_attempts` is exceeded
    within `window_seconds`. Does nothing when rate limiting is disabled.
    """
    if not settings.RATE_LIMIT_ENABLED:
        return

    try:
        count = await redis_client.incr(key)
        if count == 1:
            await redis_client.expire(key, window_seconds)
    except RedisError as e:
        # fail open
        logger.warning("Rate limiter unavailable", key=key, error=str(e))
        return

    if count > max_attempts:
        log_security_event("rate_limit_exceeded", severity="medium", key=key, attempts=count)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many attempts. Please try again later.",
        )
