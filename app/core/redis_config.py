import redis

from app.core.config import get_settings


def get_redis_url():
    return get_settings().REDIS_URL


def get_redis_client() -> redis.Redis:
    """Get Redis client for locking."""
    return redis.from_url(get_redis_url(), decode_responses=True)
