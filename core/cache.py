import redis.asyncio as redis

from core.config import settings


def create_redis_client(url: str = None):
    return redis.from_url(url or settings.REDIS_URL, encoding="utf-8", decode_responses=True)
