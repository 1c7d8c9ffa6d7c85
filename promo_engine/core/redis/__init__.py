"""Redis infrastructure: singleton async client and distributed locks."""

from promo_engine.core.redis.service import RedisService

__all__ = ["RedisService"]
