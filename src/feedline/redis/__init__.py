"""Shared Redis connection utilities."""

from feedline.redis.connection import (
    build_arq_redis_settings,
    build_redis_pool_kwargs,
    create_redis_client,
)

__all__ = ["build_arq_redis_settings", "build_redis_pool_kwargs", "create_redis_client"]
