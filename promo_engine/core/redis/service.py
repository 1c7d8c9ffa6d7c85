"""
RedisService: async Redis infrastructure for the promotions engine.

Purpose
-------
Provide a single shared async Redis client plus the primitives the Redis
storage backend builds on:
- Singleton async client with connection pooling
- Observable JSON document reads
- Distributed per-key locking with token-based safety

Responsibilities
----------------
- Initialize and manage a singleton Redis connection pool
- Provide atomic distributed locking via SET NX + Lua unlock
- Expose a JSON read helper with structured logging

Non-Responsibilities
--------------------
- Promotion or player-state semantics (handled by ``RedisStorage``)

Configuration
-------------
- REDIS_URL                    : connection URL
- REDIS_SOCKET_TIMEOUT         : socket timeout in seconds
- REDIS_MAX_CONNECTIONS        : pool size
- PLAYER_LOCK_TIMEOUT_SECONDS  : lock expiry
- PLAYER_LOCK_WAIT_SECONDS     : maximum wait to acquire a lock
- PLAYER_LOCK_RETRY_INTERVAL   : sleep between acquisition attempts

Architecture Notes
------------------
- Uses the redis-py asyncio client
- Lock safety guaranteed via unique UUID tokens + Lua compare-and-delete
- Initialization is idempotent and guarded by an asyncio.Lock
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import RedisError

from promo_engine.core.config import Config
from promo_engine.core.exceptions import LockAcquisitionError
from promo_engine.core.logging.logger import get_logger

logger = get_logger(__name__)


class RedisService:
    """
    Async Redis infrastructure service.

    Class-level singleton: call ``initialize()`` once at startup and
    ``shutdown()`` on exit.
    """

    _client: Optional[AsyncRedis] = None
    _init_lock: Optional[asyncio.Lock] = None
    _is_healthy: bool = False

    # Atomic lock release (compare token + delete)
    _LUA_UNLOCK_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the singleton Redis client.

        Idempotent. Safe to call multiple times.

        Raises
        ------
        RuntimeError
            If the Redis connection cannot be established.
        """
        if cls._client is not None:
            logger.debug("RedisService already initialized, skipping")
            return

        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()

        async with cls._init_lock:
            if cls._client is not None:
                return

            url = url or Config.REDIS_URL
            start_time = time.monotonic()

            try:
                client: AsyncRedis = AsyncRedis.from_url(
                    url,
                    socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=Config.REDIS_MAX_CONNECTIONS,
                    health_check_interval=30,
                )
                await client.ping()

                cls._client = client
                cls._is_healthy = True

                logger.info(
                    "RedisService initialized successfully",
                    extra={
                        "url_scheme": url.split("://")[0] if "://" in url else "unknown",
                        "socket_timeout_seconds": Config.REDIS_SOCKET_TIMEOUT,
                        "max_connections": Config.REDIS_MAX_CONNECTIONS,
                        "initialization_time_ms": round((time.monotonic() - start_time) * 1000, 2),
                    },
                )

            except (RedisError, OSError) as exc:
                cls._client = None
                cls._is_healthy = False
                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": url.split("://")[0] if "://" in url else "unknown",
                    },
                    exc_info=True,
                )
                raise RuntimeError(f"Failed to initialize RedisService: {exc}") from exc

    @classmethod
    async def shutdown(cls) -> None:
        """Close the Redis client. Safe to call even if not initialized."""
        client = cls._client
        cls._client = None
        cls._is_healthy = False

        if client is None:
            logger.debug("RedisService not initialized, nothing to shutdown")
            return

        try:
            await client.aclose()
            logger.info("RedisService shutdown complete")
        except RedisError as exc:
            logger.error(
                "Error during RedisService shutdown",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    @classmethod
    async def health_check(cls) -> bool:
        """Verify Redis connectivity via PING."""
        if cls._client is None:
            logger.warning("Health check failed: RedisService not initialized")
            cls._is_healthy = False
            return False

        try:
            cls._is_healthy = bool(await cls._client.ping())
        except RedisError as exc:
            logger.warning(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            cls._is_healthy = False
        return cls._is_healthy

    @classmethod
    def is_healthy(cls) -> bool:
        return cls._is_healthy

    @classmethod
    def client(cls) -> AsyncRedis:
        """
        Return the singleton Redis client.

        Raises
        ------
        RuntimeError
            If RedisService has not been initialized.
        """
        if cls._client is None:
            raise RuntimeError(
                "RedisService not initialized. "
                "Call `await RedisService.initialize()` first."
            )
        return cls._client

    # ═══════════════════════════════════════════════════════════════════════
    # KEY-VALUE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def get(cls, key: str) -> Optional[str]:
        start_time = time.monotonic()
        result = await cls.client().get(key)
        logger.debug(
            "Redis GET operation",
            extra={
                "key": key,
                "found": result is not None,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return result

    @classmethod
    async def get_json(cls, key: str) -> Optional[Any]:
        raw = await cls.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    # ═══════════════════════════════════════════════════════════════════════
    # DISTRIBUTED LOCKING
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    @asynccontextmanager
    async def acquire_lock(
        cls,
        key: str,
        timeout: Optional[int] = None,
        wait_timeout: Optional[float] = None,
        retry_interval: Optional[float] = None,
        operation: Optional[str] = None,
    ) -> AsyncIterator[None]:
        """
        Acquire a distributed lock using Redis SET NX with a unique token.

        The lock expires on its own if the holder crashes.

        Raises
        ------
        LockAcquisitionError
            If the lock cannot be acquired within ``wait_timeout``.

        Example
        -------
        >>> async with RedisService.acquire_lock(f"promo:lock:player:{player_id}"):
        ...     await process(player_id)
        """
        client = cls.client()

        if timeout is None:
            timeout = Config.PLAYER_LOCK_TIMEOUT_SECONDS
        if wait_timeout is None:
            wait_timeout = Config.PLAYER_LOCK_WAIT_SECONDS
        if retry_interval is None:
            retry_interval = Config.PLAYER_LOCK_RETRY_INTERVAL

        token = str(uuid.uuid4())
        deadline = time.monotonic() + max(0.0, float(wait_timeout))
        acquired = False
        lock_start_time = time.monotonic()

        try:
            while True:
                try:
                    acquired = bool(await client.set(name=key, value=token, nx=True, ex=timeout))
                except RedisError as exc:
                    logger.error(
                        "Redis lock acquisition error",
                        extra={
                            "lock_key": key,
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                        },
                        exc_info=True,
                    )

                if acquired:
                    logger.debug(
                        "Redis lock acquired",
                        extra={
                            "lock_key": key,
                            "timeout_seconds": timeout,
                            "wait_ms": round((time.monotonic() - lock_start_time) * 1000, 2),
                            "operation": operation,
                        },
                    )
                    break

                if time.monotonic() >= deadline:
                    logger.warning(
                        "Failed to acquire Redis lock within timeout",
                        extra={"lock_key": key, "wait_timeout_seconds": wait_timeout},
                    )
                    raise LockAcquisitionError(key, float(wait_timeout))

                await asyncio.sleep(retry_interval)

            yield

        finally:
            if acquired:
                try:
                    released = await client.eval(cls._LUA_UNLOCK_SCRIPT, 1, key, token)
                    if released:
                        logger.debug("Redis lock released", extra={"lock_key": key})
                    else:
                        logger.warning(
                            "Redis lock already expired or stolen",
                            extra={"lock_key": key},
                        )
                except RedisError as exc:
                    logger.warning(
                        "Failed to release Redis lock (will expire automatically)",
                        extra={
                            "lock_key": key,
                            "timeout_seconds": timeout,
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                        },
                        exc_info=True,
                    )
