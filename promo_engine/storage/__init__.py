"""
Storage backends for the promotions engine.

Usage
-----
>>> storage = await create_storage()            # backend from STORAGE_BACKEND
>>> storage = await create_storage(StorageBackend.REDIS)
"""

from __future__ import annotations

from typing import Optional, Union

from promo_engine.core.config import Config, StorageBackend
from promo_engine.core.exceptions import ConfigurationError
from promo_engine.core.logging.logger import get_logger
from promo_engine.storage.interface import Storage
from promo_engine.storage.memory import MemoryStorage

logger = get_logger(__name__)


async def create_storage(backend: Optional[Union[StorageBackend, str]] = None) -> Storage:
    """
    Build the storage backend, initializing the infrastructure it needs.

    Raises:
        ConfigurationError: If ``backend`` names no known backend.
    """
    if backend is None:
        backend = Config.storage_backend()
    try:
        backend = StorageBackend(backend)
    except ValueError as e:
        raise ConfigurationError(
            "STORAGE_BACKEND",
            f"unknown backend '{backend}', expected one of {[b.value for b in StorageBackend]}",
        ) from e

    if backend is StorageBackend.REDIS:
        from promo_engine.core.redis.service import RedisService
        from promo_engine.storage.redis_storage import RedisStorage

        await RedisService.initialize()
        storage: Storage = RedisStorage()
    elif backend is StorageBackend.DATABASE:
        from promo_engine.core.database.service import DatabaseService
        from promo_engine.storage.database_storage import DatabaseStorage

        await DatabaseService.initialize()
        await DatabaseService.create_schema()
        storage = DatabaseStorage()
    else:
        storage = MemoryStorage()

    logger.info("Storage backend ready", extra={"backend": backend.value})
    return storage


__all__ = ["Storage", "MemoryStorage", "create_storage"]
