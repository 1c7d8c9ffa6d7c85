"""Database infrastructure: async engine, sessions and the declarative base."""

from promo_engine.core.database.base import Base
from promo_engine.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
