"""
Configuration subsystem for the promotions engine.

Static configuration is loaded from environment variables (with .env
support) into the class-level ``Config`` singleton.

Usage
-----
```python
from promo_engine.core.config import Config, StorageBackend

if Config.storage_backend() is StorageBackend.REDIS:
    ...
```
"""

from promo_engine.core.config.config import Config, Environment, StorageBackend

__all__ = ["Config", "Environment", "StorageBackend"]
