# Tools module
from .pipeline_lock import LockManager, LockError
from .response_cache import (
    TTLCache,
    SafeCache,
    CacheError,
    CacheKeys,
    build_key,
    response_cache,
)

__all__ = [
    # Distributed lock
    "LockManager",
    "LockError",
    # Response cache
    "TTLCache",
    "SafeCache",
    "CacheError",
    "CacheKeys",
    "build_key",
    "response_cache",
]
