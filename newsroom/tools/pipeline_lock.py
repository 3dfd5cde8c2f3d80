"""
Pipeline lock: named, TTL-bounded mutual exclusion backed by the database.

The scheduler may fire overlapping triggers (retries, slow runs, two
instances). The lock row in pipeline_locks is the only thing that decides
who runs. A lock past its expires_at counts as absent, so a crashed run
blocks the pipeline for at most one TTL.

Acquire uses the unique-constraint pattern, which works on any SQL store:
  1. INSERT the row. Success means nobody held it.
  2. On IntegrityError, UPDATE ... WHERE name = :name AND expires_at <= :now.
     Exactly one affected row means we took over an expired lock.
Anything else is "not acquired". Errors fail closed.

acquire() hands back the holder token it wrote; release() needs that token
and only ever deletes the row still carrying it. One manager is shared by
every run in the process, so it keeps no per-name state of its own.

Usage:
    locks = LockManager(db)
    with locks.holding("cron_pipeline") as token:
        if token:
            ...
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, Optional

from sqlalchemy.exc import IntegrityError

from ..database import Database, _utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL_MINUTES = 10


class LockError(Exception):
    """Lock store failure. Callers treat it as "could not acquire"."""


class LockManager:
    """Acquire / check / release named locks stored in pipeline_locks."""

    def __init__(
        self,
        db: Database,
        ttl_minutes: int = DEFAULT_TTL_MINUTES,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.ttl_minutes = ttl_minutes
        self._clock = clock

    def is_locked(self, name: str) -> bool:
        """True if an unexpired lock row exists. Store errors read as unlocked."""
        try:
            row = self.db.get_lock(name)
        except Exception as e:
            logger.warning(f"Lock check for '{name}' failed: {e}")
            return False
        if row is None:
            return False
        return row["expires_at"] > self._clock()

    def acquire(self, name: str, ttl_minutes: Optional[int] = None) -> Optional[str]:
        """Return the holder token on success, None when not acquired."""
        if ttl_minutes is None:
            ttl_minutes = self.ttl_minutes
        try:
            return self._acquire(name, ttl_minutes)
        except LockError as e:
            logger.error(f"Lock acquire for '{name}' failed: {e}")
            return None

    def _acquire(self, name: str, ttl_minutes: int) -> Optional[str]:
        now = self._clock()
        token = uuid.uuid4().hex
        expires_at = now + timedelta(minutes=ttl_minutes)

        try:
            self.db.insert_lock(name, token, now, expires_at)
        except IntegrityError:
            try:
                taken = self.db.take_over_expired_lock(name, token, now, expires_at, now)
            except Exception as e:
                raise LockError(f"takeover failed: {e}") from e
            if not taken:
                logger.info(f"Lock '{name}' is held by another run")
                return None
            logger.info(f"Lock '{name}' taken over from an expired holder")
        except Exception as e:
            raise LockError(f"insert failed: {e}") from e

        logger.info(f"Lock '{name}' acquired until {expires_at.isoformat()}")
        return token

    def release(self, name: str, token: Optional[str]) -> None:
        """Best-effort, idempotent. Never raises. Without a token it does nothing."""
        if not token:
            return
        try:
            deleted = self.db.delete_lock(name, token)
        except Exception as e:
            logger.warning(f"Lock release for '{name}' failed (expires by TTL): {e}")
            return
        if deleted:
            logger.info(f"Lock '{name}' released")
        else:
            logger.warning(f"Lock '{name}' was no longer ours at release (expired and taken over?)")

    @contextmanager
    def holding(self, name: str, ttl_minutes: Optional[int] = None) -> Iterator[Optional[str]]:
        """Yield the holder token (None if not acquired); release it on exit."""
        token = self.acquire(name, ttl_minutes)
        try:
            yield token
        finally:
            self.release(name, token)

    def lock_status(self, name: str) -> Dict:
        """Operator view of the lock row. Raises LockError if the store is unreachable."""
        try:
            row = self.db.get_lock(name)
        except Exception as e:
            raise LockError(f"status read failed: {e}") from e
        now = self._clock()
        if row is None:
            return {"name": name, "locked": False}
        return {
            "name": name,
            "locked": row["expires_at"] > now,
            "holder_token": row["holder_token"],
            "acquired_at": row["acquired_at"].isoformat(),
            "expires_at": row["expires_at"].isoformat(),
            "expired": row["expires_at"] <= now,
        }
