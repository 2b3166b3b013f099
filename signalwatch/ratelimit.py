"""Keyed fixed-window rate limiting.

Each key gets a counter and a reset time. The first request (or the first
after the window has passed) opens a new window; requests beyond the limit
are denied until it resets. Because windows are fixed, a client can send up
to twice the nominal rate across a window boundary. That imprecision is
accepted for the traffic volumes involved.

Buckets are read and written without locking. Counts are advisory: two
concurrent requests may both see the same count. ``InMemoryBucketStore`` is
per process; deployments running several processes should share a
``SQLiteBucketStore`` (or another external store) instead.
"""

from __future__ import annotations

import logging
import math
import sqlite3
import time
from pathlib import Path
from typing import Callable

from .errors import RateLimitExceeded
from .models import RateLimitBucket, RateLimitDecision

logger = logging.getLogger(__name__)

HOUR = 60 * 60

# operation -> (max requests, window seconds)
RATE_LIMITS: dict[str, tuple[int, int]] = {
    "IMPORT_SIGNALS": (5, HOUR),
    "IMPORT_VALIDATE": (50, HOUR),
    "INGESTION_LIST": (1000, HOUR),
    "STATS_VIEW": (1000, HOUR),
}

DEFAULT_RATE_LIMIT = (1000, HOUR)


def get_rate_limit(operation: str) -> tuple[int, int]:
    """Look up (max requests, window seconds) for an operation."""
    limit = RATE_LIMITS.get(operation)
    if limit is None:
        logger.warning("Unknown rate-limited operation %r; using default", operation)
        return DEFAULT_RATE_LIMIT
    return limit


def rate_limit_key(actor_id: str, operation: str) -> str:
    return f"{operation}:{actor_id}"


class InMemoryBucketStore:
    """Buckets held in a dict for the life of the process."""

    def __init__(self):
        self._buckets: dict[str, RateLimitBucket] = {}

    def get(self, key: str) -> RateLimitBucket | None:
        return self._buckets.get(key)

    def put(self, key: str, bucket: RateLimitBucket) -> None:
        self._buckets[key] = bucket


class SQLiteBucketStore:
    """Buckets kept in a SQLite table, shared by every process using the file."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS rate_limit_buckets (
                    key      TEXT PRIMARY KEY,
                    count    INTEGER NOT NULL,
                    reset_at REAL NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(self.db_path))

    def get(self, key: str) -> RateLimitBucket | None:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT count, reset_at FROM rate_limit_buckets WHERE key = ?",
                (key,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return RateLimitBucket(count=row[0], reset_at=row[1])

    def put(self, key: str, bucket: RateLimitBucket) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO rate_limit_buckets (key, count, reset_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    count    = excluded.count,
                    reset_at = excluded.reset_at
                """,
                (key, bucket.count, bucket.reset_at),
            )
            conn.commit()
        finally:
            conn.close()


class RateLimiter:
    def __init__(self, store=None, clock: Callable[[], float] = time.time):
        self.store = store if store is not None else InMemoryBucketStore()
        self.clock = clock

    def check_limit(
        self, key: str, max_requests: int, window_seconds: float
    ) -> RateLimitDecision:
        """Count one request against *key* and say whether it is allowed."""
        now = self.clock()
        bucket = self.store.get(key)

        if bucket is None or now > bucket.reset_at:
            self.store.put(key, RateLimitBucket(count=1, reset_at=now + window_seconds))
            return RateLimitDecision(
                allowed=True,
                remaining=max_requests - 1,
                reset_seconds=math.ceil(window_seconds),
            )

        reset_seconds = math.ceil(bucket.reset_at - now)
        if bucket.count >= max_requests:
            return RateLimitDecision(allowed=False, remaining=0, reset_seconds=reset_seconds)

        bucket.count += 1
        self.store.put(key, bucket)
        return RateLimitDecision(
            allowed=True,
            remaining=max_requests - bucket.count,
            reset_seconds=reset_seconds,
        )

    def enforce(self, actor_id: str, operation: str) -> RateLimitDecision:
        """Check the configured limit for *operation*; raise if denied."""
        max_requests, window = get_rate_limit(operation)
        decision = self.check_limit(rate_limit_key(actor_id, operation), max_requests, window)
        if not decision.allowed:
            logger.info(
                "Rate limit hit: operation=%s actor=%s reset_in=%ss",
                operation,
                actor_id,
                decision.reset_seconds,
            )
            raise RateLimitExceeded(operation, decision.reset_seconds)
        return decision
