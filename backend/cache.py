"""
Redis cache for verification reports.

Reports are keyed by document id, ledger version, content length and a
digest of the document summary, so a new keystroke or an edited document
simply misses and recomputes. Redis trouble degrades to a miss; it never
fails a verification.
"""
import hashlib
import json
import logging
import os
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from schemas import DocumentSummary

logger = logging.getLogger(__name__)


class ReportCache:
    """Report cache over redis.asyncio; an unconnected cache always misses."""

    def __init__(self):
        self.redis: Optional[redis.Redis] = None
        self.settings = {
            "host": os.getenv("REDIS_HOST", "localhost"),
            "port": int(os.getenv("REDIS_PORT", "6379")),
            "password": os.getenv("REDIS_PASSWORD") or None,
            "db": int(os.getenv("REDIS_DB", "0")),
        }
        self.report_ttl = int(os.getenv("REPORT_CACHE_TTL", "3600"))

    async def connect(self):
        self.redis = redis.Redis(decode_responses=True, **self.settings)
        logger.info(f"Report cache using redis at {self.settings['host']}:{self.settings['port']}")

    async def disconnect(self):
        if self.redis is not None:
            await self.redis.close()
            self.redis = None

    def _report_key(self, document: DocumentSummary, version: int) -> str:
        """Generate cache key for a report: id, ledger version and a digest of the summary."""
        digest = hashlib.sha1(document.model_dump_json(exclude={"id"}).encode("utf-8")).hexdigest()[:16]
        return f"report:{document.id}:{version}:{document.character_count}:{digest}"

    async def get_report(self, document: DocumentSummary, version: int) -> Optional[Dict[str, Any]]:
        """
        Retrieve a cached report.

        Returns:
            Report dict or None on a miss, when unconnected, on Redis errors
            or on a value that is not valid JSON
        """
        if self.redis is None:
            return None

        key = self._report_key(document, version)
        try:
            data = await self.redis.get(key)
        except (RedisError, OSError) as e:
            logger.warning(f"Report cache read failed for {key}: {e}")
            return None

        if not data:
            return None

        try:
            return json.loads(data)
        except ValueError as e:
            logger.warning(f"Discarding unreadable cached report {key}: {e}")
            return None

    async def set_report(
        self,
        document: DocumentSummary,
        version: int,
        report: Dict[str, Any],
        ttl: Optional[int] = None
    ):
        """
        Cache a report.

        Args:
            document: Document summary the report was built for
            version: Ledger version the report was computed from
            report: Report dict
            ttl: Time-to-live in seconds (uses default if None)
        """
        if self.redis is None:
            return

        key = self._report_key(document, version)
        try:
            await self.redis.setex(
                key,
                ttl or self.report_ttl,
                json.dumps(report)
            )
        except (RedisError, OSError) as e:
            logger.warning(f"Report cache write failed for {key}: {e}")

    async def ping(self) -> bool:
        """
        Test Redis connection.

        Returns:
            True if connected, False otherwise
        """
        if self.redis is None:
            return False

        try:
            await self.redis.ping()
            return True
        except (RedisError, OSError):
            return False


# Global cache instance
cache = ReportCache()
