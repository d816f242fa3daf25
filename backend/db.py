"""
Postgres storage for keystroke ledgers.
"""
import asyncpg # type: ignore
import logging
import os
from typing import List, Optional

from normalizer import CanonicalEvent, EventNormalizer, normalizer as default_normalizer

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS keystroke_events (
    id BIGSERIAL PRIMARY KEY,
    document_id TEXT NOT NULL,
    sequence_number BIGINT NOT NULL,
    event_type TEXT NOT NULL,
    key_code TEXT NOT NULL,
    character TEXT,
    event_timestamp DOUBLE PRECISION NOT NULL,
    cursor_position INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (document_id, sequence_number)
)
"""


class KeystrokeStore:
    """Async Postgres connection pool manager for keystroke events."""

    def __init__(self, normalizer: Optional[EventNormalizer] = None):
        self.pool: Optional[asyncpg.Pool] = None
        self.normalizer = normalizer or default_normalizer

    async def connect(self):
        """Initialize connection pool."""
        self.pool = await asyncpg.create_pool(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=int(os.getenv("POSTGRES_PORT", "5432")),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            database=os.getenv("POSTGRES_DB", "provenance"),
            min_size=2,
            max_size=10,
        )
        logger.info("Connected to Postgres keystroke store")

    async def disconnect(self):
        """Close connection pool."""
        if self.pool:
            await self.pool.close()

    async def ensure_schema(self):
        async with self.pool.acquire() as conn:
            await conn.execute(SCHEMA)

    async def append_events(self, document_id: str, events: List[CanonicalEvent]) -> int:
        """
        Append events, skipping sequence numbers already stored.

        The unique constraint serializes racing writers: whichever insert
        lands second becomes a no-op.

        Returns:
            Number of rows actually inserted
        """
        if not events:
            return 0

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                INSERT INTO keystroke_events
                (document_id, sequence_number, event_type, key_code, character,
                 event_timestamp, cursor_position)
                SELECT $1, u.seq, u.etype, u.kcode, u.chr, u.ts, u.cursor
                FROM unnest($2::bigint[], $3::text[], $4::text[], $5::text[],
                            $6::double precision[], $7::integer[])
                     AS u(seq, etype, kcode, chr, ts, cursor)
                ON CONFLICT (document_id, sequence_number) DO NOTHING
                RETURNING sequence_number
                """,
                document_id,
                [e.sequence_number for e in events],
                [e.event_type.value for e in events],
                [e.key_code for e in events],
                [e.character for e in events],
                [e.timestamp for e in events],
                [e.cursor_position for e in events],
            )
            return len(rows)

    async def load_events(self, document_id: str) -> List[CanonicalEvent]:
        """
        Load a document's events ordered by sequence number.

        Returns:
            List of CanonicalEvent (empty for an unknown document)
        """
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT event_type, key_code, character,
                       event_timestamp AS timestamp, sequence_number, cursor_position
                FROM keystroke_events
                WHERE document_id = $1
                ORDER BY sequence_number
                """,
                document_id
            )
            return [self.normalizer.restore(row) for row in rows]

    async def count_events(self, document_id: str) -> int:
        """Event count, used as the ledger version for cache keys."""
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT count(*) FROM keystroke_events WHERE document_id = $1",
                document_id
            )


# Global store instance
store = KeystrokeStore()
