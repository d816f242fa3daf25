"""
Per-document keystroke event ledger.

The ledger is append-only and keyed by sequence number: a second event
with a sequence number that is already present is dropped, which makes
ingestion idempotent and safe to retry.
"""
import logging
import threading
from itertools import islice
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from config import ProvenanceConfig, get_default_config
from normalizer import CanonicalEvent, EventNormalizer

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Counts reported back to the caller of an ingestion."""
    appended: int = 0
    skipped_duplicate: int = 0
    rejected: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "appended": self.appended,
            "skipped_duplicate": self.skipped_duplicate,
            "rejected": self.rejected,
        }


class EventLedger:
    """Ordered, deduplicated store of canonical events for one document."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        self._events: Dict[int, CanonicalEvent] = {}
        self._lock = threading.Lock()

    def append(self, event: CanonicalEvent) -> bool:
        """
        Append an event unless its sequence number is already present.

        Returns:
            True if appended, False if it was a duplicate
        """
        with self._lock:
            if event.sequence_number in self._events:
                return False
            self._events[event.sequence_number] = event
            return True

    def ordered(self) -> List[CanonicalEvent]:
        """Events sorted by sequence number, regardless of arrival order."""
        with self._lock:
            return [self._events[seq] for seq in sorted(self._events)]

    def sequence_numbers(self) -> List[int]:
        with self._lock:
            return sorted(self._events)

    @property
    def version(self) -> int:
        """Monotonic version: the ledger only grows, so its size suffices."""
        return len(self)

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, sequence_number: int) -> bool:
        return sequence_number in self._events


def normalize_batch(
    events: Iterable[Any],
    normalizer: EventNormalizer,
    session_start: Optional[float] = None,
) -> Tuple[List[CanonicalEvent], int]:
    """
    Normalize a raw batch, truncated to ``max_batch_size`` entries.

    Malformed records are counted, never raised; the batch never aborts.

    Args:
        events: Raw records in caller order
        normalizer: Normalizer carrying the thresholds
        session_start: Anchor for session-relative timestamps

    Returns:
        Tuple of (accepted events in caller order, rejected count)

    Raises:
        ValueError: If ``events`` is not a collection of records
    """
    if isinstance(events, (str, bytes, Mapping)) or not isinstance(events, Iterable):
        raise ValueError("events must be a list of records")

    batch = list(islice(events, normalizer.config.max_batch_size))

    accepted: List[CanonicalEvent] = []
    rejected = 0
    for raw in batch:
        normalized = normalizer.normalize(raw, session_start)
        if normalized.accepted:
            accepted.append(normalized.event)
        else:
            rejected += 1
            logger.debug(f"Rejected event: {normalized.rejected_reasons}")
    return accepted, rejected


def ingest_into(
    ledger: EventLedger,
    events: Iterable[Any],
    normalizer: EventNormalizer,
    session_start: Optional[float] = None,
) -> IngestResult:
    """
    Normalize a raw batch and append it to a ledger.

    Returns:
        IngestResult with appended / skipped_duplicate / rejected counts
    """
    accepted, rejected = normalize_batch(events, normalizer, session_start)

    result = IngestResult(rejected=rejected)
    for event in accepted:
        if ledger.append(event):
            result.appended += 1
        else:
            result.skipped_duplicate += 1

    logger.info(
        f"Ingested batch for document {ledger.document_id}: "
        f"appended={result.appended}, skipped={result.skipped_duplicate}, "
        f"rejected={result.rejected}"
    )
    return result


class LedgerRegistry:
    """In-memory ledgers indexed by document id."""

    def __init__(self, config: Optional[ProvenanceConfig] = None):
        self.config = config or get_default_config()
        self.normalizer = EventNormalizer(self.config)
        self._ledgers: Dict[str, EventLedger] = {}
        self._lock = threading.Lock()

    def get(self, document_id: str) -> EventLedger:
        """Return the document's ledger, creating it empty on first use."""
        with self._lock:
            ledger = self._ledgers.get(document_id)
            if ledger is None:
                ledger = EventLedger(document_id)
                self._ledgers[document_id] = ledger
            return ledger

    def ingest(
        self,
        document_id: str,
        events: Iterable[Any],
        session_start: Optional[float] = None,
    ) -> IngestResult:
        return ingest_into(self.get(document_id), events, self.normalizer, session_start)

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._ledgers
