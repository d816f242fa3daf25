"""
Async handlers for a request layer.

This module implements:
- Ingest flow: normalize a raw batch and append it to Postgres
- Verify flow: full report, cached per ledger version in Redis
- Pass/fail summary, certificate, replay, segmentation and timeline
"""
import logging
from typing import Any, Dict, Optional

from cache import ReportCache
from config import ProvenanceConfig
from db import KeystrokeStore
from engine import DocumentLike, ProvenanceEngine, as_document
from ledger import IngestResult, normalize_batch
from replay import reconstruct
from schemas import IngestRequest, IngestResponse, SegmentRequest, SegmentResponse

logger = logging.getLogger(__name__)


class ProvenanceHandler:
    """Handler for keystroke provenance endpoint logic."""

    def __init__(self, store: KeystrokeStore, cache: ReportCache, engine: Optional[ProvenanceEngine] = None):
        self.store = store
        self.cache = cache
        self.engine = engine or ProvenanceEngine(ProvenanceConfig.from_env())

    async def ingest(self, request: IngestRequest) -> IngestResponse:
        """
        Normalize and store one batch of raw keystrokes.

        Sequence numbers already stored (including repeats inside the
        batch) are skipped by the database and counted as duplicates.

        Args:
            request: Validated ingest request

        Returns:
            IngestResponse with appended / skipped_duplicate / rejected counts
        """
        accepted, rejected = normalize_batch(
            request.events, self.engine.registry.normalizer, request.session_start
        )
        appended = await self.store.append_events(request.document_id, accepted)

        result = IngestResult(
            appended=appended,
            skipped_duplicate=len(accepted) - appended,
            rejected=rejected,
        )
        logger.info(f"Stored batch for document {request.document_id}: {result.to_dict()}")
        return IngestResponse(**result.to_dict())

    async def reconstruct(self, document_id: str) -> str:
        return reconstruct(await self.store.load_events(document_id))

    async def verify(self, document: DocumentLike) -> Dict[str, Any]:
        """
        Full verification report, served from cache when the ledger and the
        document summary are unchanged.

        Args:
            document: DocumentSummary or mapping with at least ``id``

        Returns:
            Nested report dict
        """
        document = as_document(document)
        version = await self.store.count_events(document.id)

        cached = await self.cache.get_report(document, version)
        if cached is not None:
            logger.debug(f"Report cache hit for document {document.id} at version {version}")
            return cached

        events = await self.store.load_events(document.id)
        report = self.engine.report_for(events, document)
        await self.cache.set_report(document, len(events), report)
        return report

    async def verify_authenticity(self, document: DocumentLike) -> Dict[str, Any]:
        document = as_document(document)
        events = await self.store.load_events(document.id)
        return self.engine.verdict_for(events, document)

    async def certificate(self, document: DocumentLike) -> Dict[str, Any]:
        document = as_document(document)
        events = await self.store.load_events(document.id)
        return self.engine.certificate_for(events, document)

    async def segment(self, document_id: str, request: Optional[SegmentRequest] = None) -> SegmentResponse:
        events = await self.store.load_events(document_id)
        return self.engine.segment_events(events, request)

    async def timeline(self, document_id: str, word_count: int = 0) -> Dict[str, Any]:
        events = await self.store.load_events(document_id)
        return self.engine.timeline_for(events, word_count)
