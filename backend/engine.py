"""
Keystroke provenance engine.

Synchronous library facade: ingest raw keystrokes into per-document ledgers,
then replay, verify, certify and segment them.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from authenticity import AuthenticityAnalyzer, AuthenticitySignals
from config import ProvenanceConfig, get_default_config
from integrity import IntegrityChecker, IntegrityReport
from ledger import IngestResult, LedgerRegistry
from normalizer import CanonicalEvent
from replay import reconstruct
from report import VerificationReportBuilder
from schemas import (
    BranchModel,
    CommitModel,
    DocumentSummary,
    SegmentRequest,
    SegmentResponse,
)
from segmentation import segment
from session_stats import SessionStatistics
from timeline import build_timeline_events, heatmap, typing_statistics

logger = logging.getLogger(__name__)

DocumentLike = Union[DocumentSummary, Mapping[str, Any]]


def as_document(document: DocumentLike) -> DocumentSummary:
    """Accept a DocumentSummary or a plain mapping (validated)."""
    if isinstance(document, DocumentSummary):
        return document
    return DocumentSummary.model_validate(dict(document))


class ProvenanceEngine:
    """Verification over in-memory ledgers."""

    def __init__(self, config: Optional[ProvenanceConfig] = None, registry: Optional[LedgerRegistry] = None):
        self.config = config or get_default_config()
        self.registry = registry or LedgerRegistry(self.config)
        self.integrity_checker = IntegrityChecker(self.config)
        self.analyzer = AuthenticityAnalyzer(self.config)
        self.statistics = SessionStatistics(self.config)
        self.reports = VerificationReportBuilder()

    # Ledger access

    def ingest(self, document_id: str, events: Iterable[Any], session_start: Optional[float] = None) -> IngestResult:
        return self.registry.ingest(document_id, events, session_start)

    def events(self, document_id: str) -> List[CanonicalEvent]:
        return self.registry.get(document_id).ordered()

    def version(self, document_id: str) -> int:
        return self.registry.get(document_id).version

    # Checks over an event list; shared with the async handlers

    def report_for(
        self,
        events: List[CanonicalEvent],
        document: DocumentSummary,
    ) -> Dict[str, Any]:
        integrity = self.integrity_checker.check(events, document.character_count)
        authenticity = self.analyzer.analyze(events)
        statistics = self.statistics.analyze(events)
        return self.reports.build(document, integrity, authenticity, statistics)

    def verdict_for(self, events: List[CanonicalEvent], document: DocumentSummary) -> Dict[str, Any]:
        integrity = self.integrity_checker.check(events, document.character_count)
        return self.reports.verify_authenticity(integrity, self.analyzer.analyze(events))

    def certificate_for(self, events: List[CanonicalEvent], document: DocumentSummary) -> Dict[str, Any]:
        integrity = self.integrity_checker.check(events, document.character_count)
        return self.reports.certificate(document, integrity, self.analyzer.analyze(events))

    def segment_events(self, events: List[CanonicalEvent], request: Optional[SegmentRequest] = None) -> SegmentResponse:
        request = request or SegmentRequest()
        commits, branches = segment(
            events,
            max_commits=request.max_commits,
            pause_threshold_base=request.pause_threshold_ms,
            width=request.width,
            height=request.height,
            enrich_sparse=request.enrich_sparse,
            config=self.config,
        )
        return SegmentResponse(
            commits=[CommitModel(**c.to_dict()) for c in commits],
            branches=[BranchModel(**b.to_dict()) for b in branches],
        )

    def timeline_for(self, events: List[CanonicalEvent], word_count: int = 0,
                     container_width: float = 800.0) -> Dict[str, Any]:
        return {
            "statistics": typing_statistics(events, word_count),
            "events": build_timeline_events(events),
            "heatmap": heatmap(events, container_width),
        }

    # Document-level operations

    def reconstruct(self, document_id: str) -> str:
        return reconstruct(self.events(document_id))

    def integrity(self, document_id: str, content_length: int) -> IntegrityReport:
        return self.integrity_checker.check(self.events(document_id), content_length)

    def authenticity(self, document_id: str) -> AuthenticitySignals:
        return self.analyzer.analyze(self.events(document_id))

    def verify(self, document: DocumentLike) -> Dict[str, Any]:
        """
        Full verification report for a document.

        Args:
            document: DocumentSummary or mapping with at least ``id`` and
                ``content``

        Returns:
            Nested report dict
        """
        document = as_document(document)
        return self.report_for(self.events(document.id), document)

    def verify_authenticity(self, document: DocumentLike) -> Dict[str, Any]:
        document = as_document(document)
        return self.verdict_for(self.events(document.id), document)

    def certificate(self, document: DocumentLike) -> Dict[str, Any]:
        document = as_document(document)
        return self.certificate_for(self.events(document.id), document)

    def segment(self, document_id: str, request: Optional[SegmentRequest] = None) -> SegmentResponse:
        return self.segment_events(self.events(document_id), request)

    def timeline(self, document_id: str, word_count: int = 0, container_width: float = 800.0) -> Dict[str, Any]:
        return self.timeline_for(self.events(document_id), word_count, container_width)
