"""
Tests for the async provenance handlers.
"""
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
from cache import ReportCache
from handlers import ProvenanceHandler
from schemas import DocumentSummary, IngestRequest, IngestResponse, SegmentResponse


class FakeStore:
    """In-memory stand-in for KeystrokeStore with the same conflict semantics."""

    def __init__(self):
        self.rows = {}

    async def append_events(self, document_id, events):
        appended = 0
        stored = self.rows.setdefault(document_id, {})
        for event in events:
            if event.sequence_number not in stored:
                stored[event.sequence_number] = event
                appended += 1
        return appended

    async def load_events(self, document_id):
        stored = self.rows.get(document_id, {})
        return [stored[seq] for seq in sorted(stored)]

    async def count_events(self, document_id):
        return len(self.rows.get(document_id, {}))


class FakeCache:
    """Dict-backed report cache using the real key layout; records hits."""

    def __init__(self):
        self.reports = {}
        self.hits = 0
        self.keys = ReportCache()

    async def get_report(self, document, version):
        report = self.reports.get(self.keys._report_key(document, version))
        if report is not None:
            self.hits += 1
        return report

    async def set_report(self, document, version, report, ttl=None):
        self.reports[self.keys._report_key(document, version)] = report


def raw(seq, character="a", key_code=65):
    return {
        "event_type": "keydown",
        "key_code": key_code,
        "character": character,
        "timestamp": 1_700_000_000_000 + seq * 150,
        "sequence_number": seq,
        "cursor_position": seq,
    }


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def fake_cache():
    return FakeCache()


@pytest.fixture
def handler(store, fake_cache):
    return ProvenanceHandler(store, fake_cache)


class TestIngest:
    """Test ingestion through the store."""

    @pytest.mark.asyncio
    async def test_idempotent(self, handler):
        request = IngestRequest(document_id="doc", events=[raw(i) for i in range(10)])

        first = await handler.ingest(request)
        second = await handler.ingest(request)

        assert isinstance(first, IngestResponse)
        assert first.model_dump() == {"appended": 10, "skipped_duplicate": 0, "rejected": 0}
        assert second.model_dump() == {"appended": 0, "skipped_duplicate": 10, "rejected": 0}

    @pytest.mark.asyncio
    async def test_duplicates_inside_batch(self, handler, store):
        request = IngestRequest(document_id="doc", events=[raw(7, "a"), raw(7, "b"), "junk"])

        result = await handler.ingest(request)

        assert result.model_dump() == {"appended": 1, "skipped_duplicate": 1, "rejected": 1}
        assert (await store.load_events("doc"))[0].character == "a"

    @pytest.mark.asyncio
    async def test_environment_overrides_apply(self, monkeypatch, store, fake_cache):
        """Test the handler's engine picks up PROVENANCE_* overrides."""
        monkeypatch.setenv("PROVENANCE_MAX_BATCH_SIZE", "4")
        handler = ProvenanceHandler(store, fake_cache)

        result = await handler.ingest(IngestRequest(document_id="doc", events=[raw(i) for i in range(10)]))

        assert handler.engine.config.max_batch_size == 4
        assert result.appended == 4

    @pytest.mark.asyncio
    async def test_reconstruct(self, handler):
        events = [raw(0, "h"), raw(1, "i"), raw(2, "!"), raw(3, None, key_code=8)]
        await handler.ingest(IngestRequest(document_id="doc", events=events))
        assert await handler.reconstruct("doc") == "hi"


class TestVerify:
    """Test cached verification."""

    @pytest.mark.asyncio
    async def test_report_cached_per_version(self, handler, fake_cache):
        await handler.ingest(IngestRequest(document_id="doc", events=[raw(i) for i in range(30)]))
        document = DocumentSummary(id="doc", content="a" * 15)

        first = await handler.verify(document)
        second = await handler.verify(document)

        assert fake_cache.hits == 1
        assert second == first

    @pytest.mark.asyncio
    async def test_new_keystrokes_miss_cache(self, handler, fake_cache):
        await handler.ingest(IngestRequest(document_id="doc", events=[raw(i) for i in range(30)]))
        document = DocumentSummary(id="doc", content="a" * 15)
        await handler.verify(document)

        await handler.ingest(IngestRequest(document_id="doc", events=[raw(30)]))
        report = await handler.verify(document)

        assert fake_cache.hits == 0
        assert report["document_info"]["keystroke_count"] == 31

    @pytest.mark.asyncio
    async def test_metadata_change_misses_cache(self, handler, fake_cache):
        """Test a retitled document is not served the old document_info."""
        await handler.ingest(IngestRequest(document_id="doc", events=[raw(i) for i in range(30)]))
        await handler.verify(DocumentSummary(id="doc", title="Draft", content="a" * 15))

        report = await handler.verify(DocumentSummary(id="doc", title="Final", content="a" * 15))

        assert fake_cache.hits == 0
        assert report["document_info"]["title"] == "Final"

    @pytest.mark.asyncio
    async def test_unconnected_cache_still_verifies(self, store):
        handler = ProvenanceHandler(store, ReportCache())
        report = await handler.verify({"id": "empty", "content": "text"})
        assert report["verification_summary"]["overall_status"] == "unverified"

    @pytest.mark.asyncio
    async def test_certificate_and_summary(self, handler, natural_events):
        events = [dict(e.to_dict(), timestamp=e.timestamp * 1000) for e in natural_events]
        await handler.ingest(IngestRequest(document_id="doc", events=events))
        document = DocumentSummary(id="doc", content="x" * 50)

        assert (await handler.verify_authenticity(document))["verified"] is True
        assert (await handler.certificate(document))["verification"]["status"] == "VERIFIED"


class TestVisualization:
    """Test segmentation and timeline."""

    @pytest.mark.asyncio
    async def test_segment(self, handler):
        await handler.ingest(IngestRequest(document_id="doc", events=[raw(i) for i in range(20)]))
        response = await handler.segment("doc")
        assert isinstance(response, SegmentResponse)
        assert sum(c.keystrokes for c in response.commits) >= 20

    @pytest.mark.asyncio
    async def test_timeline(self, handler):
        await handler.ingest(IngestRequest(document_id="doc", events=[raw(i) for i in range(20)]))
        timeline = await handler.timeline("doc")
        assert timeline["statistics"]["total_keystrokes"] == 20
