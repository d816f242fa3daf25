"""
Unit tests for verification report assembly.
"""
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import uuid
from datetime import datetime, timezone

from authenticity import AuthenticityAnalyzer
from integrity import IntegrityChecker
from normalizer import CanonicalEvent, EventType
from report import VerificationReportBuilder, ISSUER
from schemas import CertificateModel, DocumentSummary
from session_stats import SessionStatistics


def build_report(events, content_length, **document_fields):
    document = DocumentSummary(id="doc-1", title="Essay", content="x" * content_length, **document_fields)
    integrity = IntegrityChecker().check(events, document.character_count)
    authenticity = AuthenticityAnalyzer().analyze(events)
    statistics = SessionStatistics().analyze(events)
    builder = VerificationReportBuilder()
    return builder, document, integrity, authenticity, statistics


class TestFullReport:
    """Test the nested verification report."""

    def test_report_shape(self, natural_events):
        builder, document, integrity, authenticity, statistics = build_report(natural_events, 50)
        report = builder.build(document, integrity, authenticity, statistics)

        assert set(report) == {
            "document_info",
            "data_integrity",
            "authenticity_analysis",
            "statistical_analysis",
            "verification_summary",
            "generated_at",
        }
        assert set(report["verification_summary"]) == {
            "overall_status", "confidence_level", "key_findings", "recommendations",
        }
        assert report["document_info"]["keystroke_count"] == len(natural_events)

    def test_everything_passes(self, natural_events):
        builder, document, integrity, authenticity, statistics = build_report(natural_events, 50)
        summary = builder.build(document, integrity, authenticity, statistics)["verification_summary"]

        assert summary["confidence_level"] == 100
        assert summary["overall_status"] == "verified_high_confidence"
        assert summary["recommendations"] == []
        assert "Natural human typing patterns detected" in summary["key_findings"]

    def test_robotic_typing_is_questionable(self, robotic_events):
        builder, document, integrity, authenticity, statistics = build_report(robotic_events, 15)
        summary = builder.build(document, integrity, authenticity, statistics)["verification_summary"]

        assert summary["confidence_level"] == 40
        assert summary["overall_status"] == "questionable"
        assert "Manual review recommended - patterns may indicate automation" in summary["recommendations"]
        assert summary["recommendations"][-1] == "Consider additional verification methods for critical documents"

    def test_empty_ledger(self):
        builder, document, integrity, authenticity, statistics = build_report([], 100)
        report = builder.build(document, integrity, authenticity, statistics)

        assert report["verification_summary"]["confidence_level"] == 0
        assert report["verification_summary"]["overall_status"] == "unverified"
        assert "No keystroke data available for verification" in report["verification_summary"]["key_findings"]
        assert report["statistical_analysis"] == {}
        assert report["data_integrity"]["sequence_integrity"]["valid"] is False

    def test_paste_finding(self, natural_events):
        paste = CanonicalEvent(EventType.PASTE, "86", "v", natural_events[-1].timestamp + 0.1, len(natural_events), 0)
        builder, document, integrity, authenticity, statistics = build_report(natural_events + [paste], 50)
        summary = builder.build(document, integrity, authenticity, statistics)["verification_summary"]

        assert "Paste events recorded (1)" in summary["key_findings"]
        assert statistics["content_origin"] == "mixed"

    def test_generated_at(self, natural_events):
        builder, document, integrity, authenticity, statistics = build_report(natural_events, 50)
        moment = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        report = builder.build(document, integrity, authenticity, statistics, generated_at=moment)
        assert report["generated_at"] == "2024-05-01T12:00:00+00:00"


class TestDocumentInfo:
    """Test document metadata in the report."""

    def test_word_count_strips_markup(self):
        document = DocumentSummary(id="d", content="<p>Hello <b>world</b></p>")
        info = VerificationReportBuilder().document_info(document, 0)
        assert info["word_count"] == 2
        assert info["character_count"] == len("<p>Hello <b>world</b></p>")

    def test_explicit_word_count_wins(self):
        document = DocumentSummary(id="d", content="one two", word_count=10)
        assert VerificationReportBuilder().document_info(document, 0)["word_count"] == 10


class TestVerifyAuthenticity:
    """Test the pass/fail summary."""

    def test_verified(self, natural_events):
        builder, _, integrity, authenticity, _ = build_report(natural_events, 50)
        result = builder.verify_authenticity(integrity, authenticity)

        assert result["verified"] is True
        assert result["confidence_score"] == 100
        assert result["issues"] == []
        assert result["summary"] == "Keystroke data verified as authentic with high confidence"

    def test_integrity_ok_authenticity_mixed(self, robotic_events):
        builder, _, integrity, authenticity, _ = build_report(robotic_events, 15)
        result = builder.verify_authenticity(integrity, authenticity)

        assert result["verified"] is False
        assert result["summary"] == "Data integrity verified, authenticity analysis shows mixed results"
        assert "Unnatural typing patterns detected" in result["issues"]
        assert "Suspicious timing variance" in result["issues"]

    def test_broken_integrity(self):
        builder, _, integrity, authenticity, _ = build_report([], 10)
        result = builder.verify_authenticity(integrity, authenticity)
        assert result["summary"] == "Significant issues detected in keystroke data verification"
        assert "Sequence integrity compromised" in result["issues"]


class TestCertificate:
    """Test verification certificates."""

    def test_certificate(self, natural_events):
        builder, document, integrity, authenticity, _ = build_report(
            natural_events, 50, author="Ada", public_slug="essay"
        )
        issued = datetime(2024, 5, 1, tzinfo=timezone.utc)
        certificate = builder.certificate(document, integrity, authenticity, issued_at=issued)

        uuid.UUID(certificate["certificate_id"])
        assert CertificateModel.model_validate(certificate).verification.status == "VERIFIED"
        assert certificate["issuer"] == ISSUER
        assert certificate["document"]["author"] == "Ada"
        assert certificate["verification"]["status"] == "VERIFIED"
        assert certificate["verification"]["keystroke_count"] == len(natural_events)
        assert certificate["verification"]["verification_date"] == issued.isoformat()
        assert certificate["integrity_markers"]["has_keystrokes"] is True

    def test_unverified_certificate(self):
        builder, document, integrity, authenticity, _ = build_report([], 10)
        certificate = builder.certificate(document, integrity, authenticity)
        assert certificate["verification"]["status"] == "UNVERIFIED"
        assert certificate["integrity_markers"]["has_keystrokes"] is False

    def test_certificate_ids_unique(self, natural_events):
        builder, document, integrity, authenticity, _ = build_report(natural_events, 50)
        first = builder.certificate(document, integrity, authenticity)
        second = builder.certificate(document, integrity, authenticity)
        assert first["certificate_id"] != second["certificate_id"]
