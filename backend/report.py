"""
Verification report assembly.

Combines integrity checks, timing signals and session statistics into the
nested report returned to callers, plus the short pass/fail summary and the
verification certificate.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from authenticity import AuthenticitySignals
from integrity import IntegrityReport
from policy import all_checks_pass, calculate_confidence_score, determine_status
from schemas import CertificateModel, CertificateVerification, DocumentSummary

logger = logging.getLogger(__name__)

ISSUER = "Keystroke Provenance Verification v1.0"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class VerificationReportBuilder:
    """Builds verification reports from already-computed check results."""

    def document_info(self, document: DocumentSummary, keystroke_count: int) -> Dict[str, Any]:
        return {
            "id": document.id,
            "title": document.title,
            "public_slug": document.public_slug,
            "word_count": document.effective_word_count,
            "character_count": document.character_count,
            "keystroke_count": keystroke_count,
            "author": document.author,
            "published_at": _iso(document.published_at),
        }

    def key_findings(
        self,
        integrity: IntegrityReport,
        authenticity: AuthenticitySignals,
        statistics: Optional[Dict[str, Any]] = None,
    ) -> List[str]:
        """One human-readable line per check, positive or negative."""
        findings = []

        sequence = integrity.sequence_integrity
        if sequence.valid:
            findings.append("Keystroke sequence integrity verified")
        elif sequence.total_expected == 0:
            findings.append("No keystroke data available for verification")
        else:
            findings.append(f"Keystroke sequence gaps detected ({sequence.missing_count} missing)")

        if integrity.temporal_consistency.valid:
            findings.append("Keystroke timestamps are consistently ordered")
        else:
            findings.append(integrity.temporal_consistency.message)

        duplicates = integrity.duplicate_detection
        if duplicates.has_duplicates:
            findings.append(f"Duplicate keystrokes found ({duplicates.duplicate_count} extra records)")
        elif duplicates.sufficient_data:
            findings.append("No duplicate keystrokes found")

        completeness = integrity.data_completeness
        if completeness.within_expected_range:
            findings.append("Keystroke volume consistent with document length")
        else:
            findings.append(
                f"Keystroke volume outside expected range "
                f"({completeness.keystroke_to_character_ratio} per character)"
            )

        if authenticity.natural_typing_patterns.detected:
            findings.append("Natural human typing patterns detected")
        else:
            findings.append("Typing patterns show non-human characteristics")

        if authenticity.timing_variance.natural_variance:
            findings.append("Timing variance consistent with human typing")
        else:
            findings.append("Timing variance outside normal human range")

        if authenticity.pause_patterns.natural_pattern:
            findings.append("Pause structure consistent with human writing")
        else:
            findings.append("Pause structure atypical for human writing")

        if statistics and statistics.get("paste_events"):
            findings.append(f"Paste events recorded ({statistics['paste_events']})")

        return findings

    def recommendations(self, integrity: IntegrityReport, authenticity: AuthenticitySignals) -> List[str]:
        """Additive recommendations; empty when every check passed."""
        recommendations = []

        if not integrity.sequence_integrity.valid:
            recommendations.append("Review keystroke capture system for data loss issues")
        if not integrity.temporal_consistency.valid:
            recommendations.append("Investigate timestamp synchronization issues")
        if not integrity.duplicate_detection.passed:
            recommendations.append("Check for duplicate keystroke recording bugs")
        if not integrity.data_completeness.within_expected_range:
            recommendations.append("Compare captured keystrokes against the saved document content")
        if not authenticity.natural_typing_patterns.detected:
            recommendations.append("Manual review recommended - patterns may indicate automation")
        if not authenticity.timing_variance.natural_variance:
            recommendations.append("Inspect timing variance for scripted fixed-delay input")
        if not authenticity.pause_patterns.natural_pattern:
            recommendations.append("Inspect pause structure for bulk replay")

        if recommendations:
            recommendations.append("Consider additional verification methods for critical documents")

        return recommendations

    def summary(self, integrity: IntegrityReport, authenticity: AuthenticitySignals,
                statistics: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        score = calculate_confidence_score(integrity, authenticity)
        return {
            "overall_status": determine_status(score).value,
            "confidence_level": score,
            "key_findings": self.key_findings(integrity, authenticity, statistics),
            "recommendations": self.recommendations(integrity, authenticity),
        }

    def build(
        self,
        document: DocumentSummary,
        integrity: IntegrityReport,
        authenticity: AuthenticitySignals,
        statistics: Optional[Dict[str, Any]] = None,
        generated_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Compose the full verification report.

        Args:
            document: Document metadata and content
            integrity: Integrity check results
            authenticity: Timing signal results
            statistics: Session statistics block ({} when absent)
            generated_at: Report timestamp (now if None)

        Returns:
            Nested report dict
        """
        statistics = statistics or {}
        generated_at = generated_at or datetime.now(timezone.utc)
        summary = self.summary(integrity, authenticity, statistics)

        logger.info(
            f"Verification report for document {document.id}: "
            f"status={summary['overall_status']}, confidence={summary['confidence_level']}"
        )

        return {
            "document_info": self.document_info(document, integrity.data_completeness.keystroke_count),
            "data_integrity": integrity.to_dict(),
            "authenticity_analysis": authenticity.to_dict(),
            "statistical_analysis": statistics,
            "verification_summary": summary,
            "generated_at": generated_at.isoformat(),
        }

    def collect_issues(self, integrity: IntegrityReport, authenticity: AuthenticitySignals) -> List[str]:
        issues = []
        if not integrity.sequence_integrity.valid:
            issues.append("Sequence integrity compromised")
        if not integrity.temporal_consistency.valid:
            issues.append("Temporal inconsistencies detected")
        if integrity.duplicate_detection.has_duplicates:
            issues.append("Duplicate keystrokes found")
        if not authenticity.natural_typing_patterns.detected:
            issues.append("Unnatural typing patterns detected")
        if not authenticity.timing_variance.natural_variance:
            issues.append("Suspicious timing variance")
        return issues

    def verify_authenticity(self, integrity: IntegrityReport, authenticity: AuthenticitySignals) -> Dict[str, Any]:
        """Short pass/fail verdict."""
        verified = all_checks_pass(integrity, authenticity)
        integrity_ok = (
            integrity.sequence_integrity.valid
            and integrity.temporal_consistency.valid
            and integrity.duplicate_detection.passed
        )

        if verified:
            summary = "Keystroke data verified as authentic with high confidence"
        elif integrity_ok:
            summary = "Data integrity verified, authenticity analysis shows mixed results"
        else:
            summary = "Significant issues detected in keystroke data verification"

        return {
            "verified": verified,
            "confidence_score": calculate_confidence_score(integrity, authenticity),
            "issues": self.collect_issues(integrity, authenticity),
            "summary": summary,
        }

    def certificate(
        self,
        document: DocumentSummary,
        integrity: IntegrityReport,
        authenticity: AuthenticitySignals,
        issued_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Shareable certificate summarizing the verdict for one document."""
        verdict = self.verify_authenticity(integrity, authenticity)
        issued_at = issued_at or datetime.now(timezone.utc)

        certificate = CertificateModel(
            certificate_id=str(uuid.uuid4()),
            document={
                "title": document.title,
                "public_slug": document.public_slug,
                "author": document.author,
                "published_at": _iso(document.published_at),
            },
            verification=CertificateVerification(
                status="VERIFIED" if verdict["verified"] else "UNVERIFIED",
                confidence_score=verdict["confidence_score"],
                keystroke_count=integrity.data_completeness.keystroke_count,
                verification_date=issued_at.isoformat(),
            ),
            integrity_markers={
                "has_keystrokes": integrity.data_completeness.keystroke_count > 0,
                "sequence_integrity": integrity.sequence_integrity.valid,
                "temporal_consistency": integrity.temporal_consistency.valid,
                "natural_patterns": authenticity.natural_typing_patterns.detected,
            },
            issuer=ISSUER,
        )
        return certificate.model_dump()
