"""
Verification policy: confidence scoring and status classification.

The overall status is a pure function of the confidence score:
- VERIFIED_HIGH_CONFIDENCE: 90-100
- VERIFIED_MEDIUM_CONFIDENCE: 70-89
- VERIFIED_LOW_CONFIDENCE: 50-69
- QUESTIONABLE: 30-49
- UNVERIFIED: below 30
"""
from enum import Enum
from typing import Dict, List, Tuple

from authenticity import AuthenticitySignals
from integrity import IntegrityReport


class VerificationStatus(str, Enum):
    """Overall verification outcome."""
    VERIFIED_HIGH_CONFIDENCE = "verified_high_confidence"
    VERIFIED_MEDIUM_CONFIDENCE = "verified_medium_confidence"
    VERIFIED_LOW_CONFIDENCE = "verified_low_confidence"
    QUESTIONABLE = "questionable"
    UNVERIFIED = "unverified"


# Points per passing check
INTEGRITY_CHECK_POINTS = 10
AUTHENTICITY_CHECK_POINTS = 20

# Ordered ladder: first floor the score reaches wins
STATUS_LADDER: List[Tuple[int, VerificationStatus]] = [
    (90, VerificationStatus.VERIFIED_HIGH_CONFIDENCE),
    (70, VerificationStatus.VERIFIED_MEDIUM_CONFIDENCE),
    (50, VerificationStatus.VERIFIED_LOW_CONFIDENCE),
    (30, VerificationStatus.QUESTIONABLE),
]


def calculate_confidence_score(integrity: IntegrityReport, authenticity: AuthenticitySignals) -> int:
    """
    Weighted sum of passing checks.

    Four integrity checks are worth 10 points each and three authenticity
    signals 20 points each, for a range of 0-100.

    Args:
        integrity: Integrity check results
        authenticity: Timing signal results

    Returns:
        Confidence score in [0, 100]
    """
    score = (
        INTEGRITY_CHECK_POINTS * integrity.checks_passed
        + AUTHENTICITY_CHECK_POINTS * authenticity.checks_passed
    )
    return max(0, min(100, score))


def determine_status(score: float) -> VerificationStatus:
    """
    Classify a confidence score.

    Args:
        score: Confidence score

    Returns:
        VerificationStatus
    """
    for floor, status in STATUS_LADDER:
        if score >= floor:
            return status
    return VerificationStatus.UNVERIFIED


def all_checks_pass(integrity: IntegrityReport, authenticity: AuthenticitySignals) -> bool:
    """Pass/fail gate used by the short verification summary and certificates."""
    return (
        integrity.sequence_integrity.valid
        and integrity.temporal_consistency.valid
        and integrity.duplicate_detection.passed
        and authenticity.natural_typing_patterns.detected
    )


def get_status_floors() -> Dict[str, int]:
    """
    Get the lower bound of each status band.

    Returns:
        Dictionary mapping status value to its minimum score
    """
    floors = {status.value: floor for floor, status in STATUS_LADDER}
    floors[VerificationStatus.UNVERIFIED.value] = 0
    return floors
