"""
Structural integrity checks over a document's keystroke events.

Four independent checks:
- Sequence integrity (gaps in sequence numbers)
- Temporal consistency (timestamps running backwards)
- Duplicate detection (sequence numbers stored more than once)
- Data completeness (raw events per final character)
"""
import logging
from collections import Counter
from itertools import islice
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional

from config import ProvenanceConfig, get_default_config
from normalizer import CanonicalEvent

logger = logging.getLogger(__name__)

# Gap listings stop here; missing_count stays exact
MAX_LISTED_MISSING = 1000


@dataclass
class SequenceIntegrity:
    valid: bool
    message: str
    missing_sequences: List[int] = field(default_factory=list)
    missing_count: int = 0
    total_expected: int = 0
    integrity_percentage: float = 0.0

    @property
    def passed(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "message": self.message,
            "missing_sequences": self.missing_sequences,
            "missing_count": self.missing_count,
            "total_expected": self.total_expected,
            "integrity_percentage": self.integrity_percentage,
        }


@dataclass
class TemporalConsistency:
    valid: bool
    message: str
    inconsistency_count: int = 0
    inconsistency_percentage: float = 0.0
    threshold_percentage: float = 5.0

    @property
    def passed(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "message": self.message,
            "inconsistency_count": self.inconsistency_count,
            "inconsistency_percentage": self.inconsistency_percentage,
            "threshold_percentage": self.threshold_percentage,
        }


@dataclass
class DuplicateDetection:
    has_duplicates: bool
    message: str
    duplicate_sequences: List[int] = field(default_factory=list)
    duplicate_count: int = 0
    sufficient_data: bool = True

    @property
    def passed(self) -> bool:
        return self.sufficient_data and not self.has_duplicates

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_duplicates": self.has_duplicates,
            "duplicate_sequences": self.duplicate_sequences,
            "duplicate_count": self.duplicate_count,
            "message": self.message,
        }


@dataclass
class DataCompleteness:
    content_character_count: int
    keystroke_count: int
    keystroke_to_character_ratio: float
    within_expected_range: bool
    expected_range: str
    completeness_assessment: str

    @property
    def passed(self) -> bool:
        return self.within_expected_range

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content_character_count": self.content_character_count,
            "keystroke_count": self.keystroke_count,
            "keystroke_to_character_ratio": self.keystroke_to_character_ratio,
            "within_expected_range": self.within_expected_range,
            "expected_range": self.expected_range,
            "completeness_assessment": self.completeness_assessment,
        }


@dataclass
class IntegrityReport:
    """Results of all four integrity checks."""
    sequence_integrity: SequenceIntegrity
    temporal_consistency: TemporalConsistency
    data_completeness: DataCompleteness
    duplicate_detection: DuplicateDetection

    @property
    def missing(self) -> List[int]:
        return self.sequence_integrity.missing_sequences

    @property
    def checks_passed(self) -> int:
        return sum([
            self.sequence_integrity.passed,
            self.temporal_consistency.passed,
            self.duplicate_detection.passed,
            self.data_completeness.passed,
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence_integrity": self.sequence_integrity.to_dict(),
            "temporal_consistency": self.temporal_consistency.to_dict(),
            "data_completeness": self.data_completeness.to_dict(),
            "duplicate_detection": self.duplicate_detection.to_dict(),
        }


def _gaps(sequences: List[int]) -> Iterator[int]:
    for a, b in zip(sequences, sequences[1:]):
        yield from range(a + 1, b)


def assess_completeness(ratio: float) -> str:
    if ratio <= 1.0:
        return "Very low - insufficient keystroke data"
    if ratio <= 2.0:
        return "Low - minimal keystroke data"
    if ratio <= 4.0:
        return "Normal - expected keystroke data"
    if ratio <= 6.0:
        return "High - above average keystroke data"
    return "Very high - excessive keystroke data"


class IntegrityChecker:
    """Runs structural checks over stored events."""

    def __init__(self, config: Optional[ProvenanceConfig] = None):
        self.config = config or get_default_config()

    def check_sequence_integrity(self, events: List[CanonicalEvent]) -> SequenceIntegrity:
        sequences = sorted({e.sequence_number for e in events})
        if not sequences:
            return SequenceIntegrity(valid=False, message="No keystroke data found")

        first, last = sequences[0], sequences[-1]
        total_expected = last - first + 1
        missing_count = total_expected - len(sequences)
        missing = list(islice(_gaps(sequences), MAX_LISTED_MISSING))

        return SequenceIntegrity(
            valid=missing_count == 0,
            message="Sequence integrity verified" if missing_count == 0 else "Missing sequence numbers detected",
            missing_sequences=missing,
            missing_count=missing_count,
            total_expected=total_expected,
            integrity_percentage=round(len(sequences) / total_expected * 100, 2),
        )

    def check_temporal_consistency(self, events: List[CanonicalEvent]) -> TemporalConsistency:
        threshold_pct = round(self.config.max_reversal_share * 100, 2)
        timestamps = [e.timestamp for e in sorted(events, key=lambda e: e.sequence_number)]
        if len(timestamps) < 2:
            return TemporalConsistency(
                valid=False,
                message="Insufficient data for temporal analysis",
                threshold_percentage=threshold_pct,
            )

        pairs = len(timestamps) - 1
        reversals = sum(1 for a, b in zip(timestamps, timestamps[1:]) if b < a)
        valid = reversals <= pairs * self.config.max_reversal_share

        return TemporalConsistency(
            valid=valid,
            message="Temporal consistency verified" if valid else "Significant timestamp inconsistencies detected",
            inconsistency_count=reversals,
            inconsistency_percentage=round(reversals / pairs * 100, 2),
            threshold_percentage=threshold_pct,
        )

    def check_duplicates(self, events: List[CanonicalEvent]) -> DuplicateDetection:
        if not events:
            return DuplicateDetection(
                has_duplicates=False,
                message="No keystroke data found",
                sufficient_data=False,
            )

        counts = Counter(e.sequence_number for e in events)
        duplicates = {seq: n for seq, n in counts.items() if n > 1}
        return DuplicateDetection(
            has_duplicates=bool(duplicates),
            message="Duplicate sequence numbers detected" if duplicates else "No duplicate sequences found",
            duplicate_sequences=sorted(duplicates),
            duplicate_count=sum(duplicates.values()) - len(duplicates),
        )

    def check_completeness(self, events: List[CanonicalEvent], content_length: int) -> DataCompleteness:
        content_length = max(0, int(content_length or 0))
        count = len(events)
        ratio = count / content_length if content_length > 0 else 0.0
        low = self.config.min_events_per_char
        high = self.config.max_events_per_char

        return DataCompleteness(
            content_character_count=content_length,
            keystroke_count=count,
            keystroke_to_character_ratio=round(ratio, 2),
            within_expected_range=low <= ratio <= high,
            expected_range=f"{int(content_length * low)}-{int(content_length * high)}",
            completeness_assessment=assess_completeness(ratio),
        )

    def check(self, events: Iterable[CanonicalEvent], content_length: int) -> IntegrityReport:
        """
        Run all integrity checks.

        Args:
            events: Stored events; may contain duplicates when read straight
                from storage
            content_length: Character count of the authored document

        Returns:
            IntegrityReport
        """
        events = list(events)
        report = IntegrityReport(
            sequence_integrity=self.check_sequence_integrity(events),
            temporal_consistency=self.check_temporal_consistency(events),
            data_completeness=self.check_completeness(events, content_length),
            duplicate_detection=self.check_duplicates(events),
        )
        logger.debug(f"Integrity checks passed: {report.checks_passed}/4 over {len(events)} events")
        return report
