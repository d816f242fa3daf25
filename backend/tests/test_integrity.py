"""
Unit tests for integrity checks.
"""
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
from integrity import IntegrityChecker, assess_completeness, MAX_LISTED_MISSING
from normalizer import CanonicalEvent, EventType


def events_at(sequences, timestamps=None):
    timestamps = timestamps or [1_700_000_000.0 + i * 0.2 for i in range(len(sequences))]
    return [
        CanonicalEvent(EventType.KEY_DOWN, "65", "a", ts, seq, i)
        for i, (seq, ts) in enumerate(zip(sequences, timestamps))
    ]


@pytest.fixture
def checker():
    return IntegrityChecker()


class TestSequenceIntegrity:
    """Test sequence gap detection."""

    def test_gap_detected(self, checker):
        """Test {1,2,3,5,6} reports missing [4]."""
        result = checker.check_sequence_integrity(events_at([1, 2, 3, 5, 6]))

        assert result.valid is False
        assert result.missing_sequences == [4]
        assert result.missing_count == 1
        assert result.total_expected == 6
        assert result.integrity_percentage == pytest.approx(83.33)

    def test_contiguous(self, checker):
        result = checker.check_sequence_integrity(events_at(range(10, 20)))
        assert result.valid is True
        assert result.missing_sequences == []
        assert result.integrity_percentage == 100.0

    def test_empty(self, checker):
        result = checker.check_sequence_integrity([])
        assert result.valid is False
        assert result.message == "No keystroke data found"

    def test_huge_gap_listing_capped(self, checker):
        """Test a hostile gap is counted exactly but listed only partially."""
        result = checker.check_sequence_integrity(events_at([0, 10_000_000]))
        assert result.missing_count == 9_999_999
        assert len(result.missing_sequences) == MAX_LISTED_MISSING
        assert result.missing_sequences[:3] == [1, 2, 3]


class TestTemporalConsistency:
    """Test timestamp reversal tolerance."""

    @staticmethod
    def with_dips(count, dips):
        timestamps = [1_700_000_000.0 + i * 0.1 for i in range(count)]
        for k in dips:
            timestamps[k] = timestamps[k - 1] - 0.05
        return events_at(range(count), timestamps)

    def test_few_reversals_tolerated(self, checker):
        """Test 4 reversals over 99 pairs is within 5%."""
        result = checker.check_temporal_consistency(self.with_dips(100, [10, 20, 30, 40]))
        assert result.valid is True
        assert result.inconsistency_count == 4

    def test_many_reversals_fail(self, checker):
        result = checker.check_temporal_consistency(self.with_dips(100, range(5, 100, 10)))
        assert result.valid is False
        assert result.inconsistency_count == 10
        assert result.inconsistency_percentage == pytest.approx(10.1)

    def test_evaluated_in_sequence_order(self, checker):
        """Test arrival order is irrelevant; sequence order decides."""
        events = list(reversed(events_at(range(20))))
        assert checker.check_temporal_consistency(events).inconsistency_count == 0

    def test_single_event_insufficient(self, checker):
        result = checker.check_temporal_consistency(events_at([0]))
        assert result.valid is False
        assert "Insufficient" in result.message


class TestDuplicatesAndCompleteness:
    """Test duplicate detection and completeness ratio."""

    def test_duplicates_from_storage(self, checker):
        result = checker.check_duplicates(events_at([5, 6, 7, 7]))
        assert result.has_duplicates is True
        assert result.duplicate_sequences == [7]
        assert result.duplicate_count == 1
        assert result.passed is False

    def test_no_duplicates(self, checker):
        result = checker.check_duplicates(events_at(range(5)))
        assert result.passed is True

    def test_empty_duplicates_insufficient(self, checker):
        result = checker.check_duplicates([])
        assert result.has_duplicates is False
        assert result.passed is False

    def test_completeness_in_range(self, checker):
        result = checker.check_completeness(events_at(range(30)), 10)
        assert result.keystroke_to_character_ratio == 3.0
        assert result.within_expected_range is True
        assert result.expected_range == "15-50"
        assert result.completeness_assessment == "Normal - expected keystroke data"

    def test_completeness_zero_content(self, checker):
        result = checker.check_completeness(events_at(range(30)), 0)
        assert result.keystroke_to_character_ratio == 0.0
        assert result.within_expected_range is False

    def test_completeness_too_many(self, checker):
        result = checker.check_completeness(events_at(range(60)), 10)
        assert result.within_expected_range is False

    @pytest.mark.parametrize("ratio,label", [
        (0.5, "Very low - insufficient keystroke data"),
        (1.5, "Low - minimal keystroke data"),
        (5.0, "High - above average keystroke data"),
        (9.0, "Very high - excessive keystroke data"),
    ])
    def test_assessment_labels(self, ratio, label):
        assert assess_completeness(ratio) == label


class TestIntegrityReport:
    """Test the combined report."""

    def test_empty_ledger_passes_nothing(self, checker):
        report = checker.check([], 100)
        assert report.checks_passed == 0
        assert report.sequence_integrity.valid is False

    def test_clean_ledger_passes_everything(self, checker):
        report = checker.check(events_at(range(30)), 15)
        assert report.checks_passed == 4
        assert report.missing == []

    def test_to_dict_keys(self, checker):
        data = checker.check(events_at([1, 2, 3, 5, 6]), 3).to_dict()
        assert set(data) == {
            "sequence_integrity",
            "temporal_consistency",
            "data_completeness",
            "duplicate_detection",
        }
        assert data["sequence_integrity"]["missing_sequences"] == [4]
