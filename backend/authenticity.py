"""
Keystroke timing authenticity analysis.

This module derives distributional signals from inter-key intervals:
- Naturalness detection with a bounded 0-100 confidence score
- Timing variance (coefficient of variation)
- Pause structure (short / medium / long gaps)
- Rhythm consistency and tempo stability

Only keydown timestamps are used. Every signal has its own minimum sample
size and degrades to an "insufficient data" result below it.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

import numpy as np

from config import ProvenanceConfig, get_default_config
from normalizer import CanonicalEvent, EventType

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA = "insufficient_data"


def keydown_timestamps(events: Iterable[CanonicalEvent]) -> np.ndarray:
    """Sorted keydown timestamps in seconds."""
    stamps = [e.timestamp for e in events if e.event_type is EventType.KEY_DOWN]
    return np.sort(np.asarray(stamps, dtype=np.float64))


def intervals_from(timestamps: np.ndarray) -> np.ndarray:
    """Successive differences of sorted timestamps."""
    if timestamps.size < 2:
        return np.zeros(0, dtype=np.float64)
    return np.diff(timestamps)


def upper_median(values: np.ndarray) -> float:
    """Element at index n // 2 of the sorted values."""
    ordered = np.sort(values)
    return float(ordered[ordered.size // 2])


@dataclass
class NaturalTypingPatterns:
    detected: bool
    confidence: int
    message: str
    average_interval: float = 0.0
    standard_deviation: float = 0.0
    sufficient_data: bool = True

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "detected": self.detected,
            "confidence": self.confidence,
            "message": self.message,
        }
        if self.sufficient_data:
            result["average_interval"] = self.average_interval
            result["standard_deviation"] = self.standard_deviation
        return result


@dataclass
class TimingVariance:
    natural_variance: bool
    message: str = ""
    average_interval: float = 0.0
    standard_deviation: float = 0.0
    coefficient_of_variation: float = 0.0
    variance_assessment: str = INSUFFICIENT_DATA
    sufficient_data: bool = True

    def to_dict(self) -> Dict[str, Any]:
        if not self.sufficient_data:
            return {"natural_variance": False, "message": self.message}
        return {
            "average_interval": self.average_interval,
            "standard_deviation": self.standard_deviation,
            "coefficient_of_variation": self.coefficient_of_variation,
            "variance_assessment": self.variance_assessment,
            "natural_variance": self.natural_variance,
        }


@dataclass
class PausePatterns:
    natural_pattern: bool
    message: str = ""
    total_intervals: int = 0
    short_pauses: int = 0
    medium_pauses: int = 0
    long_pauses: int = 0
    longest_pause: float = 0.0
    pause_distribution: Dict[str, float] = field(default_factory=dict)
    sufficient_data: bool = True

    def to_dict(self) -> Dict[str, Any]:
        if not self.sufficient_data:
            return {"natural_pattern": False, "message": self.message}
        return {
            "total_intervals": self.total_intervals,
            "short_pauses": self.short_pauses,
            "medium_pauses": self.medium_pauses,
            "long_pauses": self.long_pauses,
            "longest_pause": self.longest_pause,
            "pause_distribution": self.pause_distribution,
            "natural_pattern": self.natural_pattern,
        }


@dataclass
class KeystrokeRhythm:
    rhythm_consistency: float
    message: str = ""
    median_interval: float = 0.0
    first_quartile: float = 0.0
    third_quartile: float = 0.0
    interquartile_range: float = 0.0
    tempo_stability: str = INSUFFICIENT_DATA
    sufficient_data: bool = True

    def to_dict(self) -> Dict[str, Any]:
        if not self.sufficient_data:
            return {"rhythm_consistency": 0, "tempo_stability": INSUFFICIENT_DATA, "message": self.message}
        return {
            "median_interval": self.median_interval,
            "first_quartile": self.first_quartile,
            "third_quartile": self.third_quartile,
            "interquartile_range": self.interquartile_range,
            "rhythm_consistency": self.rhythm_consistency,
            "tempo_stability": self.tempo_stability,
        }


@dataclass
class AuthenticitySignals:
    """All timing signals for one ledger snapshot."""
    natural_typing_patterns: NaturalTypingPatterns
    timing_variance: TimingVariance
    pause_patterns: PausePatterns
    keystroke_rhythm: KeystrokeRhythm

    @property
    def checks_passed(self) -> int:
        return sum([
            self.natural_typing_patterns.detected,
            self.timing_variance.natural_variance,
            self.pause_patterns.natural_pattern,
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "natural_typing_patterns": self.natural_typing_patterns.to_dict(),
            "timing_variance": self.timing_variance.to_dict(),
            "pause_patterns": self.pause_patterns.to_dict(),
            "keystroke_rhythm": self.keystroke_rhythm.to_dict(),
        }


def assess_variance(cv: float) -> str:
    if cv <= 0.1:
        return "Very low variance - potentially automated"
    if cv <= 0.5:
        return "Low variance - very consistent typing"
    if cv <= 1.5:
        return "Normal variance - natural typing patterns"
    if cv <= 3.0:
        return "High variance - irregular typing patterns"
    return "Very high variance - erratic typing patterns"


def naturalness_message(has_variance: bool, has_reasonable_speed: bool, confidence: int) -> str:
    if has_variance and has_reasonable_speed and confidence > 70:
        return "Strong indicators of natural human typing patterns"
    if has_variance and has_reasonable_speed:
        return "Moderate indicators of natural typing patterns"
    if not has_variance:
        return "Typing patterns show insufficient variance for natural typing"
    return "Typing speed outside normal human range"


class AuthenticityAnalyzer:
    """Computes timing signals over keydown intervals."""

    def __init__(self, config: Optional[ProvenanceConfig] = None):
        self.config = config or get_default_config()

    def has_natural_variance(self, std: float) -> bool:
        return self.config.natural_std_low < std < self.config.natural_std_high

    def has_natural_speed(self, mean: float) -> bool:
        return self.config.natural_mean_low < mean < self.config.natural_mean_high

    def distribution_score(self, intervals: np.ndarray) -> int:
        """Points for a healthy mix of short, medium and long intervals."""
        cfg = self.config
        total = intervals.size
        if total == 0:
            return 0

        short = np.count_nonzero(intervals < cfg.distribution_short_max) / total
        long_ = np.count_nonzero(intervals >= cfg.distribution_long_min) / total
        medium = 1.0 - short - long_

        if medium > cfg.distribution_medium_share and short > cfg.distribution_short_share \
                and long_ < cfg.distribution_long_share:
            return cfg.component_full_points
        if medium > cfg.distribution_partial_medium_share:
            return cfg.component_partial_points
        return cfg.component_floor_points

    def consistency_score(self, intervals: np.ndarray) -> int:
        """Points unless a single rounded interval dominates (fixed-delay scripts)."""
        cfg = self.config
        if intervals.size < cfg.min_consistency_intervals:
            return 0

        # Round half up to the nearest bucket
        buckets = np.floor(intervals / cfg.consistency_bucket_width + 0.5)
        _, counts = np.unique(buckets, return_counts=True)
        uniformity = counts.max() / intervals.size

        if uniformity < cfg.consistency_strong:
            return cfg.component_full_points
        if uniformity < cfg.consistency_partial:
            return cfg.component_partial_points
        return cfg.component_floor_points

    def naturalness_confidence(self, intervals: np.ndarray, mean: float, std: float) -> int:
        cfg = self.config
        variance_points = cfg.component_full_points if self.has_natural_variance(std) else 0
        speed_points = cfg.component_full_points if self.has_natural_speed(mean) else 0
        total = (
            variance_points
            + speed_points
            + self.distribution_score(intervals)
            + self.consistency_score(intervals)
        )
        return int(min(total, 100))

    def detect_natural_typing(self, timestamps: np.ndarray) -> NaturalTypingPatterns:
        if timestamps.size < self.config.min_naturalness_events:
            return NaturalTypingPatterns(
                detected=False,
                confidence=0,
                message="Insufficient data for pattern analysis",
                sufficient_data=False,
            )

        intervals = intervals_from(timestamps)
        mean = float(np.mean(intervals))
        std = float(np.std(intervals))

        has_variance = self.has_natural_variance(std)
        has_speed = self.has_natural_speed(mean)
        confidence = self.naturalness_confidence(intervals, mean, std)

        return NaturalTypingPatterns(
            detected=has_variance and has_speed,
            confidence=confidence,
            message=naturalness_message(has_variance, has_speed, confidence),
            average_interval=round(mean, 4),
            standard_deviation=round(std, 4),
        )

    def analyze_timing_variance(self, timestamps: np.ndarray) -> TimingVariance:
        cfg = self.config
        if timestamps.size < cfg.min_variance_events:
            return TimingVariance(
                natural_variance=False,
                message="Insufficient data for variance analysis",
                sufficient_data=False,
            )

        intervals = intervals_from(timestamps)
        mean = float(np.mean(intervals))
        std = float(np.std(intervals))
        cv = std / mean if mean > 0 else 0.0

        return TimingVariance(
            natural_variance=cfg.natural_cv_low < cv < cfg.natural_cv_high,
            average_interval=round(mean, 4),
            standard_deviation=round(std, 4),
            coefficient_of_variation=round(cv, 4),
            variance_assessment=assess_variance(cv),
        )

    def analyze_pause_patterns(self, timestamps: np.ndarray) -> PausePatterns:
        cfg = self.config
        if timestamps.size < cfg.min_pause_events:
            return PausePatterns(
                natural_pattern=False,
                message="Insufficient data for pause analysis",
                sufficient_data=False,
            )

        intervals = intervals_from(timestamps)
        total = intervals.size
        short = int(np.count_nonzero(intervals < cfg.pause_short_max))
        long_ = int(np.count_nonzero(intervals >= cfg.pause_long_min))
        medium = total - short - long_

        short_share = short / total
        medium_share = medium / total
        long_share = long_ / total

        natural = (
            total >= cfg.min_pause_events
            and short_share > cfg.pause_short_share
            and medium_share > cfg.pause_medium_share
            and long_share < cfg.pause_long_share
        )

        return PausePatterns(
            natural_pattern=natural,
            total_intervals=total,
            short_pauses=short,
            medium_pauses=medium,
            long_pauses=long_,
            longest_pause=round(float(intervals.max()), 2),
            pause_distribution={
                "short_percentage": round(short_share * 100, 1),
                "medium_percentage": round(medium_share * 100, 1),
                "long_percentage": round(long_share * 100, 1),
            },
        )

    def rhythm_consistency(self, intervals: np.ndarray) -> float:
        """
        Mean absolute deviation from the median interval, relative to the
        median, mapped to 0-100 (higher is steadier).
        """
        if intervals.size < self.config.min_pause_events:
            return 0.0
        median = upper_median(intervals)
        deviation = float(np.mean(np.abs(intervals - median)))
        ratio = deviation / median if median > 0 else 1.0
        return round(max((1.0 - ratio) * 100.0, 0.0), 2)

    def tempo_stability(self, intervals: np.ndarray) -> str:
        if intervals.size < self.config.min_rhythm_events:
            return INSUFFICIENT_DATA

        chunk_size = intervals.size // 4
        chunk_means = [
            float(np.mean(intervals[i:i + chunk_size]))
            for i in range(0, chunk_size * 4, chunk_size)
        ]
        spread = float(np.std(chunk_means))

        if spread <= 0.1:
            return "very_stable"
        if spread <= 0.3:
            return "stable"
        if spread <= 0.6:
            return "moderate"
        if spread <= 1.0:
            return "variable"
        return "highly_variable"

    def analyze_rhythm(self, timestamps: np.ndarray) -> KeystrokeRhythm:
        if timestamps.size < self.config.min_rhythm_events:
            return KeystrokeRhythm(
                rhythm_consistency=0.0,
                message="Insufficient data for rhythm analysis",
                sufficient_data=False,
            )

        intervals = intervals_from(timestamps)
        ordered = np.sort(intervals)
        n = ordered.size
        q1 = float(ordered[n // 4])
        q3 = float(ordered[(n * 3) // 4])

        return KeystrokeRhythm(
            rhythm_consistency=self.rhythm_consistency(intervals),
            median_interval=round(float(ordered[n // 2]), 4),
            first_quartile=round(q1, 4),
            third_quartile=round(q3, 4),
            interquartile_range=round(q3 - q1, 4),
            tempo_stability=self.tempo_stability(intervals),
        )

    def analyze(self, events: Iterable[CanonicalEvent]) -> AuthenticitySignals:
        """
        Compute all timing signals.

        Args:
            events: Canonical events; non-keydown events are ignored

        Returns:
            AuthenticitySignals
        """
        timestamps = keydown_timestamps(events)
        signals = AuthenticitySignals(
            natural_typing_patterns=self.detect_natural_typing(timestamps),
            timing_variance=self.analyze_timing_variance(timestamps),
            pause_patterns=self.analyze_pause_patterns(timestamps),
            keystroke_rhythm=self.analyze_rhythm(timestamps),
        )
        logger.debug(
            f"Authenticity over {timestamps.size} keydowns: "
            f"confidence={signals.natural_typing_patterns.confidence}, "
            f"passed={signals.checks_passed}/3"
        )
        return signals
