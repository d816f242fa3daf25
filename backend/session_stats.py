"""
Descriptive statistics for a keystroke session.

Feeds the ``statistical_analysis`` block of the verification report:
- Writing session duration, breaks and continuity
- Typing speed (WPM, keystrokes and characters per minute)
- Character distribution
- Timing distribution across five speed buckets
- Paste provenance
"""
from collections import Counter
from typing import Any, Dict, List, Optional

import numpy as np

from authenticity import intervals_from, keydown_timestamps
from config import ProvenanceConfig, get_default_config
from normalizer import CanonicalEvent, EventType

# Backspace, tab, enter, modifiers, escape and arrows
CONTROL_KEY_CODES = {"8", "9", "13", "16", "17", "18", "27", "37", "38", "39", "40"}

# Timing distribution bucket edges in seconds
TIMING_BUCKETS = [
    ("very_fast", 0.0, 0.1),
    ("fast", 0.1, 0.3),
    ("normal", 0.3, 1.0),
    ("slow", 1.0, 3.0),
    ("very_slow", 3.0, float("inf")),
]


def format_duration(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def assess_session_continuity(breaks: np.ndarray, total_duration: float) -> str:
    if breaks.size == 0:
        return "continuous"
    pct = float(breaks.sum()) / total_duration * 100 if total_duration > 0 else 100.0
    if pct <= 10:
        return "highly_continuous"
    if pct <= 25:
        return "mostly_continuous"
    if pct <= 50:
        return "moderately_fragmented"
    if pct <= 75:
        return "fragmented"
    return "highly_fragmented"


def assess_character_variety(distribution: Counter) -> str:
    if sum(distribution.values()) < 20:
        return "insufficient_data"
    unique = len(distribution)
    if unique <= 5:
        return "very_limited"
    if unique <= 15:
        return "limited"
    if unique <= 30:
        return "moderate"
    if unique <= 50:
        return "good"
    return "excellent"


def content_origin(events: List[CanonicalEvent]) -> str:
    """Mixed once any paste was observed, otherwise human written."""
    if any(e.event_type is EventType.PASTE for e in events):
        return "mixed"
    return "human_written"


class SessionStatistics:
    """Computes the descriptive statistics block."""

    def __init__(self, config: Optional[ProvenanceConfig] = None):
        self.config = config or get_default_config()

    def writing_session(self, timestamps: np.ndarray) -> Dict[str, Any]:
        if timestamps.size < 2:
            return {}

        duration = float(timestamps[-1] - timestamps[0])
        intervals = intervals_from(timestamps)
        breaks = intervals[intervals > self.config.session_break_seconds]

        return {
            "total_duration_seconds": round(duration, 2),
            "total_duration_formatted": format_duration(duration),
            "number_of_breaks": int(breaks.size),
            "longest_break_seconds": round(float(breaks.max()), 2) if breaks.size else 0,
            "active_writing_time": round(duration - float(breaks.sum()), 2),
            "session_continuity": assess_session_continuity(breaks, duration),
        }

    def typing_speed(self, keydowns: List[CanonicalEvent], timestamps: np.ndarray) -> Dict[str, Any]:
        if timestamps.size < 2 or not keydowns:
            return {}

        minutes = float(timestamps[-1] - timestamps[0]) / 60.0
        if minutes <= 0:
            return {}

        character_keys = sum(1 for e in keydowns if e.key_code not in CONTROL_KEY_CODES)
        estimated_words = character_keys / 5.0

        return {
            "estimated_words": round(estimated_words, 1),
            "words_per_minute": round(estimated_words / minutes, 1),
            "keystrokes_per_minute": round(len(keydowns) / minutes, 1),
            "characters_per_minute": round(character_keys / minutes, 1),
        }

    def character_distribution(self, events: List[CanonicalEvent]) -> Dict[str, Any]:
        characters = [e.character for e in events if e.character]
        if not characters:
            return {}

        distribution = Counter(characters)
        return {
            "unique_characters": len(distribution),
            "most_frequent": dict(distribution.most_common(5)),
            "character_variety": assess_character_variety(distribution),
            "total_character_keystrokes": len(characters),
        }

    def timing_distribution(self, timestamps: np.ndarray) -> Dict[str, Any]:
        if timestamps.size < 5:
            return {}

        intervals = intervals_from(timestamps)
        total = intervals.size
        counts = {
            name: int(np.count_nonzero((intervals >= low) & (intervals < high)))
            for name, low, high in TIMING_BUCKETS
        }

        result: Dict[str, Any] = {f"{name}_count": n for name, n in counts.items()}
        result["distribution_percentages"] = {
            name: round(n / total * 100, 1) for name, n in counts.items()
        }
        return result

    def analyze(self, events: List[CanonicalEvent]) -> Dict[str, Any]:
        """
        Build the statistical analysis block.

        Returns:
            Dict of statistics, or {} for an empty ledger
        """
        if not events:
            return {}

        keydowns = [e for e in events if e.event_type is EventType.KEY_DOWN]
        timestamps = keydown_timestamps(keydowns)

        return {
            "total_keystrokes": len(events),
            "keydown_events": len(keydowns),
            "keyup_events": sum(1 for e in events if e.event_type is EventType.KEY_UP),
            "paste_events": sum(1 for e in events if e.event_type is EventType.PASTE),
            "content_origin": content_origin(events),
            "writing_session": self.writing_session(timestamps),
            "typing_speed": self.typing_speed(keydowns, timestamps),
            "character_distribution": self.character_distribution(events),
            "timing_distribution": self.timing_distribution(timestamps),
        }
