"""
Visualization helpers over a keystroke stream.

Summary typing statistics, a coarse event timeline and a keystroke heatmap.
Like segmentation, these are display aids only. Times are milliseconds.
"""
import math
from typing import Any, Dict, Iterable, List

import numpy as np

from normalizer import CanonicalEvent, EventType
from replay import BACKSPACE_KEY_CODE

PAUSE_GAP_MS = 2000.0
TIMELINE_EVENT_LIMIT = 500


def _ordered(events: Iterable[CanonicalEvent]) -> List[CanonicalEvent]:
    return sorted(events, key=lambda e: e.sequence_number)


def _millis(event: CanonicalEvent) -> float:
    return event.timestamp * 1000.0


def typing_statistics(events: Iterable[CanonicalEvent], word_count: int = 0) -> Dict[str, Any]:
    """
    Headline numbers for the replay view.

    Args:
        events: Canonical events
        word_count: Word count of the saved document (WPM is 0 without it)

    Returns:
        Dictionary with total_keystrokes, average_wpm, total_time_seconds,
        pause_count, backspace_count and correction_count
    """
    ordered = _ordered(events)
    if not ordered:
        return {
            "total_keystrokes": 0,
            "average_wpm": 0,
            "total_time_seconds": 0,
            "pause_count": 0,
            "backspace_count": 0,
            "correction_count": 0,
        }

    timestamps = np.array([_millis(e) for e in ordered])
    total_seconds = float(timestamps[-1] - timestamps[0]) / 1000.0
    pause_count = int(np.count_nonzero(np.diff(timestamps) > PAUSE_GAP_MS))

    backspaces = [e for e in ordered if e.key_code == BACKSPACE_KEY_CODE]
    corrections = sum(1 for e in backspaces if e.event_type is EventType.KEY_DOWN)

    average_wpm = word_count / total_seconds * 60 if total_seconds > 0 and word_count > 0 else 0

    return {
        "total_keystrokes": len(ordered),
        "average_wpm": int(round(average_wpm)),
        "total_time_seconds": int(round(total_seconds)),
        "pause_count": pause_count,
        "backspace_count": len(backspaces),
        "correction_count": corrections,
    }


def build_timeline_events(events: Iterable[CanonicalEvent], limit: int = TIMELINE_EVENT_LIMIT) -> List[Dict[str, Any]]:
    """Typing runs, corrections and pauses over the first ``limit`` events."""
    sample = _ordered(events)[:limit]
    timeline: List[Dict[str, Any]] = []
    current = None

    for i, event in enumerate(sample):
        if event.event_type is not EventType.KEY_DOWN:
            continue

        if event.key_code == BACKSPACE_KEY_CODE:
            timeline.append({"timestamp": _millis(event), "type": "correction"})
        elif current is None:
            current = {"timestamp": _millis(event), "type": "typing", "keystrokes": 1}
            timeline.append(current)
        else:
            current["keystrokes"] += 1

        if i + 1 < len(sample):
            gap = _millis(sample[i + 1]) - _millis(event)
            if gap > PAUSE_GAP_MS:
                timeline.append({"timestamp": _millis(event) + 100, "type": "pause", "duration": gap})
                current = None

    return timeline


def _interval_and_unit(interval_ms: int):
    if interval_ms < 5000:
        return max(1000, math.ceil(interval_ms / 1000) * 1000), "second"
    if interval_ms < 60000:
        interval_ms = math.ceil(interval_ms / 5000) * 5000
        return interval_ms, "5sec" if interval_ms == 5000 else f"{interval_ms // 1000}sec"
    if interval_ms < 300000:
        interval_ms = math.ceil(interval_ms / 15000) * 15000
        return interval_ms, f"{interval_ms // 1000}sec"
    interval_ms = math.ceil(interval_ms / 60000) * 60000
    return interval_ms, "minute" if interval_ms == 60000 else f"{interval_ms // 60000}min"


def heatmap(events: Iterable[CanonicalEvent], container_width: float = 800.0, mini: bool = False) -> Dict[str, Any]:
    """
    Bin keystrokes into fixed time intervals for a heatmap grid.

    The interval grows with session length so the grid fits the container:
    whole seconds, then multiples of 5 s, 15 s and finally whole minutes.

    Args:
        events: Canonical events
        container_width: Available width in pixels
        mini: Compact grid (smaller cells, fewer rows)

    Returns:
        Dictionary with bins, max_intensity, cols_per_row, num_rows,
        time_unit, interval_ms and start_time
    """
    timestamps = np.sort(np.array([_millis(e) for e in events], dtype=float))
    if timestamps.size == 0:
        return {
            "bins": [],
            "max_intensity": 1,
            "cols_per_row": 20 if mini else 40,
            "num_rows": 2 if mini else 4,
            "time_unit": "second",
            "interval_ms": 1000,
            "start_time": 0.0,
        }

    start = float(timestamps[0])
    total_duration = float(timestamps[-1]) - start

    min_cell = 6 if mini else 8
    target_cols = max(1, int(container_width // min_cell))
    target_rows = 3 if mini else 5

    interval_ms = max(1000, math.ceil(total_duration / (target_cols * target_rows)))
    interval_ms, time_unit = _interval_and_unit(interval_ms)

    total_intervals = math.ceil(total_duration / interval_ms)
    cols_per_row = min(target_cols, max(10 if mini else 20, total_intervals))
    num_rows = max(1, math.ceil(total_intervals / cols_per_row))
    total_bins = cols_per_row * num_rows

    indexes = np.minimum(((timestamps - start) // interval_ms).astype(int), total_bins - 1)
    bins = np.bincount(indexes, minlength=total_bins)

    return {
        "bins": bins.tolist(),
        "max_intensity": max(int(bins.max()), 1),
        "cols_per_row": cols_per_row,
        "num_rows": num_rows,
        "time_unit": time_unit,
        "interval_ms": interval_ms,
        "start_time": start,
    }
