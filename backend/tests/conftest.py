"""
Shared fixtures: synthetic keystroke streams.
"""
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import numpy as np
import pytest

from normalizer import CanonicalEvent, EventType

BASE_TIME = 1_700_000_000.0

# Mostly short gaps, a few medium ones and one long pause per cycle
NATURAL_CYCLE = [
    0.12, 0.18, 0.25, 0.30, 0.22, 0.35, 0.28, 0.60, 0.15, 0.90,
    0.27, 0.19, 1.40, 0.33, 0.24, 0.21, 0.45, 0.31, 0.26, 2.50,
]

TEXT = "provenance "


def build_keydowns(intervals, start=BASE_TIME, text=TEXT):
    """Keydown events typed at the end of the buffer, one per timestamp."""
    timestamps = start + np.concatenate([[0.0], np.cumsum(intervals)])
    events = []
    for i, ts in enumerate(timestamps):
        character = text[i % len(text)]
        events.append(CanonicalEvent(
            event_type=EventType.KEY_DOWN,
            key_code="32" if character == " " else str(ord(character.upper())),
            character=character,
            timestamp=float(ts),
            sequence_number=i,
            cursor_position=i,
        ))
    return events


@pytest.fixture
def make_keydowns():
    return build_keydowns


@pytest.fixture
def natural_events():
    """101 keydowns with human-like timing."""
    return build_keydowns(NATURAL_CYCLE * 5)


@pytest.fixture
def robotic_events():
    """30 keydowns at a constant 80ms."""
    return build_keydowns([0.08] * 29)
