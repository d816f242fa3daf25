"""
Writing-session segmentation for timeline visualization.

Groups keydown events into commits (typing bursts, pauses, corrections,
milestones) separated by adaptive pause thresholds, then lays them out on a
canvas and links consecutive commits with branches. Output is cosmetic and
never feeds the verification verdict. All times here are milliseconds.
"""
import hashlib
import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from config import ProvenanceConfig, get_default_config
from normalizer import CanonicalEvent, EventType
from replay import BACKSPACE_KEY_CODE

logger = logging.getLogger(__name__)

CANVAS_PADDING = 40.0
CANVAS_BOTTOM_PADDING = 60.0
CANVAS_BOTTOM_MARGIN = 70.0

MIN_INTENSITY = 0.5
MAX_INTENSITY = 3.0


class CommitType(str, Enum):
    TYPING = "typing"
    PAUSE = "pause"
    CORRECTION = "correction"
    MILESTONE = "milestone"


class BranchType(str, Enum):
    MAIN = "main"
    CORRECTION = "correction"
    MERGE = "merge"


# Lane index per commit type; typing oscillates around lane 1
_LANES = {
    CommitType.CORRECTION: 0.0,
    CommitType.MILESTONE: 2.0,
    CommitType.PAUSE: 3.0,
}


@dataclass(frozen=True)
class Commit:
    id: str
    timestamp: float
    type: CommitType
    keystrokes: int
    duration: float
    intensity: float
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type.value,
            "keystrokes": self.keystrokes,
            "duration": self.duration,
            "position": {"x": self.x, "y": self.y},
            "intensity": self.intensity,
        }


@dataclass(frozen=True)
class Branch:
    id: str
    from_commit: str
    to_commit: str
    type: BranchType
    intensity: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from_commit": self.from_commit,
            "to_commit": self.to_commit,
            "type": self.type.value,
            "intensity": self.intensity,
        }


def unit_jitter(index: int, timestamp: float) -> float:
    """Reproducible pseudo-random value in [0, 1] for a commit slot."""
    digest = hashlib.md5(f"{index}:{timestamp:.3f}".encode()).hexdigest()
    return int(digest[:8], 16) / 0xFFFFFFFF


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def adaptive_threshold(span_ms: float, base_ms: float) -> float:
    """Shorter sessions get finer segmentation."""
    if span_ms < 30_000:
        return max(200.0, base_ms * 0.4)
    if span_ms < 120_000:
        return max(300.0, base_ms * 0.6)
    return base_ms


def commit_from_group(group: List[CanonicalEvent], commit_id: int, threshold_ms: float) -> Commit:
    first_ms = group[0].timestamp * 1000.0
    duration = max(0.0, group[-1].timestamp * 1000.0 - first_ms)
    total = len(group)
    backspaces = sum(1 for e in group if e.key_code == BACKSPACE_KEY_CODE)
    backspace_share = backspaces / total

    if backspace_share > 0.3:
        commit_type = CommitType.CORRECTION
    elif duration > threshold_ms * 0.5:
        commit_type = CommitType.MILESTONE
    else:
        commit_type = CommitType.TYPING

    keys_per_second = total / duration * 1000.0 if duration > 0 else 0.0
    intensity = _clamp(keys_per_second / 2.0 + backspace_share, MIN_INTENSITY, MAX_INTENSITY)

    return Commit(
        id=f"commit-{commit_id}",
        timestamp=first_ms,
        type=commit_type,
        keystrokes=total,
        duration=duration,
        intensity=intensity,
    )


def group_into_commits(keydowns: List[CanonicalEvent], threshold_ms: float) -> List[Commit]:
    commits: List[Commit] = []
    group: List[CanonicalEvent] = []
    last_ms: Optional[float] = None
    next_id = 0

    for event in keydowns:
        now_ms = event.timestamp * 1000.0
        gap = now_ms - last_ms if last_ms is not None else 0.0

        if gap > threshold_ms and group:
            commits.append(commit_from_group(group, next_id, threshold_ms))
            next_id += 1

            if gap > threshold_ms * 2:
                commits.append(Commit(
                    id=f"pause-{next_id}",
                    timestamp=last_ms + threshold_ms,
                    type=CommitType.PAUSE,
                    keystrokes=0,
                    duration=gap,
                    intensity=min(2.0, gap / threshold_ms),
                ))
                next_id += 1

            group = []

        group.append(event)
        last_ms = now_ms

    if group:
        commits.append(commit_from_group(group, next_id, threshold_ms))

    return commits


def split_large_commits(commits: List[Commit], keydown_count: int, min_commits: int,
                        config: ProvenanceConfig) -> List[Commit]:
    """
    Pad sparse timelines by splitting big commits into synthetic sub-commits.

    Presentation only: the sub-commits are invented spacing for the graph
    and say nothing about the recorded events.
    """
    if len(commits) >= min_commits or keydown_count < 10:
        return commits

    enhanced: List[Commit] = []
    next_id = len(commits)

    for commit in commits:
        enhanced.append(commit)

        if commit.keystrokes > config.segment_split_min_keystrokes and len(enhanced) < min_commits:
            parts = min(config.segment_split_max_parts, commit.keystrokes // 25)
            step = commit.duration / (parts + 1)
            for i in range(1, parts + 1):
                timestamp = commit.timestamp + step * i
                variation = 0.7 + unit_jitter(next_id, timestamp) * 0.6
                enhanced.append(Commit(
                    id=f"enhanced-{next_id}",
                    timestamp=timestamp,
                    type=CommitType.TYPING if commit.type is CommitType.CORRECTION else commit.type,
                    keystrokes=commit.keystrokes // (parts + 1),
                    duration=step,
                    intensity=_clamp(commit.intensity * variation, MIN_INTENSITY, MAX_INTENSITY),
                ))
                next_id += 1

        if len(enhanced) >= min_commits:
            break

    return enhanced


def _lane_y(commit: Commit, index: int, available_height: float) -> float:
    lane_height = available_height / 4
    base_lane = _LANES.get(commit.type)
    if base_lane is None:
        base_lane = 1 + math.sin(index * 0.8) * 0.5

    intensity_offset = (commit.intensity - 1) * 10
    spiral = math.sin(index * 0.4) * 8
    jitter = math.sin(commit.timestamp * 0.001) * 12
    return CANVAS_PADDING + base_lane * lane_height + intensity_offset + spiral + jitter


def layout_commits(commits: List[Commit], width: float, height: float) -> List[Commit]:
    """Chronological x with reproducible wobble, y by lane. Always inside the canvas."""
    if not commits:
        return commits

    width = max(0.0, width)
    height = max(0.0, height)
    available_width = width - CANVAS_PADDING * 2
    available_height = height - CANVAS_PADDING - CANVAS_BOTTOM_PADDING

    start = commits[0].timestamp
    span = commits[-1].timestamp - start

    positioned = []
    for index, commit in enumerate(commits):
        progress = (commit.timestamp - start) / span if span > 0 else index / len(commits)

        x = CANVAS_PADDING + progress * available_width
        x += math.sin(index * 0.5) * 20 + (unit_jitter(index, commit.timestamp) - 0.5) * 30
        x = _clamp(x, CANVAS_PADDING, width - CANVAS_PADDING)

        y = _lane_y(commit, index, available_height)
        y += math.sin(progress * math.pi * 2 + index * 0.3) * 15
        y = _clamp(y, CANVAS_PADDING, height - CANVAS_BOTTOM_MARGIN)

        positioned.append(replace(commit, x=_clamp(x, 0.0, width), y=_clamp(y, 0.0, height)))

    return positioned


def generate_branches(commits: List[Commit]) -> List[Branch]:
    branches = []
    for i, (current, following) in enumerate(zip(commits, commits[1:])):
        types = {current.type, following.type}
        if CommitType.CORRECTION in types:
            branch_type = BranchType.CORRECTION
        elif CommitType.MILESTONE in types:
            branch_type = BranchType.MERGE
        else:
            branch_type = BranchType.MAIN

        branches.append(Branch(
            id=f"branch-{i}",
            from_commit=current.id,
            to_commit=following.id,
            type=branch_type,
            intensity=(current.intensity + following.intensity) / 2,
        ))
    return branches


def segment(
    events: Iterable[CanonicalEvent],
    max_commits: Optional[int] = None,
    pause_threshold_base: Optional[float] = None,
    width: float = 800.0,
    height: float = 200.0,
    enrich_sparse: bool = True,
    config: Optional[ProvenanceConfig] = None,
) -> Tuple[List[Commit], List[Branch]]:
    """
    Turn a keystroke stream into timeline commits and branches.

    Args:
        events: Canonical events (any order; sorted by sequence number here)
        max_commits: Upper bound on emitted commits
        pause_threshold_base: Base pause threshold in milliseconds
        width: Canvas width
        height: Canvas height
        enrich_sparse: Split large commits when the timeline is sparse
        config: Thresholds (defaults if None)

    Returns:
        Tuple of (commits, branches)
    """
    config = config or get_default_config()
    max_commits = max_commits or config.segment_max_commits
    base = pause_threshold_base or config.segment_pause_threshold_ms

    ordered = sorted(events, key=lambda e: e.sequence_number)
    if not ordered:
        return [], []

    span_ms = (ordered[-1].timestamp - ordered[0].timestamp) * 1000.0
    threshold = adaptive_threshold(span_ms, base)

    keydowns = [e for e in ordered if e.event_type is EventType.KEY_DOWN]
    commits = group_into_commits(keydowns, threshold)

    if enrich_sparse:
        min_commits = min(max_commits, config.segment_min_commits)
        commits = split_large_commits(commits, len(keydowns), min_commits, config)

    commits = layout_commits(commits[:max_commits], width, height)
    branches = generate_branches(commits)

    logger.debug(f"Segmented {len(keydowns)} keydowns into {len(commits)} commits (threshold={threshold}ms)")
    return commits, branches
