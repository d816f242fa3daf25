"""
Heuristic constants for the keystroke provenance engine.

Every threshold used by the integrity checker, the authenticity analyzer
and the segmentation engine lives here so it can be tuned without touching
the analysis code. Values can be overridden through environment variables
prefixed with ``PROVENANCE_`` (loaded from a ``.env`` file when present).
"""
import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "PROVENANCE_"


@dataclass(frozen=True)
class ProvenanceConfig:
    """Tunable thresholds. Interval values are in seconds unless noted."""

    # Ingestion
    max_batch_size: int = 5000
    max_character_length: int = 32

    # Timestamp unit heuristics
    epoch_ms_floor: float = 10_000_000_000
    epoch_s_floor: float = 1_000_000_000

    # Temporal consistency: allowed share of reversed adjacent pairs
    max_reversal_share: float = 0.05

    # Completeness: raw events per final character
    min_events_per_char: float = 1.5
    max_events_per_char: float = 5.0

    # Minimum keydown counts before each statistic is trusted
    min_naturalness_events: int = 20
    min_variance_events: int = 10
    min_pause_events: int = 5
    min_rhythm_events: int = 20
    min_consistency_intervals: int = 10

    # Naturalness bands
    natural_std_low: float = 0.01
    natural_std_high: float = 2.0
    natural_mean_low: float = 0.05
    natural_mean_high: float = 5.0

    # Distribution component buckets: short < 0.2s <= medium < 1.0s <= long
    distribution_short_max: float = 0.2
    distribution_long_min: float = 1.0
    distribution_medium_share: float = 0.4
    distribution_short_share: float = 0.1
    distribution_long_share: float = 0.3
    distribution_partial_medium_share: float = 0.3

    # Consistency component: share of the largest 0.1s bucket
    consistency_bucket_width: float = 0.1
    consistency_strong: float = 0.3
    consistency_partial: float = 0.5

    # Component points
    component_full_points: int = 25
    component_partial_points: int = 15
    component_floor_points: int = 5

    # Coefficient of variation band
    natural_cv_low: float = 0.2
    natural_cv_high: float = 2.0

    # Pause pattern buckets: short < 0.5s <= medium < 2.0s <= long
    pause_short_max: float = 0.5
    pause_long_min: float = 2.0
    pause_short_share: float = 0.5
    pause_medium_share: float = 0.1
    pause_long_share: float = 0.3

    # Writing session analysis
    session_break_seconds: float = 30.0

    # Segmentation (milliseconds)
    segment_pause_threshold_ms: float = 500.0
    segment_max_commits: int = 50
    segment_min_commits: int = 30
    segment_split_min_keystrokes: int = 50
    segment_split_max_parts: int = 3

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_env(cls) -> "ProvenanceConfig":
        """
        Build a config from defaults plus ``PROVENANCE_*`` overrides.

        Invalid override values are ignored with a warning.

        Returns:
            ProvenanceConfig instance
        """
        load_dotenv()

        overrides: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            caster = int if f.type in (int, "int") else float
            try:
                overrides[f.name] = caster(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_PREFIX}{f.name.upper()}={raw!r}")

        if overrides:
            logger.info(f"Provenance config overrides: {sorted(overrides)}")
        return replace(cls(), **overrides)


_DEFAULT_CONFIG = ProvenanceConfig()


def get_default_config() -> ProvenanceConfig:
    """Return the built-in thresholds."""
    return _DEFAULT_CONFIG
