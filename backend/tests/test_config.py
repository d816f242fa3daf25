"""
Unit tests for provenance configuration.
"""
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import dataclasses
import logging

import pytest
from config import ProvenanceConfig, get_default_config
from authenticity import AuthenticityAnalyzer


class TestDefaults:
    """Test built-in thresholds."""

    def test_default_values(self):
        config = get_default_config()
        assert config.max_batch_size == 5000
        assert config.max_reversal_share == 0.05
        assert config.min_naturalness_events == 20
        assert config.segment_pause_threshold_ms == 500.0

    def test_to_dict(self):
        data = get_default_config().to_dict()
        assert data["max_character_length"] == 32
        assert data["natural_cv_low"] == 0.2

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            get_default_config().max_batch_size = 1


class TestEnvironmentOverrides:
    """Test PROVENANCE_* overrides."""

    def test_int_and_float_overrides(self, monkeypatch):
        monkeypatch.setenv("PROVENANCE_MIN_NATURALNESS_EVENTS", "30")
        monkeypatch.setenv("PROVENANCE_MAX_REVERSAL_SHARE", "0.1")

        config = ProvenanceConfig.from_env()

        assert config.min_naturalness_events == 30
        assert isinstance(config.min_naturalness_events, int)
        assert config.max_reversal_share == 0.1

    def test_invalid_override_ignored(self, monkeypatch, caplog):
        monkeypatch.setenv("PROVENANCE_MAX_BATCH_SIZE", "lots")

        with caplog.at_level(logging.WARNING):
            config = ProvenanceConfig.from_env()

        assert config.max_batch_size == 5000
        assert "PROVENANCE_MAX_BATCH_SIZE" in caplog.text

    def test_override_changes_behaviour(self, monkeypatch, make_keydowns):
        """Test a raised sample floor turns a result into insufficient data."""
        monkeypatch.setenv("PROVENANCE_MIN_NATURALNESS_EVENTS", "50")
        analyzer = AuthenticityAnalyzer(ProvenanceConfig.from_env())

        result = analyzer.analyze(make_keydowns([0.2, 0.3] * 15)).natural_typing_patterns
        assert result.sufficient_data is False
