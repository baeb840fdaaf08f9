"""Tests for engine configuration."""

import pytest

from capacity_rebalancer.config import DEFAULT_CONFIG, LoadThresholds, RebalancerConfig
from capacity_rebalancer.models import CanonicalStage


def test_defaults():
    """Default tunables match the documented values."""
    config = RebalancerConfig()
    assert config.epsilon == 0.1
    assert config.transfer_cost_days == 2.0
    assert config.max_dest_utilization_after_move == 1.05
    assert config.min_recruiter_id_coverage == 0.5
    assert config.default_max_suggestions == 5
    assert config.max_queue_delay_days == 21.0
    assert sum(config.stage_weights.values()) == pytest.approx(1.0)
    assert config.stage_weights[CanonicalStage.SCREEN] == 0.35


def test_with_overrides_returns_copy():
    """Overrides never mutate the original configuration."""
    custom = DEFAULT_CONFIG.with_overrides(transfer_cost_days=3.0)
    assert custom.transfer_cost_days == 3.0
    assert DEFAULT_CONFIG.transfer_cost_days == 2.0


def test_threshold_order_is_validated():
    with pytest.raises(ValueError):
        RebalancerConfig(thresholds=LoadThresholds(critical=1.0, overloaded=1.1))


@pytest.mark.parametrize("overrides", [
    {"epsilon": 0.0},
    {"transfer_cost_days": -1.0},
    {"min_recruiter_id_coverage": 1.5},
    {"default_max_suggestions": -1},
    {"queue_model": "erlang"},
    {"privacy_mode": "public"},
    {"simulation_runs": 0},
    {"stage_weights": {CanonicalStage.SCREEN: -0.5}},
])
def test_invalid_values_raise(overrides):
    """Inconsistent tunables are rejected at construction."""
    with pytest.raises(ValueError):
        DEFAULT_CONFIG.with_overrides(**overrides)
