"""Tests for the queue-delay capacity penalty."""

import math

import pytest

from capacity_rebalancer.capacity import infer_capacity
from capacity_rebalancer.demand import compute_global_demand
from capacity_rebalancer.models import CanonicalStage, ConfidenceLevel
from capacity_rebalancer.penalty import (
    apply_capacity_penalty, calculate_queue_delay, capacity_adjusted_durations,
)

from conftest import WINDOW


def _penalty(data, config, recruiter_id="alice"):
    profile = infer_capacity(recruiter_id, WINDOW, data.events, data.requisitions, config=config)
    demand = compute_global_demand(f"{recruiter_id}-1", recruiter_id, None,
                                   data.candidates, data.requisitions)
    return apply_capacity_penalty(config.stage_durations, demand, profile, config)


def test_no_delay_within_capacity():
    assert calculate_queue_delay(5, 5.0) == 0.0
    assert calculate_queue_delay(0, 5.0) == 0.0
    assert calculate_queue_delay(3, 0.0) == 0.0


def test_delay_formula():
    """Double the weekly rate waiting means one extra week."""
    assert calculate_queue_delay(10, 5.0) == pytest.approx(7.0)
    assert calculate_queue_delay(8, 5.0) == pytest.approx(4.2)
    assert calculate_queue_delay(10, 5.0, queue_factor=0.5) == pytest.approx(3.5)


def test_delay_is_capped():
    assert calculate_queue_delay(100, 1.0) == 21.0
    assert calculate_queue_delay(100, 1.0, max_delay_days=10.0) == 10.0


def test_delay_is_monotone_in_demand():
    delays = [calculate_queue_delay(d, 5.0) for d in range(0, 30)]
    assert delays == sorted(delays)


def test_penalty_identifies_screen_bottleneck(overloaded_pair, flat_config):
    penalty = _penalty(overloaded_pair, flat_config)
    assert penalty.total_queue_delay_days == pytest.approx(7.0)
    assert [b.stage for b in penalty.top_bottlenecks] == [CanonicalStage.SCREEN]

    screen = penalty.top_bottlenecks[0]
    assert screen.demand == 10
    assert screen.service_rate == 5.0
    assert screen.bottleneck_owner == "recruiter"
    assert screen.adjusted_median_days == pytest.approx(math.exp(1.1) + 7.0)
    assert screen.adjusted_mu == pytest.approx(math.log(math.exp(1.1) + 7.0))
    assert penalty.confidence == ConfidenceLevel.LOW


def test_penalty_without_load(overloaded_pair, flat_config):
    penalty = _penalty(overloaded_pair, flat_config, recruiter_id="bob")
    assert penalty.total_queue_delay_days == 0.0
    assert penalty.top_bottlenecks == []
    assert all(d.bottleneck_owner == "none" for d in penalty.stage_diagnostics)


def test_simulated_queue_model_is_deterministic(overloaded_pair, flat_config):
    """The seeded Monte Carlo model gives the same answer every time."""
    config = flat_config.with_overrides(queue_model="simulated", simulation_runs=500)
    first = _penalty(overloaded_pair, config)
    second = _penalty(overloaded_pair, config)
    assert first.total_queue_delay_days == second.total_queue_delay_days
    assert 0.0 < first.total_queue_delay_days <= config.max_queue_delay_days


def test_capacity_adjusted_durations(overloaded_pair, flat_config):
    penalty = _penalty(overloaded_pair, flat_config)
    adjusted = capacity_adjusted_durations(flat_config.stage_durations, penalty)
    assert adjusted[CanonicalStage.SCREEN]["mu"] > flat_config.stage_durations[CanonicalStage.SCREEN]["mu"]
    assert adjusted[CanonicalStage.ONSITE] == flat_config.stage_durations[CanonicalStage.ONSITE]
