"""Tests for capacity recommendations."""

from capacity_rebalancer.capacity import infer_capacity
from capacity_rebalancer.demand import compute_global_demand
from capacity_rebalancer.penalty import apply_capacity_penalty
from capacity_rebalancer.recommendations import generate_recommendations

from conftest import WINDOW


def test_overloaded_recruiter_recommendations(overloaded_pair, flat_config):
    """A 2x screen backlog over five reqs suggests more throughput and shedding reqs."""
    data = overloaded_pair
    profile = infer_capacity("alice", WINDOW, [], data.requisitions, config=flat_config)
    demand = compute_global_demand("alice-1", "alice", None, data.candidates, data.requisitions)
    penalty = apply_capacity_penalty(flat_config.stage_durations, demand, profile, flat_config)

    by_type = {r.type: r for r in penalty.recommendations}
    assert set(by_type) == {"increase_throughput", "reassign_workload"}

    throughput = by_type["increase_throughput"]
    assert throughput.target_value == 12
    assert throughput.estimated_impact_days == 5
    assert throughput.description.startswith("Estimated (limited data): Increase Screen")

    reassign = by_type["reassign_workload"]
    assert reassign.current_value == 5
    assert reassign.target_value == 2
    assert reassign.owner_type == "recruiter"


def test_low_demand_confidence_suggests_better_data(overloaded_pair, flat_config):
    data = overloaded_pair
    profile = infer_capacity(None, WINDOW, [], data.requisitions, config=flat_config)
    demand = compute_global_demand("alice-1", None, None, data.candidates, data.requisitions)

    recommendations = generate_recommendations([], demand, profile)
    assert [r.type for r in recommendations] == ["improve_data"]
