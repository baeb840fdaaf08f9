"""Tests for the rebalancer entry points."""

from collections import Counter

import pytest

from capacity_rebalancer import utilization
from capacity_rebalancer import (
    CapacityRebalancer, compute_recruiter_utilization, simulate_move_impact,
    suggest_reassignments,
)
from capacity_rebalancer.models import (
    ConfidenceLevel, LoadStatus, ReassignmentCandidate, RebalancerOptions,
)
from capacity_rebalancer.rebalancer import suggestions_table

from conftest import build_workload, make_candidates, make_input, make_req


def test_overloaded_recruiter_gets_suggestions(overloaded_pair, flat_config):
    """Alice at 200% and Bob at 20% produce beneficial moves toward Bob."""
    result = suggest_reassignments(overloaded_pair, config=flat_config)

    assert result.has_suggestions
    assert not result.is_balanced
    assert len(result.suggestions) == 5
    assert [s.rank for s in result.suggestions] == [1, 2, 3, 4, 5]

    top = result.suggestions[0]
    assert top.from_recruiter_id == "alice"
    assert top.to_recruiter_id == "bob"
    assert top.score > 0
    assert top.estimated_impact.source_utilization_after < top.estimated_impact.source_utilization_before
    assert top.estimated_impact.target_utilization_after <= flat_config.max_dest_utilization_after_move
    assert result.confidence == ConfidenceLevel.LOW
    assert result.hedge_message == "Estimated (limited data)"


def test_max_suggestions_option(overloaded_pair, flat_config):
    result = suggest_reassignments(overloaded_pair, RebalancerOptions(max_suggestions=2), flat_config)
    assert len(result.suggestions) == 2


def test_suggestions_are_deterministic(overloaded_pair, flat_config):
    rebalancer = CapacityRebalancer(flat_config)
    assert rebalancer.suggest_reassignments(overloaded_pair) == rebalancer.suggest_reassignments(overloaded_pair)


def test_balanced_team_needs_no_moves(workload, flat_config):
    result = suggest_reassignments(workload({"alice": [2, 2], "bob": [2, 2]}), config=flat_config)
    assert result.is_balanced
    assert not result.has_suggestions
    assert result.hedge_message == "All recruiters are operating within capacity"


def test_zero_candidates_is_balanced(flat_config):
    """Reqs without any candidates carry no load."""
    data = make_input([make_req("alice-1", "alice"), make_req("bob-1", "bob")], [])
    result = suggest_reassignments(data, config=flat_config)

    assert all(r.utilization == 0.0 for r in result.utilization_result.rows)
    assert all(r.status == LoadStatus.UNDERUTILIZED for r in result.utilization_result.rows)
    assert result.is_balanced
    assert result.suggestions == []


def test_single_recruiter_without_candidates(flat_config):
    """One recruiter with one empty req gets one idle row."""
    data = make_input([make_req("alice-1", "alice")], [])
    result = suggest_reassignments(data, config=flat_config)
    rows = result.utilization_result.rows

    assert len(rows) == 1
    assert rows[0].total_demand == 0
    assert rows[0].utilization == 0.0
    assert rows[0].status == LoadStatus.UNDERUTILIZED
    assert result.is_balanced


def test_workload_computed_once_per_recruiter_and_move(overloaded_pair, flat_config, monkeypatch):
    """Before-states are shared across moves; each move adds one after-state per side."""
    calls = Counter()
    original = utilization.compute_workload

    def counting(recruiter_id, *args, **kwargs):
        calls[recruiter_id] += 1
        return original(recruiter_id, *args, **kwargs)

    monkeypatch.setattr(utilization, "compute_workload", counting)
    result = suggest_reassignments(overloaded_pair, config=flat_config)

    assert len(result.suggestions) == 5
    assert calls == {"alice": 6, "bob": 6}


def test_negative_max_suggestions(overloaded_pair, flat_config):
    result = suggest_reassignments(overloaded_pair, RebalancerOptions(max_suggestions=-1), flat_config)
    assert result.suggestions == []
    assert not result.has_suggestions


def test_low_coverage_suppresses_suggestions(overloaded_pair, flat_config):
    """Most reqs lacking a recruiter_id yields no suggestions and LOW confidence."""
    orphans = [make_req(f"orphan-{i}", None) for i in range(13)]
    data = make_input(overloaded_pair.requisitions + orphans,
                      overloaded_pair.candidates + make_candidates("orphan-0", 4),
                      users=overloaded_pair.users)
    result = suggest_reassignments(data, config=flat_config)

    assert not result.has_suggestions
    assert not result.is_balanced
    assert result.confidence == ConfidenceLevel.LOW
    assert result.hedge_message == "Limited data: Only 32% of reqs have recruiter_id assigned"


def test_no_available_targets(workload, flat_config):
    result = suggest_reassignments(workload({"alice": [4, 4], "bob": [3, 3]}), config=flat_config)
    assert not result.has_suggestions
    assert not result.is_balanced
    assert result.hedge_message == (
        "All recruiters are at or above capacity - no rebalancing targets available")


def test_ceiling_filters_all_moves(workload, flat_config):
    """When every move would overload the target, nothing is suggested."""
    data = workload({"alice": [3, 3, 3, 3, 3], "bob": [3]})
    result = suggest_reassignments(data, config=flat_config)
    assert not result.has_suggestions
    assert not result.is_balanced


def test_modest_overload_relaxes_ceiling(workload, flat_config):
    data = workload({"alice": [3, 3, 3, 3, 3], "bob": [3]})
    config = flat_config.with_overrides(modest_overload_dest_utilization=1.25)
    result = suggest_reassignments(data, RebalancerOptions(allow_modest_overload=True), config)
    assert result.has_suggestions
    assert all(s.estimated_impact.target_utilization_after <= 1.25 for s in result.suggestions)


def test_module_entry_points(overloaded_pair, flat_config):
    result = compute_recruiter_utilization(overloaded_pair, flat_config)
    assert result.rows[0].recruiter_id == "alice"

    move = ReassignmentCandidate("alice-1", "alice", "bob")
    impact = simulate_move_impact(move, overloaded_pair, flat_config)
    assert impact.net_impact.delay_reduction_days == pytest.approx(2.8)


def test_default_config_is_used(overloaded_pair):
    """With default priors (8 screens/week) Alice is still overloaded."""
    result = CapacityRebalancer().compute_recruiter_utilization(overloaded_pair)
    assert result.rows[0].utilization == pytest.approx(10 / 8)
    assert result.rows[0].status == LoadStatus.CRITICAL


def test_suggestions_table(overloaded_pair, flat_config):
    table = suggestions_table(suggest_reassignments(overloaded_pair, config=flat_config))
    assert list(table["Rank"]) == [1, 2, 3, 4, 5]
    assert set(table["From"]) == {"Alice Smith"}


def test_empty_suggestions_table(flat_config):
    table = suggestions_table(suggest_reassignments(build_workload({"alice": [1]}), config=flat_config))
    assert table.empty
    assert "Rationale" in table.columns
