"""Tests for workload (demand) aggregation."""

from capacity_rebalancer.demand import (
    compute_global_demand, compute_workload, effective_demand, pipeline_by_stage, with_selected_req,
)
from capacity_rebalancer.models import (
    Candidate, CandidateDisposition, CanonicalStage, ConfidenceLevel, RequisitionStatus,
)

from conftest import make_candidates, make_req


def _snapshot():
    reqs = [
        make_req("r-1", "alice", hm_id="hank"),
        make_req("r-2", "alice", hm_id="hank"),
        make_req("r-3", "alice", status=RequisitionStatus.CLOSED),
        make_req("r-4", "bob"),
    ]
    candidates = (
        make_candidates("r-1", 3, CanonicalStage.SCREEN)
        + make_candidates("r-1", 2, CanonicalStage.HM_SCREEN)
        + make_candidates("r-2", 1, CanonicalStage.ONSITE)
        + make_candidates("r-2", 1, CanonicalStage.APPLIED)
        + make_candidates("r-3", 4, CanonicalStage.SCREEN)
        + make_candidates("r-4", 2, CanonicalStage.SCREEN)
        + [Candidate("gone", "r-1", CanonicalStage.OFFER, CandidateDisposition.WITHDRAWN)]
    )
    return reqs, candidates


def test_pipeline_by_stage_counts():
    candidates = make_candidates("r-1", 2) + make_candidates("r-2", 1, CanonicalStage.OFFER)
    assert pipeline_by_stage(candidates) == {CanonicalStage.SCREEN: 2, CanonicalStage.OFFER: 1}
    assert pipeline_by_stage(candidates, {CanonicalStage.OFFER}) == {CanonicalStage.OFFER: 1}


def test_recruiter_demand_spans_open_reqs_only():
    """Closed reqs, other recruiters and inactive candidates are excluded."""
    reqs, candidates = _snapshot()
    demand = compute_global_demand("r-1", "alice", "hank", candidates, reqs)

    assert demand.recruiter_demand == {CanonicalStage.SCREEN: 3, CanonicalStage.ONSITE: 1}
    assert demand.hm_demand == {CanonicalStage.HM_SCREEN: 2}
    assert demand.recruiter_context.open_req_count == 2
    assert demand.recruiter_context.req_ids == ["r-1", "r-2"]
    assert demand.hm_context.total_candidates_in_flight == 7
    assert demand.demand_scope == "global_by_recruiter"
    assert demand.confidence == ConfidenceLevel.HIGH


def test_selected_req_pipeline():
    reqs, candidates = _snapshot()
    demand = compute_global_demand("r-1", "alice", "hank", candidates, reqs)
    assert demand.selected_req_pipeline == {CanonicalStage.SCREEN: 3, CanonicalStage.HM_SCREEN: 2}


def test_missing_hm_is_medium_confidence():
    reqs, candidates = _snapshot()
    demand = compute_global_demand("r-4", "bob", None, candidates, reqs)
    assert demand.confidence == ConfidenceLevel.MED
    assert demand.hm_demand == {}


def test_missing_owners_fall_back_to_single_req():
    reqs, candidates = _snapshot()
    demand = compute_global_demand("r-4", None, None, candidates, reqs)
    assert demand.demand_scope == "single_req"
    assert demand.confidence == ConfidenceLevel.LOW
    assert demand.recruiter_demand == {}


def test_empty_selected_pipeline_lowers_confidence():
    """A req with no active candidates cannot support a confident forecast."""
    reqs, candidates = _snapshot()
    reqs.append(make_req("r-5", "alice", hm_id="hank"))
    demand = compute_global_demand("r-5", "alice", "hank", candidates, reqs)
    assert demand.confidence == ConfidenceLevel.LOW
    assert demand.recruiter_demand[CanonicalStage.SCREEN] == 3


def test_effective_demand_routes_by_owner():
    reqs, candidates = _snapshot()
    demand = compute_global_demand("r-1", "alice", "hank", candidates, reqs)
    assert effective_demand(CanonicalStage.SCREEN, demand) == 3
    assert effective_demand(CanonicalStage.HM_SCREEN, demand) == 2
    assert effective_demand(CanonicalStage.OFFER, demand) == 0


def test_workload_is_independent_of_selected_req():
    """Selecting a req only attaches its pipeline and may lower confidence."""
    reqs, candidates = _snapshot()
    workload = compute_workload("alice", "hank", candidates, reqs)
    assert workload.selected_req_pipeline == {}
    assert workload.confidence == ConfidenceLevel.HIGH

    selected = with_selected_req(workload, {CanonicalStage.SCREEN: 3})
    assert selected.recruiter_demand == workload.recruiter_demand
    assert selected.confidence == ConfidenceLevel.HIGH
    assert with_selected_req(workload, {}).confidence == ConfidenceLevel.LOW
