"""Workload (demand) aggregation for the Capacity Rebalancing Engine."""

import logging
from collections import Counter
from dataclasses import replace
from typing import Iterable, List, Optional

from capacity_rebalancer.models import (
    STAGE_OWNERS, Candidate, CanonicalStage, ConfidenceLevel, ConfidenceReason,
    GlobalDemand, PipelineByStage, ReasonImpact, ReasonKind, Requisition, User,
    WorkloadContext,
)

logger = logging.getLogger(__name__)

RECRUITER_DEMAND_STAGES = frozenset(s for s, owner in STAGE_OWNERS.items() if owner in ("recruiter", "shared"))
HM_DEMAND_STAGES = frozenset(s for s, owner in STAGE_OWNERS.items() if owner == "hm")


def active_candidates(candidates: Iterable[Candidate]) -> List[Candidate]:
    return [c for c in candidates if c.is_active]


def open_requisitions(requisitions: Iterable[Requisition]) -> List[Requisition]:
    return [r for r in requisitions if r.is_open]


def pipeline_by_stage(candidates: Iterable[Candidate], stages=None) -> PipelineByStage:
    """Count candidates per stage, optionally restricted to ``stages``."""
    counts = Counter(c.current_stage for c in candidates
                     if c.current_stage is not None and (stages is None or c.current_stage in stages))
    return dict(counts)


def _user_name(users: Optional[List[User]], user_id: Optional[str]) -> Optional[str]:
    if not user_id:
        return None
    return next((u.name for u in users or [] if u.user_id == user_id), None)


def compute_workload(recruiter_id: Optional[str], hm_id: Optional[str],
                     all_candidates: List[Candidate], all_requisitions: List[Requisition],
                     users: Optional[List[User]] = None) -> GlobalDemand:
    """Recruiter and HM demand across all of their open reqs, before any req is selected.

    Demand is a pure function of the candidate and requisition lists, so the
    "after" side of a simulated move is obtained by calling this again with
    one requisition reassigned.
    """
    open_reqs = open_requisitions(all_requisitions)
    active = active_candidates(all_candidates)

    recruiter_req_ids = [r.req_id for r in open_reqs if recruiter_id and r.recruiter_id == recruiter_id]
    hm_req_ids = [r.req_id for r in open_reqs if hm_id and r.hiring_manager_id == hm_id]
    recruiter_set, hm_set = set(recruiter_req_ids), set(hm_req_ids)

    recruiter_candidates = [c for c in active if c.req_id in recruiter_set]
    hm_candidates = [c for c in active if c.req_id in hm_set]

    reasons = []
    if not recruiter_id and not hm_id:
        scope, confidence = "single_req", ConfidenceLevel.LOW
        reasons.append(ConfidenceReason(ReasonKind.MISSING_DATA,
                                        "Both recruiter_id and hm_id missing - using single-req fallback",
                                        ReasonImpact.NEGATIVE))
    elif recruiter_id and hm_id:
        scope, confidence = "global_by_recruiter", ConfidenceLevel.HIGH
        if len(recruiter_req_ids) > 1:
            reasons.append(ConfidenceReason(
                ReasonKind.SAMPLE_SIZE,
                f"Using global workload: Recruiter has {len(recruiter_req_ids)} open reqs",
                ReasonImpact.POSITIVE))
    elif recruiter_id:
        scope, confidence = "global_by_recruiter", ConfidenceLevel.MED
        reasons.append(ConfidenceReason(ReasonKind.MISSING_DATA,
                                        "hm_id missing - HM demand using cohort defaults",
                                        ReasonImpact.NEUTRAL))
    else:
        scope, confidence = "global_by_hm", ConfidenceLevel.MED
        reasons.append(ConfidenceReason(ReasonKind.MISSING_DATA,
                                        "recruiter_id missing - Recruiter demand using cohort defaults",
                                        ReasonImpact.NEUTRAL))

    return GlobalDemand(
        demand_scope=scope,
        recruiter_demand=pipeline_by_stage(recruiter_candidates, RECRUITER_DEMAND_STAGES),
        hm_demand=pipeline_by_stage(hm_candidates, HM_DEMAND_STAGES),
        recruiter_context=WorkloadContext(
            owner_id=recruiter_id,
            owner_name=_user_name(users, recruiter_id),
            open_req_count=len(recruiter_req_ids),
            total_candidates_in_flight=len(recruiter_candidates),
            req_ids=recruiter_req_ids,
        ),
        hm_context=WorkloadContext(
            owner_id=hm_id,
            owner_name=_user_name(users, hm_id),
            open_req_count=len(hm_req_ids),
            total_candidates_in_flight=len(hm_candidates),
            req_ids=hm_req_ids,
        ),
        selected_req_pipeline={},
        confidence=confidence,
        confidence_reasons=reasons,
    )


def with_selected_req(workload: GlobalDemand, selected_pipeline: PipelineByStage) -> GlobalDemand:
    """Attach the selected req's pipeline; an empty pipeline drops confidence to LOW."""
    if sum(selected_pipeline.values()) > 0:
        return replace(workload, selected_req_pipeline=dict(selected_pipeline))
    return replace(
        workload,
        selected_req_pipeline=dict(selected_pipeline),
        confidence=ConfidenceLevel.LOW,
        confidence_reasons=list(workload.confidence_reasons) + [
            ConfidenceReason(ReasonKind.SAMPLE_SIZE,
                             "Selected req has 0 active candidates in pipeline",
                             ReasonImpact.NEGATIVE)],
    )


def compute_global_demand(selected_req_id: Optional[str], recruiter_id: Optional[str],
                          hm_id: Optional[str], all_candidates: List[Candidate],
                          all_requisitions: List[Requisition],
                          users: Optional[List[User]] = None) -> GlobalDemand:
    """Compute the recruiter's and HM's demand across all of their open reqs."""
    workload = compute_workload(recruiter_id, hm_id, all_candidates, all_requisitions, users)
    selected = pipeline_by_stage(c for c in active_candidates(all_candidates) if c.req_id == selected_req_id)
    return with_selected_req(workload, selected)


def effective_demand(stage: CanonicalStage, demand: GlobalDemand) -> int:
    """Demand that competes for the owner of ``stage``."""
    owner = STAGE_OWNERS.get(stage)
    if owner in ("recruiter", "shared"):
        return demand.recruiter_demand.get(stage, 0)
    if owner == "hm":
        return demand.hm_demand.get(stage, 0)
    return demand.selected_req_pipeline.get(stage, 0)
