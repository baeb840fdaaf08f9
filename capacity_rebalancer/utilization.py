"""Recruiter utilization and load status for the Capacity Rebalancing Engine."""

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

import pandas as pd

from capacity_rebalancer.capacity import infer_capacity, min_recruiter_transitions
from capacity_rebalancer.config import DEFAULT_CONFIG, LoadThresholds, RebalancerConfig
from capacity_rebalancer.confidence import aggregate_confidences, confidence_from_transitions, get_hedge_message
from capacity_rebalancer.demand import (
    active_candidates, compute_workload, open_requisitions, pipeline_by_stage, with_selected_req,
)
from capacity_rebalancer.models import (
    CAPACITY_LIMITED_STAGES, STAGE_LABELS, Candidate, CapacityProfile, ConfidenceLevel,
    ConfidenceReason, DataQuality, GlobalDemand, LoadStatus, PenaltyResult,
    PipelineByStage, ReasonImpact, ReasonKind, RebalancerInput, Requisition,
    StageUtilization, User, UtilizationResult, UtilizationRow, UtilizationSummary,
)
from capacity_rebalancer.penalty import apply_capacity_penalty

logger = logging.getLogger(__name__)


def get_load_status(utilization: float, thresholds: LoadThresholds = DEFAULT_CONFIG.thresholds) -> LoadStatus:
    if utilization > thresholds.critical:
        return LoadStatus.CRITICAL
    if utilization > thresholds.overloaded:
        return LoadStatus.OVERLOADED
    if utilization > thresholds.balanced_low:
        return LoadStatus.BALANCED
    if utilization > thresholds.available:
        return LoadStatus.AVAILABLE
    return LoadStatus.UNDERUTILIZED


def stage_utilization(demand: PipelineByStage, profile: CapacityProfile,
                      config: RebalancerConfig = DEFAULT_CONFIG) -> List[StageUtilization]:
    rows = []
    for stage in CAPACITY_LIMITED_STAGES:
        d = demand.get(stage, 0)
        capacity = profile.throughput_for(stage)
        rows.append(StageUtilization(
            stage=stage,
            stage_name=STAGE_LABELS.get(stage, stage.value),
            demand=d,
            capacity=capacity,
            utilization=d / max(capacity, config.epsilon),
            confidence=profile.overall_confidence,
        ))
    return rows


def compute_overall_utilization(demand: PipelineByStage, profile: CapacityProfile,
                                config: RebalancerConfig = DEFAULT_CONFIG) -> float:
    """Weighted mean of stage utilizations over the stages that carry demand."""
    weighted_sum = 0.0
    weight_sum = 0.0
    for su in stage_utilization(demand, profile, config):
        if su.demand <= 0:
            continue
        weight = config.stage_weights.get(su.stage, 0.0)
        weighted_sum += su.utilization * weight
        weight_sum += weight
    return weighted_sum / weight_sum if weight_sum > 0 else 0.0


def compute_utilization_confidence(recruiter_id: Optional[str], profile: CapacityProfile,
                                   config: RebalancerConfig = DEFAULT_CONFIG) -> ConfidenceLevel:
    if recruiter_id is None:
        return ConfidenceLevel.INSUFFICIENT
    if profile.used_cohort_fallback:
        return ConfidenceLevel.LOW
    return confidence_from_transitions(min_recruiter_transitions(profile),
                                       config.high_confidence_transitions,
                                       config.med_confidence_transitions)


def build_confidence_reasons(recruiter_id: Optional[str], profile: CapacityProfile,
                             recruiter_id_coverage: float,
                             config: RebalancerConfig = DEFAULT_CONFIG) -> List[ConfidenceReason]:
    if recruiter_id is None:
        return [ConfidenceReason(ReasonKind.MISSING_DATA, "No recruiter_id", ReasonImpact.NEGATIVE)]

    reasons = []
    if profile.used_cohort_fallback:
        reasons.append(ConfidenceReason(ReasonKind.SAMPLE_SIZE,
                                        "Using cohort defaults for capacity",
                                        ReasonImpact.NEUTRAL))

    level = confidence_from_transitions(min_recruiter_transitions(profile),
                                        config.high_confidence_transitions,
                                        config.med_confidence_transitions)
    if level == ConfidenceLevel.HIGH:
        reasons.append(ConfidenceReason(ReasonKind.SAMPLE_SIZE, "Good sample size", ReasonImpact.POSITIVE))
    elif level == ConfidenceLevel.MED:
        reasons.append(ConfidenceReason(ReasonKind.SAMPLE_SIZE, "Moderate sample size", ReasonImpact.NEUTRAL))
    else:
        reasons.append(ConfidenceReason(ReasonKind.SAMPLE_SIZE, "Limited sample size", ReasonImpact.NEGATIVE))

    if recruiter_id_coverage < config.min_recruiter_id_coverage:
        reasons.append(_coverage_reason(recruiter_id_coverage))
    return reasons


def _coverage_reason(coverage: float) -> ConfidenceReason:
    return ConfidenceReason(ReasonKind.MISSING_DATA,
                            f"Only {round(coverage * 100)}% of reqs have recruiter_id",
                            ReasonImpact.NEGATIVE)


def format_id_as_name(recruiter_id: str) -> str:
    """'emily_watson' -> 'Emily Watson'."""
    return " ".join(word.capitalize() for word in recruiter_id.split("_") if word)


def recruiter_display_name(recruiter_id: str, users: List[User], index: int,
                           privacy_mode: str = "full") -> str:
    if privacy_mode == "anonymized":
        return f"Recruiter {index + 1}"
    name = next((u.name for u in users if u.user_id == recruiter_id), None)
    return name or format_id_as_name(recruiter_id) or recruiter_id


@dataclass(frozen=True)
class RecruiterState:
    demand: GlobalDemand
    penalty: PenaltyResult
    utilization: float
    status: LoadStatus


# (req_id, new recruiter_id) applied on top of the snapshot; None is the snapshot itself
Reassignment = Optional[Tuple[str, Optional[str]]]


class SnapshotContext:
    """Memoised capacity and workload per recruiter for one snapshot.

    Every state is keyed by recruiter and reassignment, so the "after" side
    of a move is computed from the reassigned requisitions exactly as if the
    move had been applied. Built fresh for every top-level call; nothing
    survives between calls.
    """

    def __init__(self, data: RebalancerInput, config: RebalancerConfig = DEFAULT_CONFIG):
        self.data = data
        self.config = config
        self.active_candidates = active_candidates(data.candidates)
        self.open_requisitions = open_requisitions(data.requisitions)
        self.candidates_by_req: Dict[str, List[Candidate]] = defaultdict(list)
        for c in self.active_candidates:
            self.candidates_by_req[c.req_id].append(c)
        self._requisitions: Dict[Reassignment, List[Requisition]] = {None: list(data.requisitions)}
        self._profiles: Dict[Tuple[Optional[str], Reassignment], CapacityProfile] = {}
        self._workloads: Dict[Tuple[Optional[str], Reassignment], RecruiterState] = {}

    def requisitions(self, reassignment: Reassignment = None) -> List[Requisition]:
        if reassignment not in self._requisitions:
            req_id, recruiter_id = reassignment
            self._requisitions[reassignment] = [
                replace(r, recruiter_id=recruiter_id) if r.req_id == req_id else r
                for r in self.data.requisitions]
        return self._requisitions[reassignment]

    def profile(self, recruiter_id: Optional[str], reassignment: Reassignment = None) -> CapacityProfile:
        key = (recruiter_id, reassignment)
        if key not in self._profiles:
            self._profiles[key] = infer_capacity(
                recruiter_id,
                self.data.date_range,
                self.data.events,
                self.requisitions(reassignment),
                users=self.data.users,
                config=self.config,
            )
        return self._profiles[key]

    def workload(self, recruiter_id: Optional[str], reassignment: Reassignment = None) -> RecruiterState:
        """Demand, queue delay and utilization of a recruiter, independent of any selected req."""
        key = (recruiter_id, reassignment)
        if key not in self._workloads:
            profile = self.profile(recruiter_id, reassignment)
            demand = compute_workload(recruiter_id, None, self.active_candidates,
                                      self.requisitions(reassignment), self.data.users)
            penalty = apply_capacity_penalty(self.config.stage_durations, demand, profile, self.config)
            utilization = compute_overall_utilization(demand.recruiter_demand, profile, self.config)
            self._workloads[key] = RecruiterState(demand, penalty, utilization,
                                                  get_load_status(utilization, self.config.thresholds))
        return self._workloads[key]

    def current(self, recruiter_id: Optional[str], selected_req_id: Optional[str] = None) -> RecruiterState:
        """Snapshot state of a recruiter, with demand confidence judged for ``selected_req_id``."""
        state = self.workload(recruiter_id)
        if selected_req_id is None:
            return state
        selected = pipeline_by_stage(self.candidates_by_req.get(selected_req_id, []))
        return replace(state, demand=with_selected_req(state.demand, selected))


def _summarize(rows: List[UtilizationRow], thresholds: LoadThresholds) -> UtilizationSummary:
    mean_util = sum(r.utilization for r in rows) / len(rows) if rows else 0.0
    counts = {status: sum(1 for r in rows if r.status == status) for status in LoadStatus}
    return UtilizationSummary(
        total_demand=sum(r.total_demand for r in rows),
        total_capacity=sum(r.total_capacity for r in rows),
        overall_utilization=mean_util,
        overall_status=get_load_status(mean_util, thresholds),
        critical_count=counts[LoadStatus.CRITICAL],
        overloaded_count=counts[LoadStatus.OVERLOADED],
        balanced_count=counts[LoadStatus.BALANCED],
        available_count=counts[LoadStatus.AVAILABLE],
        underutilized_count=counts[LoadStatus.UNDERUTILIZED],
    )


def compute_recruiter_utilization(data: RebalancerInput, config: RebalancerConfig = DEFAULT_CONFIG,
                                  context: Optional[SnapshotContext] = None) -> UtilizationResult:
    """Utilization table for every recruiter owning at least one open req."""
    context = context or SnapshotContext(data, config)
    open_reqs = context.open_requisitions

    with_recruiter = [r for r in open_reqs if r.recruiter_id]
    coverage = len(with_recruiter) / len(open_reqs) if open_reqs else 0.0

    recruiter_reqs: Dict[str, List[Requisition]] = {}
    for req in with_recruiter:
        recruiter_reqs.setdefault(req.recruiter_id, []).append(req)

    rows = []
    for index, (recruiter_id, reqs) in enumerate(recruiter_reqs.items()):
        profile = context.profile(recruiter_id)
        state = context.current(recruiter_id)
        stages = stage_utilization(state.demand.recruiter_demand, profile, config)

        rows.append(UtilizationRow(
            recruiter_id=recruiter_id,
            recruiter_name=recruiter_display_name(recruiter_id, data.users, index, config.privacy_mode),
            req_count=len(reqs),
            total_demand=sum(s.demand for s in stages),
            total_capacity=sum(s.capacity for s in stages),
            utilization=state.utilization,
            status=state.status,
            stage_utilization=stages,
            confidence=compute_utilization_confidence(recruiter_id, profile, config),
            confidence_reasons=build_confidence_reasons(recruiter_id, profile, coverage, config),
            capacity_profile=profile,
        ))
        logger.debug("Recruiter %s: %d reqs, demand %d, utilization %.2f (%s)", recruiter_id,
                     len(reqs), rows[-1].total_demand, state.utilization, state.status.value)

    rows.sort(key=lambda r: -r.utilization)

    confidence = aggregate_confidences(r.confidence for r in rows) if rows else ConfidenceLevel.LOW
    reasons = []
    if coverage < config.min_recruiter_id_coverage:
        logger.warning("Only %.0f%% of %d open reqs have a recruiter_id", coverage * 100, len(open_reqs))
        reasons.append(_coverage_reason(coverage))

    return UtilizationResult(
        rows=rows,
        summary=_summarize(rows, config.thresholds),
        data_quality=DataQuality(
            recruiter_id_coverage=coverage,
            reqs_without_recruiter=len(open_reqs) - len(with_recruiter),
            total_reqs=len(open_reqs),
        ),
        confidence=confidence,
        confidence_reasons=reasons,
        hedge_message=get_hedge_message(confidence),
    )


def utilization_table(result: UtilizationResult) -> pd.DataFrame:
    """Flatten utilization rows into the dashboard's workload table."""
    records = []
    for row in result.rows:
        record = {
            'Recruiter': row.recruiter_name,
            'Recruiter ID': row.recruiter_id,
            'Reqs': row.req_count,
            'Demand': row.total_demand,
            'Capacity / wk': round(row.total_capacity, 1),
            'Utilization %': round(row.utilization * 100, 1),
            'Status': row.status.label,
            'Confidence': row.confidence.value,
        }
        for su in row.stage_utilization:
            record[f'{su.stage_name} %'] = round(su.utilization * 100, 1)
        records.append(record)
    return pd.DataFrame(records)
