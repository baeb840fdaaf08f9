"""Capacity inference for the Capacity Rebalancing Engine.

Estimates weekly throughput per capacity-limited stage from historical
STAGE_CHANGE events. Individual estimates are shrunk toward cohort priors
and replaced by the cohort default outright when a stage has fewer
transitions than the sample-size floor.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional

from capacity_rebalancer.config import DEFAULT_CONFIG, RebalancerConfig
from capacity_rebalancer.confidence import aggregate_confidences
from capacity_rebalancer.models import (
    CAPACITY_LIMITED_STAGES, STAGE_OWNERS, CanonicalStage, CapacityProfile,
    CohortDefaults, ConfidenceLevel, ConfidenceReason, DateRange, Event,
    EventType, ReasonImpact, ReasonKind, Requisition, StageCapacity, User,
)

logger = logging.getLogger(__name__)

RECRUITER_OWNED_STAGES = tuple(s for s in CAPACITY_LIMITED_STAGES if STAGE_OWNERS[s] != "hm")

# Minimum cohort throughput per stage, and the share of active actors who work it
_COHORT_FLOORS = {
    CanonicalStage.SCREEN: 1.0,
    CanonicalStage.HM_SCREEN: 0.5,
    CanonicalStage.ONSITE: 0.5,
    CanonicalStage.OFFER: 0.25,
}
_COHORT_ACTOR_DIVISOR = {
    CanonicalStage.SCREEN: 2.0,
    CanonicalStage.HM_SCREEN: 3.0,
    CanonicalStage.ONSITE: 2.0,
    CanonicalStage.OFFER: 2.0,
}
_MIN_THROUGHPUT = 0.1


def shrink_rate(observed_rate: float, prior_rate: float, n: float, prior_weight: float) -> float:
    """Empirical-Bayes shrinkage of an observed rate toward a prior."""
    if n <= 0:
        return prior_rate
    return (n * observed_rate + prior_weight * prior_rate) / (n + prior_weight)


def count_stage_transitions(events: Iterable[Event], target_stage: CanonicalStage) -> int:
    return sum(1 for e in events
               if e.event_type == EventType.STAGE_CHANGE and e.to_stage == target_stage)


def calculate_cohort_defaults(events: List[Event], date_range: DateRange,
                              config: RebalancerConfig = DEFAULT_CONFIG) -> CohortDefaults:
    """Per-person weekly throughput across everyone active in the window."""
    weeks = date_range.weeks
    in_range = [e for e in events if date_range.contains(e.event_at)]
    actors = len({e.actor_user_id for e in in_range}) or 1

    counts = Counter(e.to_stage for e in in_range if e.event_type == EventType.STAGE_CHANGE)
    throughput = {}
    for stage in CAPACITY_LIMITED_STAGES:
        n = counts.get(stage, 0)
        if n > 0:
            rate = n / weeks / max(1.0, actors / _COHORT_ACTOR_DIVISOR[stage])
        else:
            rate = config.priors.for_stage(stage)
        throughput[stage] = max(_COHORT_FLOORS[stage], rate)

    return CohortDefaults(
        throughput=throughput,
        hm_feedback_hours=config.priors.hm_feedback_hours,
        recruiters=actors,
        weeks=weeks,
    )


def build_stage_capacity(stage: CanonicalStage, transitions: int, weeks: int,
                         prior_throughput: float,
                         config: RebalancerConfig = DEFAULT_CONFIG) -> StageCapacity:
    observed = transitions / weeks
    used_fallback = transitions < config.min_transitions_for_throughput

    if used_fallback:
        throughput = prior_throughput
    else:
        throughput = shrink_rate(observed, prior_throughput, transitions, config.shrinkage_k)

    if weeks >= config.high_confidence_weeks and transitions >= config.high_confidence_transitions:
        confidence = ConfidenceLevel.HIGH
    elif weeks >= config.min_weeks_for_capacity and transitions >= config.min_transitions_for_throughput:
        confidence = ConfidenceLevel.MED
    else:
        confidence = ConfidenceLevel.LOW

    return StageCapacity(
        stage=stage,
        throughput_per_week=max(_MIN_THROUGHPUT, throughput),
        n_weeks=weeks,
        n_transitions_observed=transitions,
        confidence=confidence,
        prior_throughput=prior_throughput,
        observed_throughput=observed,
        used_fallback=used_fallback,
    )


def _fallback_stages(cohort: CohortDefaults, weeks: int,
                     config: RebalancerConfig) -> Dict[CanonicalStage, StageCapacity]:
    return {
        stage: build_stage_capacity(stage, 0, weeks, cohort.for_stage(stage), config)
        for stage in CAPACITY_LIMITED_STAGES
    }


def _recruiter_reasons(stages: Dict[CanonicalStage, StageCapacity], weeks: int,
                       used_fallback: bool, config: RebalancerConfig) -> List[ConfidenceReason]:
    reasons = []
    if weeks >= config.high_confidence_weeks:
        reasons.append(ConfidenceReason(ReasonKind.SAMPLE_SIZE,
                                        f"{weeks} weeks of history analyzed",
                                        ReasonImpact.POSITIVE))
    elif weeks >= config.min_weeks_for_capacity:
        reasons.append(ConfidenceReason(ReasonKind.SAMPLE_SIZE,
                                        f"{weeks} weeks of history (moderate sample)",
                                        ReasonImpact.NEUTRAL))
    else:
        reasons.append(ConfidenceReason(ReasonKind.SAMPLE_SIZE,
                                        f"Only {weeks} weeks of history (limited)",
                                        ReasonImpact.NEGATIVE))

    sparse = [s for s in RECRUITER_OWNED_STAGES if stages[s].used_fallback]
    if sparse:
        names = ", ".join(s.value for s in sparse)
        reasons.append(ConfidenceReason(
            ReasonKind.MISSING_DATA,
            f"Few stage transitions observed for {names}; using cohort defaults",
            ReasonImpact.NEGATIVE))

    if used_fallback or any(stages[s].confidence == ConfidenceLevel.LOW for s in RECRUITER_OWNED_STAGES):
        reasons.append(ConfidenceReason(ReasonKind.SHRINKAGE,
                                        "Estimates rely heavily on cohort priors",
                                        ReasonImpact.NEGATIVE))
    return reasons


def infer_hm_capacity(hm_id: Optional[str], events: List[Event], requisitions: List[Requisition],
                      date_range: DateRange, cohort: CohortDefaults,
                      config: RebalancerConfig = DEFAULT_CONFIG) -> Optional[StageCapacity]:
    """HM interview throughput from HM_SCREEN transitions on the HM's reqs."""
    if not hm_id:
        return None
    hm_reqs = {r.req_id for r in requisitions if r.hiring_manager_id == hm_id}
    if not hm_reqs:
        return None
    hm_events = [e for e in events if e.req_id in hm_reqs and date_range.contains(e.event_at)]
    transitions = count_stage_transitions(hm_events, CanonicalStage.HM_SCREEN)
    if transitions == 0:
        return None
    return build_stage_capacity(CanonicalStage.HM_SCREEN, transitions, date_range.weeks,
                                cohort.for_stage(CanonicalStage.HM_SCREEN), config)


def infer_capacity(recruiter_id: Optional[str], date_range: DateRange, events: List[Event],
                   requisitions: List[Requisition], users: Optional[List[User]] = None,
                   hm_id: Optional[str] = None,
                   config: RebalancerConfig = DEFAULT_CONFIG) -> CapacityProfile:
    """Infer the capacity profile for a recruiter (and optionally a hiring manager).

    Args:
        recruiter_id: Recruiter whose requisitions define the history; None
            yields a pure cohort-default profile
        date_range: Window of events to analyse
        events: Historical events (any type; only STAGE_CHANGE is counted)
        requisitions: All requisitions, open and closed, used to attribute events
        users: Optional user directory, only used for logging context
        hm_id: Optional hiring manager for the HM interview stage
        config: Engine configuration

    Returns:
        CapacityProfile with per-stage throughput and the fallback flag set
        whenever a recruiter-owned stage used the cohort default
    """
    cohort = calculate_cohort_defaults(events, date_range, config)
    weeks = date_range.weeks

    recruiter_reqs = {r.req_id for r in requisitions
                      if recruiter_id is not None and r.recruiter_id == recruiter_id}

    if not recruiter_reqs:
        stages = _fallback_stages(cohort, weeks, config)
        used_fallback = True
    else:
        recruiter_events = [e for e in events
                            if e.req_id in recruiter_reqs and date_range.contains(e.event_at)]
        stages = {
            stage: build_stage_capacity(stage, count_stage_transitions(recruiter_events, stage),
                                        weeks, cohort.for_stage(stage), config)
            for stage in CAPACITY_LIMITED_STAGES
        }
        used_fallback = any(stages[s].used_fallback for s in RECRUITER_OWNED_STAGES)

    hm_interviews = infer_hm_capacity(hm_id, events, requisitions, date_range, cohort, config)

    confidences = [stages[s].confidence for s in RECRUITER_OWNED_STAGES]
    if hm_interviews is not None:
        confidences.append(hm_interviews.confidence)
    if used_fallback:
        confidences.append(ConfidenceLevel.LOW)
    overall = aggregate_confidences(confidences)

    reasons = _recruiter_reasons(stages, weeks, used_fallback, config)
    if not recruiter_reqs:
        reasons.insert(0, ConfidenceReason(ReasonKind.MISSING_DATA,
                                           "No requisition history for recruiter",
                                           ReasonImpact.NEGATIVE))

    if logger.isEnabledFor(logging.DEBUG):
        name = next((u.name for u in users or [] if u.user_id == recruiter_id), recruiter_id)
        logger.debug("Capacity for %s: %s (fallback=%s, confidence=%s)", name,
                     {s.value: round(c.throughput_per_week, 2) for s, c in stages.items()},
                     used_fallback, overall.value)

    return CapacityProfile(
        recruiter_id=recruiter_id,
        stages=stages,
        cohort_defaults=cohort,
        overall_confidence=overall,
        confidence_reasons=reasons,
        used_cohort_fallback=used_fallback,
        hm_id=hm_id,
        hm_interviews=hm_interviews,
    )


def min_recruiter_transitions(profile: CapacityProfile) -> int:
    return min(profile.stages[s].n_transitions_observed for s in RECRUITER_OWNED_STAGES)
