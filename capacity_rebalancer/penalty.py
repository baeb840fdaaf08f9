"""Capacity penalty (queue delay) model for the Capacity Rebalancing Engine.

Closed form per capacity-limited stage:

    queue_delay_days = ((demand - service_rate) / service_rate) * 7 * queue_factor

when demand exceeds the weekly service rate, capped at
``max_queue_delay_days``. The ``simulated`` queue model replaces the
formula with a seeded Monte Carlo estimate.
"""

import math
from typing import Dict, Optional

from capacity_rebalancer.config import DEFAULT_CONFIG, RebalancerConfig
from capacity_rebalancer.confidence import aggregate_confidences
from capacity_rebalancer.demand import effective_demand
from capacity_rebalancer.models import (
    CAPACITY_LIMITED_STAGES, STAGE_LABELS, STAGE_OWNERS, CanonicalStage,
    CapacityProfile, ConfidenceLevel, GlobalDemand, PenaltyResult,
    StageQueueDiagnostic,
)
from capacity_rebalancer.recommendations import generate_recommendations
from capacity_rebalancer.simulation import DAYS_PER_WEEK, distribution_median, simulate_queue_delay

MAX_BOTTLENECKS = 3


def calculate_queue_delay(demand: float, service_rate: float, queue_factor: float = 1.0,
                          max_delay_days: float = DEFAULT_CONFIG.max_queue_delay_days) -> float:
    if demand <= service_rate or service_rate <= 0:
        return 0.0
    raw_delay = (demand - service_rate) / service_rate * DAYS_PER_WEEK * queue_factor
    return min(raw_delay, max_delay_days)


def stage_queue_delay(demand: int, service_rate: float, config: RebalancerConfig) -> float:
    if config.queue_model == "simulated":
        return simulate_queue_delay(demand, service_rate, config.queue_factor,
                                    config.max_queue_delay_days,
                                    n_simulations=config.simulation_runs,
                                    seed=config.simulation_seed)
    return calculate_queue_delay(demand, service_rate, config.queue_factor,
                                 config.max_queue_delay_days)


def _stage_confidence(stage: CanonicalStage, profile: CapacityProfile,
                      demand: GlobalDemand) -> ConfidenceLevel:
    owner = STAGE_OWNERS.get(stage)
    if owner == "recruiter" and not demand.recruiter_context.owner_id:
        return ConfidenceLevel.LOW
    if owner == "hm" and not demand.hm_context.owner_id:
        return ConfidenceLevel.LOW
    return profile.confidence_for(stage)


def _adjusted_mu(dist: Optional[dict], queue_delay: float) -> Optional[float]:
    if dist and dist.get('type') == 'lognormal' and dist.get('mu') is not None:
        return math.log(max(1.0, math.exp(dist['mu']) + queue_delay))
    return None


def apply_capacity_penalty(stage_durations: Dict[CanonicalStage, dict], demand: GlobalDemand,
                           profile: CapacityProfile,
                           config: RebalancerConfig = DEFAULT_CONFIG) -> PenaltyResult:
    """Queue delays per stage from global demand against inferred capacity."""
    diagnostics = []
    total_delay = 0.0

    for stage in CAPACITY_LIMITED_STAGES:
        stage_demand = effective_demand(stage, demand)
        service_rate = profile.throughput_for(stage)
        delay = stage_queue_delay(stage_demand, service_rate, config)
        dist = stage_durations.get(stage)
        median = distribution_median(dist)

        diagnostics.append(StageQueueDiagnostic(
            stage=stage,
            stage_name=STAGE_LABELS.get(stage, stage.value),
            demand=stage_demand,
            service_rate=service_rate,
            queue_delay_days=delay,
            is_bottleneck=delay > 0,
            bottleneck_owner=STAGE_OWNERS.get(stage, "shared") if delay > 0 else "none",
            confidence=_stage_confidence(stage, profile, demand),
            original_median_days=median,
            adjusted_median_days=median + delay,
            adjusted_mu=_adjusted_mu(dist, delay),
        ))
        total_delay += delay

    bottlenecks = sorted((d for d in diagnostics if d.is_bottleneck),
                         key=lambda d: -d.queue_delay_days)[:MAX_BOTTLENECKS]

    confidence = aggregate_confidences(
        [d.confidence for d in diagnostics if d.demand > 0] + [demand.confidence])

    return PenaltyResult(
        stage_diagnostics=diagnostics,
        top_bottlenecks=bottlenecks,
        total_queue_delay_days=total_delay,
        confidence=confidence,
        global_demand=demand,
        recommendations=generate_recommendations(bottlenecks, demand, profile),
    )


def capacity_adjusted_durations(stage_durations: Dict[CanonicalStage, dict],
                                penalty: PenaltyResult) -> Dict[CanonicalStage, dict]:
    """Stage durations with each stage's queue delay folded in."""
    adjusted = {stage: dict(dist) for stage, dist in stage_durations.items()}
    for diag in penalty.stage_diagnostics:
        if diag.queue_delay_days <= 0:
            continue
        base = stage_durations.get(diag.stage)
        if diag.adjusted_mu is not None:
            adjusted[diag.stage] = dict(base, mu=diag.adjusted_mu)
        else:
            adjusted[diag.stage] = {'type': 'constant', 'days': diag.adjusted_median_days}
    return adjusted
