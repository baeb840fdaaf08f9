"""Statistical analysis for the Capacity Rebalancing Engine."""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

import numpy as np
from scipy import stats as stats_module

from capacity_rebalancer.capacity import infer_capacity
from capacity_rebalancer.config import DEFAULT_CONFIG, RebalancerConfig
from capacity_rebalancer.demand import active_candidates, compute_global_demand
from capacity_rebalancer.models import (
    CanonicalStage, CapacityAwareForecast, ForecastSummary, RebalancerInput,
)
from capacity_rebalancer.penalty import apply_capacity_penalty, capacity_adjusted_durations
from capacity_rebalancer.simulation import FUNNEL_ORDER, simulate_time_to_hire

logger = logging.getLogger(__name__)

# Used when every simulated run falls out of the funnel
NO_HIRE_DAYS = 365.0
CAPACITY_CONSTRAINED_DELTA_DAYS = 1.0


def on_time_probability(days_to_hire: np.ndarray, horizon_days: float,
                        confidence: float = 0.95) -> Tuple[float, Tuple[float, float]]:
    """Share of simulated hires within ``horizon_days`` and its Wilson score interval.

    With no simulated hires the share is 0 and the interval is uninformative.
    """
    trials = len(days_to_hire)
    if trials == 0:
        return 0.0, (0.0, 1.0)

    p = float(np.mean(days_to_hire <= horizon_days))
    z_sq = stats_module.norm.ppf((1 + confidence) / 2) ** 2
    shrink = 1 + z_sq / trials
    center = (p + z_sq / (2 * trials)) / shrink
    half_width = np.sqrt(z_sq * (p * (1 - p) / trials + z_sq / (4 * trials ** 2))) / shrink

    return p, (max(0.0, float(center - half_width)), min(1.0, float(center + half_width)))


def summarize_days(days_to_hire: np.ndarray, start_date: datetime,
                   target_date: Optional[datetime] = None) -> ForecastSummary:
    """Percentile summary of simulated days-to-hire."""
    if len(days_to_hire) == 0:
        p10 = p50 = p90 = NO_HIRE_DAYS
    else:
        p10, p50, p90 = (float(v) for v in np.percentile(days_to_hire, [10, 50, 90]))

    probability, ci = None, None
    if target_date is not None:
        horizon = (target_date - start_date).total_seconds() / 86400
        probability, ci = on_time_probability(days_to_hire, horizon)

    return ForecastSummary(
        p10_days=p10,
        p50_days=p50,
        p90_days=p90,
        p10_date=start_date + timedelta(days=p10),
        p50_date=start_date + timedelta(days=p50),
        p90_date=start_date + timedelta(days=p90),
        n_hired_runs=len(days_to_hire),
        probability_by_target=probability,
        probability_ci=ci,
    )


def most_advanced_stage(pipeline: Dict[CanonicalStage, int]) -> CanonicalStage:
    """Furthest funnel stage holding an active candidate, SCREEN if none."""
    for stage in reversed(FUNNEL_ORDER[:-1]):
        if pipeline.get(stage, 0) > 0:
            return stage
    return CanonicalStage.SCREEN


def capacity_aware_forecast(req_id: str, data: RebalancerInput,
                            config: RebalancerConfig = DEFAULT_CONFIG,
                            start_date: Optional[datetime] = None,
                            target_date: Optional[datetime] = None) -> CapacityAwareForecast:
    """Forecast time-to-hire for a requisition with and without queueing delay.

    Both runs share the seed, so the p50 delta reflects only the capacity
    penalty and not sampling noise.

    Args:
        req_id: Requisition to forecast
        data: Snapshot of requisitions, candidates, events and users
        config: Engine configuration
        start_date: Day zero of the forecast; defaults to the end of the window
        target_date: Optional fill-by date for the on-time probability

    Returns:
        CapacityAwareForecast with both summaries and the capacity diagnostics

    Raises:
        KeyError: If ``req_id`` is not in the snapshot
    """
    req = next((r for r in data.requisitions if r.req_id == req_id), None)
    if req is None:
        raise KeyError(f"Unknown requisition {req_id}")

    start_date = start_date or data.date_range.end
    profile = infer_capacity(req.recruiter_id, data.date_range, data.events, data.requisitions,
                             users=data.users, hm_id=req.hiring_manager_id, config=config)
    demand = compute_global_demand(req_id, req.recruiter_id, req.hiring_manager_id,
                                   active_candidates(data.candidates), data.requisitions, data.users)
    penalty = apply_capacity_penalty(config.stage_durations, demand, profile, config)

    start_stage = most_advanced_stage(demand.selected_req_pipeline)
    pipeline_days = simulate_time_to_hire(start_stage, config.stage_durations, config.conversion_rates,
                                          config.simulation_runs, config.simulation_seed)
    capacity_days = simulate_time_to_hire(start_stage,
                                          capacity_adjusted_durations(config.stage_durations, penalty),
                                          config.conversion_rates,
                                          config.simulation_runs, config.simulation_seed)

    pipeline_only = summarize_days(pipeline_days, start_date, target_date)
    capacity_aware = summarize_days(capacity_days, start_date, target_date)
    delta = capacity_aware.p50_days - pipeline_only.p50_days

    logger.debug("Forecast %s from %s: p50 %.1fd pipeline-only, %.1fd capacity-aware",
                 req_id, start_stage.value, pipeline_only.p50_days, capacity_aware.p50_days)

    return CapacityAwareForecast(
        req_id=req_id,
        start_stage=start_stage,
        pipeline_only=pipeline_only,
        capacity_aware=capacity_aware,
        p50_delta_days=delta,
        capacity_bottlenecks=penalty.top_bottlenecks,
        capacity_confidence=penalty.confidence,
        capacity_reasons=list(profile.confidence_reasons) + list(demand.confidence_reasons),
        capacity_constrained=delta >= CAPACITY_CONSTRAINED_DELTA_DAYS,
        recommendations=penalty.recommendations,
        capacity_profile=profile,
    )
