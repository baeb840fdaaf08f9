"""Monte Carlo simulation engine for the Capacity Rebalancing Engine."""

from typing import Dict, Optional

import numpy as np

from capacity_rebalancer.config import SIMULATION_RUNS, SIMULATION_SEED
from capacity_rebalancer.models import CanonicalStage

DAYS_PER_WEEK = 7.0
DEFAULT_STAGE_DAYS = 7.0
DEFAULT_PASS_RATE = 0.5

FUNNEL_ORDER = (
    CanonicalStage.SCREEN,
    CanonicalStage.HM_SCREEN,
    CanonicalStage.ONSITE,
    CanonicalStage.OFFER,
    CanonicalStage.HIRED,
)


def distribution_median(dist: Optional[dict]) -> float:
    """Median days of a stage duration distribution."""
    if not dist:
        return DEFAULT_STAGE_DAYS
    kind = dist.get('type')
    if kind == 'lognormal' and dist.get('mu') is not None:
        return float(np.exp(dist['mu']))
    if kind == 'constant':
        return float(dist.get('days') or DEFAULT_STAGE_DAYS)
    if kind == 'empirical' and dist.get('buckets'):
        cumulative = 0.0
        for bucket in dist['buckets']:
            cumulative += bucket['probability']
            if cumulative >= 0.5:
                return float(bucket['days'])
        return float(dist['buckets'][0]['days'])
    return DEFAULT_STAGE_DAYS


def sample_durations(dist: Optional[dict], rng: np.random.Generator, size: int) -> np.ndarray:
    """Draw ``size`` stage durations (days) from a duration distribution."""
    if not dist:
        return np.full(size, DEFAULT_STAGE_DAYS)

    kind = dist.get('type')
    if kind == 'lognormal':
        return rng.lognormal(mean=dist.get('mu', 0.0), sigma=dist.get('sigma', 1.0), size=size)
    if kind == 'constant':
        return np.full(size, float(dist.get('days') or DEFAULT_STAGE_DAYS))
    if kind == 'empirical' and dist.get('buckets'):
        days = np.array([b['days'] for b in dist['buckets']], dtype=float)
        probs = np.array([b['probability'] for b in dist['buckets']], dtype=float)
        return rng.choice(days, size=size, p=probs / probs.sum())
    return np.full(size, DEFAULT_STAGE_DAYS)


def simulate_time_to_hire(start_stage: CanonicalStage,
                          stage_durations: Dict[CanonicalStage, dict],
                          conversion_rates: Dict[CanonicalStage, float],
                          n_simulations: int = SIMULATION_RUNS,
                          seed: int = SIMULATION_SEED) -> np.ndarray:
    """Simulate days-to-hire for a candidate starting at ``start_stage``.

    Each run walks the funnel stage by stage, adding a sampled duration and
    rolling the stage's pass rate. Runs that fall out are dropped, so the
    result may hold fewer than ``n_simulations`` values.
    """
    if start_stage == CanonicalStage.HIRED:
        return np.zeros(n_simulations)
    if start_stage not in FUNNEL_ORDER:
        return np.array([])

    rng = np.random.default_rng(seed)
    elapsed = np.zeros(n_simulations)
    alive = np.ones(n_simulations, dtype=bool)

    for stage in FUNNEL_ORDER[FUNNEL_ORDER.index(start_stage):-1]:
        elapsed += sample_durations(stage_durations.get(stage), rng, n_simulations)
        pass_rate = conversion_rates.get(stage, DEFAULT_PASS_RATE)
        alive &= rng.random(n_simulations) <= pass_rate

    return elapsed[alive]


def simulate_queue_delay(demand: int, service_rate: float, queue_factor: float,
                         max_delay_days: float, n_simulations: int = SIMULATION_RUNS,
                         seed: int = SIMULATION_SEED) -> float:
    """Expected queue delay (days) for ``demand`` candidates at ``service_rate``/week.

    Service completions form a Poisson process, so the time to clear the
    backlog is Gamma(demand, 1/rate) weeks. Delay is the time beyond one
    week of work, averaged over runs.
    """
    if demand <= 0 or service_rate <= 0:
        return 0.0

    rng = np.random.default_rng(seed)
    clear_weeks = rng.gamma(shape=demand, scale=1.0 / service_rate, size=n_simulations)
    delay = np.clip(clear_weeks - 1.0, 0.0, None) * DAYS_PER_WEEK * queue_factor
    return float(min(np.mean(delay), max_delay_days))
