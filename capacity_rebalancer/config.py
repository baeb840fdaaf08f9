"""Configuration constants for the Capacity Rebalancing Engine."""

from dataclasses import dataclass, field, replace
from typing import Dict

from capacity_rebalancer.models import CanonicalStage

SIMULATION_RUNS = 2000
SIMULATION_SEED = 42

# Weekly throughput priors used when the cohort itself has no history
GLOBAL_CAPACITY_PRIORS = {
    CanonicalStage.SCREEN: 8.0,
    CanonicalStage.HM_SCREEN: 4.0,
    CanonicalStage.ONSITE: 3.0,
    CanonicalStage.OFFER: 1.5,
}
HM_FEEDBACK_HOURS = 48.0

STAGE_WEIGHTS = {
    CanonicalStage.SCREEN: 0.35,
    CanonicalStage.HM_SCREEN: 0.25,
    CanonicalStage.ONSITE: 0.25,
    CanonicalStage.OFFER: 0.15,
}

# Lognormal median days are exp(mu): ~3.0, ~4.1, ~5.0, ~4.1
DEFAULT_STAGE_DURATIONS = {
    CanonicalStage.SCREEN: {"type": "lognormal", "mu": 1.1, "sigma": 0.5},
    CanonicalStage.HM_SCREEN: {"type": "lognormal", "mu": 1.4, "sigma": 0.5},
    CanonicalStage.ONSITE: {"type": "lognormal", "mu": 1.6, "sigma": 0.5},
    CanonicalStage.OFFER: {"type": "lognormal", "mu": 1.4, "sigma": 0.5},
}

DEFAULT_CONVERSION_RATES = {
    CanonicalStage.SCREEN: 0.5,
    CanonicalStage.HM_SCREEN: 0.6,
    CanonicalStage.ONSITE: 0.45,
    CanonicalStage.OFFER: 0.8,
}

QUEUE_MODELS = ("closed_form", "simulated")
PRIVACY_MODES = ("full", "anonymized", "local")


@dataclass(frozen=True)
class LoadThresholds:
    critical: float = 1.2
    overloaded: float = 1.1
    balanced_low: float = 0.9
    available: float = 0.7


@dataclass(frozen=True)
class CapacityPriors:
    screens_per_week: float = GLOBAL_CAPACITY_PRIORS[CanonicalStage.SCREEN]
    hm_screens_per_week: float = GLOBAL_CAPACITY_PRIORS[CanonicalStage.HM_SCREEN]
    onsites_per_week: float = GLOBAL_CAPACITY_PRIORS[CanonicalStage.ONSITE]
    offers_per_week: float = GLOBAL_CAPACITY_PRIORS[CanonicalStage.OFFER]
    hm_feedback_hours: float = HM_FEEDBACK_HOURS

    def for_stage(self, stage: CanonicalStage) -> float:
        return {
            CanonicalStage.SCREEN: self.screens_per_week,
            CanonicalStage.HM_SCREEN: self.hm_screens_per_week,
            CanonicalStage.ONSITE: self.onsites_per_week,
            CanonicalStage.OFFER: self.offers_per_week,
        }.get(stage, self.screens_per_week)


@dataclass(frozen=True)
class RebalancerConfig:
    """Tunable parameters for utilization, move scoring and queue modelling.

    Instances are passed explicitly to the orchestrator so tests can vary
    thresholds without touching module state.
    """
    stage_weights: Dict[CanonicalStage, float] = field(default_factory=lambda: dict(STAGE_WEIGHTS))
    thresholds: LoadThresholds = field(default_factory=LoadThresholds)
    priors: CapacityPriors = field(default_factory=CapacityPriors)

    epsilon: float = 0.1
    transfer_cost_days: float = 2.0
    max_dest_utilization_after_move: float = 1.05
    modest_overload_dest_utilization: float = 1.10
    min_recruiter_id_coverage: float = 0.5
    default_max_suggestions: int = 5

    # Recruiter confidence from the minimum observed transitions
    high_confidence_transitions: int = 15
    med_confidence_transitions: int = 5

    # Capacity inference
    min_weeks_for_capacity: int = 4
    min_transitions_for_throughput: int = 5
    shrinkage_k: float = 4.0
    high_confidence_weeks: int = 8

    # Queue penalty
    queue_model: str = "closed_form"
    queue_factor: float = 1.0
    max_queue_delay_days: float = 21.0
    stage_durations: Dict[CanonicalStage, dict] = field(
        default_factory=lambda: {s: dict(d) for s, d in DEFAULT_STAGE_DURATIONS.items()})
    conversion_rates: Dict[CanonicalStage, float] = field(
        default_factory=lambda: dict(DEFAULT_CONVERSION_RATES))

    simulation_runs: int = SIMULATION_RUNS
    simulation_seed: int = SIMULATION_SEED

    privacy_mode: str = "full"

    def __post_init__(self):
        t = self.thresholds
        if not (t.critical >= t.overloaded >= t.balanced_low >= t.available >= 0):
            raise ValueError(
                f"Load thresholds must be descending and non-negative, got {t}")
        if self.epsilon <= 0:
            raise ValueError("epsilon must be positive")
        if any(w < 0 for w in self.stage_weights.values()):
            raise ValueError("stage weights must be non-negative")
        if self.transfer_cost_days < 0:
            raise ValueError("transfer_cost_days must be non-negative")
        if not 0 <= self.min_recruiter_id_coverage <= 1:
            raise ValueError("min_recruiter_id_coverage must be within [0, 1]")
        if self.default_max_suggestions < 0:
            raise ValueError("default_max_suggestions must be non-negative")
        if self.queue_model not in QUEUE_MODELS:
            raise ValueError(f"Unknown queue model '{self.queue_model}', expected one of {QUEUE_MODELS}")
        if self.privacy_mode not in PRIVACY_MODES:
            raise ValueError(f"Unknown privacy mode '{self.privacy_mode}', expected one of {PRIVACY_MODES}")
        if self.simulation_runs <= 0:
            raise ValueError("simulation_runs must be positive")

    def with_overrides(self, **overrides) -> "RebalancerConfig":
        return replace(self, **overrides)


DEFAULT_CONFIG = RebalancerConfig()
