"""Capacity Rebalancing Engine: recruiter workload utilization and req reassignment suggestions."""

from capacity_rebalancer.config import DEFAULT_CONFIG, CapacityPriors, LoadThresholds, RebalancerConfig
from capacity_rebalancer.models import (
    ReassignmentCandidate, RebalancerInput, RebalancerOptions, RebalancerResult,
    SimulatedMoveImpact, UtilizationResult,
)
from capacity_rebalancer.rebalancer import (
    CapacityRebalancer, compute_recruiter_utilization, simulate_move_impact,
    suggest_reassignments,
)

__version__ = "0.1.0"
