"""Capacity rebalancer: entry points for utilization, suggestions and move simulation.

Answers three questions for the dashboard:
1. Who is overloaded vs has slack? (compute_recruiter_utilization)
2. Which req moves reduce delay the most? (suggest_reassignments)
3. What is the predicted improvement of a given move? (simulate_move_impact)

Every call is a fresh, pure computation over the supplied snapshot.
"""

import logging
from typing import Optional

import pandas as pd

from capacity_rebalancer.config import DEFAULT_CONFIG, RebalancerConfig
from capacity_rebalancer.confidence import aggregate_confidences, get_hedge_message
from capacity_rebalancer.models import (
    AVAILABLE_STATUSES, OVERLOADED_STATUSES, ConfidenceLevel, ReassignmentCandidate,
    RebalancerInput, RebalancerOptions, RebalancerResult, SimulatedMoveImpact,
    UtilizationResult,
)
from capacity_rebalancer.moves import generate_move_options, rank_moves, score_move
from capacity_rebalancer.moves import simulate_move_impact as _simulate_move_impact
from capacity_rebalancer.utilization import SnapshotContext
from capacity_rebalancer.utilization import compute_recruiter_utilization as _compute_utilization

logger = logging.getLogger(__name__)


class CapacityRebalancer:
    """Recruiter workload rebalancer bound to one configuration."""

    def __init__(self, config: Optional[RebalancerConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def compute_recruiter_utilization(self, data: RebalancerInput) -> UtilizationResult:
        return _compute_utilization(data, self.config)

    def suggest_reassignments(self, data: RebalancerInput,
                              options: Optional[RebalancerOptions] = None) -> RebalancerResult:
        """Rank req moves from overloaded to available recruiters."""
        options = options or RebalancerOptions()
        max_suggestions = (self.config.default_max_suggestions
                           if options.max_suggestions is None else options.max_suggestions)

        context = SnapshotContext(data, self.config)
        utilization = _compute_utilization(data, self.config, context)
        coverage = utilization.data_quality.recruiter_id_coverage

        if coverage < self.config.min_recruiter_id_coverage:
            logger.info("Suggestions suppressed: recruiter_id coverage %.0f%%", coverage * 100)
            return RebalancerResult(
                utilization_result=utilization,
                suggestions=[],
                has_suggestions=False,
                is_balanced=False,
                confidence=ConfidenceLevel.LOW,
                hedge_message=f"Limited data: Only {round(coverage * 100)}% of reqs have recruiter_id assigned",
            )

        overloaded = [r for r in utilization.rows if r.status in OVERLOADED_STATUSES]
        available = [r for r in utilization.rows if r.status in AVAILABLE_STATUSES]

        if not overloaded:
            logger.info("All %d recruiters within capacity", len(utilization.rows))
            return RebalancerResult(
                utilization_result=utilization,
                suggestions=[],
                has_suggestions=False,
                is_balanced=True,
                confidence=utilization.confidence,
                hedge_message="All recruiters are operating within capacity",
            )

        if not available:
            logger.info("%d overloaded recruiters but no rebalancing targets", len(overloaded))
            return RebalancerResult(
                utilization_result=utilization,
                suggestions=[],
                has_suggestions=False,
                is_balanced=False,
                confidence=utilization.confidence,
                hedge_message="All recruiters are at or above capacity - no rebalancing targets available",
            )

        ceiling = (self.config.modest_overload_dest_utilization if options.allow_modest_overload
                   else self.config.max_dest_utilization_after_move)
        moves = generate_move_options(overloaded, available, context)
        scored = [score_move(move, context, ceiling) for move in moves]
        suggestions = rank_moves(scored, max_suggestions)

        logger.info("Scored %d candidate moves (%d overloaded, %d available); %d suggested",
                    len(moves), len(overloaded), len(available), len(suggestions))

        confidence = (aggregate_confidences(s.confidence for s in suggestions)
                      if suggestions else utilization.confidence)
        return RebalancerResult(
            utilization_result=utilization,
            suggestions=suggestions,
            has_suggestions=bool(suggestions),
            is_balanced=False,
            confidence=confidence,
            hedge_message=get_hedge_message(confidence),
        )

    def simulate_move_impact(self, move: ReassignmentCandidate,
                             data: RebalancerInput) -> SimulatedMoveImpact:
        return _simulate_move_impact(move, data, self.config)


def compute_recruiter_utilization(data: RebalancerInput,
                                  config: Optional[RebalancerConfig] = None) -> UtilizationResult:
    return CapacityRebalancer(config).compute_recruiter_utilization(data)


def suggest_reassignments(data: RebalancerInput, options: Optional[RebalancerOptions] = None,
                          config: Optional[RebalancerConfig] = None) -> RebalancerResult:
    return CapacityRebalancer(config).suggest_reassignments(data, options)


def simulate_move_impact(move: ReassignmentCandidate, data: RebalancerInput,
                         config: Optional[RebalancerConfig] = None) -> SimulatedMoveImpact:
    return CapacityRebalancer(config).simulate_move_impact(move, data)


def suggestions_table(result: RebalancerResult) -> pd.DataFrame:
    """Ranked suggestions as the dashboard's action table."""
    return pd.DataFrame([
        {
            'Rank': s.rank,
            'Req': s.req_title,
            'From': s.from_recruiter_name,
            'To': s.to_recruiter_name,
            'Delay Saved (d)': round(s.estimated_impact.delay_reduction_days, 1),
            'Source Util Before %': round(s.estimated_impact.source_utilization_before * 100),
            'Source Util After %': round(s.estimated_impact.source_utilization_after * 100),
            'Target Util After %': round(s.estimated_impact.target_utilization_after * 100),
            'Confidence': s.confidence.value,
            'Rationale': s.rationale,
        }
        for s in result.suggestions
    ], columns=['Rank', 'Req', 'From', 'To', 'Delay Saved (d)', 'Source Util Before %',
                'Source Util After %', 'Target Util After %', 'Confidence', 'Rationale'])
