"""Move generation, impact simulation and scoring for the Capacity Rebalancing Engine."""

import logging
from typing import List, Optional

from capacity_rebalancer.config import DEFAULT_CONFIG, RebalancerConfig
from capacity_rebalancer.confidence import aggregate_confidences, get_hedge_message
from capacity_rebalancer.demand import pipeline_by_stage
from capacity_rebalancer.models import (
    EstimatedImpact, MoveScore, MoveState, NetImpact,
    ReassignmentCandidate, ReassignmentSuggestion, RebalancerInput,
    RecruiterSnapshot, SimulatedMoveImpact, UtilizationRow,
)
from capacity_rebalancer.utilization import RecruiterState, SnapshotContext

logger = logging.getLogger(__name__)

# Score assigned to moves that would push the target past the safety ceiling
INFEASIBLE_SCORE = -1000.0


def generate_move_options(overloaded: List[UtilizationRow], available: List[UtilizationRow],
                          context: SnapshotContext) -> List[ReassignmentCandidate]:
    """Every (req, source, target) triple from an overloaded to an available recruiter."""
    options = []
    for source in overloaded:
        source_reqs = [r for r in context.open_requisitions if r.recruiter_id == source.recruiter_id]
        for req in source_reqs:
            req_candidates = context.candidates_by_req.get(req.req_id, [])
            if not req_candidates:
                continue
            req_demand = pipeline_by_stage(req_candidates)

            for target in available:
                if target.recruiter_id == source.recruiter_id:
                    continue
                options.append(ReassignmentCandidate(
                    req_id=req.req_id,
                    from_recruiter_id=source.recruiter_id,
                    to_recruiter_id=target.recruiter_id,
                    req_demand=req_demand,
                    total_candidates=len(req_candidates),
                    req_title=req.title or f"Req {req.req_id}",
                    from_recruiter_name=source.recruiter_name,
                    to_recruiter_name=target.recruiter_name,
                ))
    return options


def _snapshot(state: RecruiterState) -> RecruiterSnapshot:
    return RecruiterSnapshot(
        utilization=state.utilization,
        queue_delay_days=state.penalty.total_queue_delay_days,
        status=state.status,
        demand_by_stage=dict(state.demand.recruiter_demand),
    )


def simulate_move_impact(move: ReassignmentCandidate, data: RebalancerInput,
                         config: RebalancerConfig = DEFAULT_CONFIG,
                         context: Optional[SnapshotContext] = None) -> SimulatedMoveImpact:
    """Before/after demand, utilization and queue delay for one req move.

    Works for engine-generated and user-proposed moves alike; a no-op move
    simply shows no net impact.
    """
    context = context or SnapshotContext(data, config)
    source_profile = context.profile(move.from_recruiter_id)
    target_profile = context.profile(move.to_recruiter_id)

    before_source = context.current(move.from_recruiter_id, move.req_id)
    before_target = context.current(move.to_recruiter_id, move.req_id)

    reassignment = (move.req_id, move.to_recruiter_id)
    after_source = context.workload(move.from_recruiter_id, reassignment)
    after_target = context.workload(move.to_recruiter_id, reassignment)

    source_relief = (before_source.penalty.total_queue_delay_days
                     - after_source.penalty.total_queue_delay_days)
    target_burden = (after_target.penalty.total_queue_delay_days
                     - before_target.penalty.total_queue_delay_days)

    confidence = aggregate_confidences([
        source_profile.overall_confidence,
        target_profile.overall_confidence,
        before_source.demand.confidence,
        before_target.demand.confidence,
    ])

    return SimulatedMoveImpact(
        move=move,
        before_source=_snapshot(before_source),
        after_source=_snapshot(after_source),
        before_target=_snapshot(before_target),
        after_target=_snapshot(after_target),
        net_impact=NetImpact(
            delay_reduction_days=source_relief - target_burden,
            source_relief_percent=(before_source.utilization - after_source.utilization) * 100,
            target_impact_percent=(after_target.utilization - before_target.utilization) * 100,
        ),
        confidence=confidence,
        hedge_message=get_hedge_message(confidence),
    )


def score_move(move: ReassignmentCandidate, context: SnapshotContext,
               max_dest_utilization: Optional[float] = None) -> MoveScore:
    """score = net delay reduction - transfer cost, or INFEASIBLE_SCORE past the ceiling."""
    config = context.config
    ceiling = config.max_dest_utilization_after_move if max_dest_utilization is None else max_dest_utilization
    impact = simulate_move_impact(move, context.data, config, context)

    if impact.after_target.utilization > ceiling:
        score = INFEASIBLE_SCORE
    else:
        score = impact.net_impact.delay_reduction_days - config.transfer_cost_days

    before = MoveState(
        source_utilization=impact.before_source.utilization,
        source_queue_delay=impact.before_source.queue_delay_days,
        target_utilization=impact.before_target.utilization,
        target_queue_delay=impact.before_target.queue_delay_days,
    )
    after = MoveState(
        source_utilization=impact.after_source.utilization,
        source_queue_delay=impact.after_source.queue_delay_days,
        target_utilization=impact.after_target.utilization,
        target_queue_delay=impact.after_target.queue_delay_days,
    )
    logger.debug("Move %s %s->%s scored %.2f", move.req_id, move.from_recruiter_id,
                 move.to_recruiter_id, score)

    return MoveScore(
        move=move,
        score=score,
        before_state=before,
        after_state=after,
        expected_delay_reduction=impact.net_impact.delay_reduction_days,
        utilization_balance_improvement=(
            abs(before.source_utilization - before.target_utilization)
            - abs(after.source_utilization - after.target_utilization)),
        confidence=impact.confidence,
        hedge_message=impact.hedge_message,
    )


def build_rationale(scored: MoveScore) -> str:
    move = scored.move
    relief = scored.before_state.source_utilization - scored.after_state.source_utilization
    parts = [
        f"Reduces {move.from_recruiter_name or move.from_recruiter_id}'s load by {round(relief * 100)}%",
        f"{move.to_recruiter_name or move.to_recruiter_id} has capacity "
        f"({round(scored.after_state.target_utilization * 100)}% after)",
    ]
    if scored.expected_delay_reduction > 0:
        parts.append(f"Expected ~{scored.expected_delay_reduction:.1f}d faster time-to-hire")
    return ". ".join(parts) + "."


def rank_moves(scored: List[MoveScore], max_suggestions: int) -> List[ReassignmentSuggestion]:
    """Keep beneficial moves, best first, ranked 1..N."""
    ranked = sorted((m for m in scored if m.is_feasible), key=lambda m: -m.score)[:max(0, max_suggestions)]

    suggestions = []
    for index, m in enumerate(ranked):
        suggestions.append(ReassignmentSuggestion(
            rank=index + 1,
            req_id=m.move.req_id,
            req_title=m.move.req_title,
            from_recruiter_id=m.move.from_recruiter_id,
            from_recruiter_name=m.move.from_recruiter_name,
            to_recruiter_id=m.move.to_recruiter_id,
            to_recruiter_name=m.move.to_recruiter_name,
            rationale=build_rationale(m),
            estimated_impact=EstimatedImpact(
                delay_reduction_days=m.expected_delay_reduction,
                source_utilization_before=m.before_state.source_utilization,
                source_utilization_after=m.after_state.source_utilization,
                target_utilization_before=m.before_state.target_utilization,
                target_utilization_after=m.after_state.target_utilization,
            ),
            confidence=m.confidence,
            hedge_message=m.hedge_message,
            req_demand=m.move.req_demand,
            score=m.score,
        ))
    return suggestions
