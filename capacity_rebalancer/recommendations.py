"""Recommendation generation for the Capacity Rebalancing Engine."""

import math
from typing import List

from capacity_rebalancer.confidence import get_hedge_message
from capacity_rebalancer.models import (
    STAGE_LABELS, CapacityProfile, CapacityRecommendation, ConfidenceLevel,
    GlobalDemand, StageQueueDiagnostic,
)

TARGET_UTILIZATION = 0.9
THROUGHPUT_IMPACT_SHARE = 0.7
REASSIGN_IMPACT_SHARE = 0.5
MIN_REQS_FOR_REASSIGN = 3


def generate_recommendations(bottlenecks: List[StageQueueDiagnostic], demand: GlobalDemand,
                             profile: CapacityProfile) -> List[CapacityRecommendation]:
    """Generate prescriptive recommendations for the worst bottlenecks."""
    recommendations = []
    hedge = get_hedge_message(profile.overall_confidence)

    for b in bottlenecks[:2]:
        label = STAGE_LABELS.get(b.stage, b.stage.value)

        # 1. Raise throughput to bring the stage to ~90% utilization
        target_rate = math.ceil(b.demand / TARGET_UTILIZATION)
        if target_rate > b.service_rate:
            recommendations.append(CapacityRecommendation(
                type='increase_throughput',
                description=f"{hedge}: Increase {label} throughput to ~{target_rate}/week",
                estimated_impact_days=round(b.queue_delay_days * THROUGHPUT_IMPACT_SHARE),
                stage=b.stage,
                current_value=b.service_rate,
                target_value=target_rate,
                owner_type=b.bottleneck_owner,
            ))

        # 2. Shed reqs when the owner carries several
        context = demand.hm_context if b.bottleneck_owner == 'hm' else demand.recruiter_context
        if context.open_req_count > MIN_REQS_FOR_REASSIGN and b.demand > 0:
            per_req = b.demand / context.open_req_count
            reqs_to_move = math.ceil((b.demand - b.service_rate) / per_req)
            if 0 < reqs_to_move < context.open_req_count:
                who = 'HM' if b.bottleneck_owner == 'hm' else 'Recruiter'
                recommendations.append(CapacityRecommendation(
                    type='reassign_workload',
                    description=f"{hedge}: Reassign ~{reqs_to_move} req(s) to reduce {who} load",
                    estimated_impact_days=round(b.queue_delay_days * REASSIGN_IMPACT_SHARE),
                    stage=b.stage,
                    current_value=context.open_req_count,
                    target_value=context.open_req_count - reqs_to_move,
                    owner_type=b.bottleneck_owner,
                ))

    # 3. Data quality
    if demand.confidence == ConfidenceLevel.LOW:
        recommendations.append(CapacityRecommendation(
            type='improve_data',
            description='Add recruiter_id and hm_id to improve forecast accuracy',
            estimated_impact_days=0,
        ))

    return recommendations
