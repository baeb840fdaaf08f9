"""Data models for the Capacity Rebalancing Engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class CanonicalStage(str, Enum):
    LEAD = "LEAD"
    APPLIED = "APPLIED"
    SCREEN = "SCREEN"
    HM_SCREEN = "HM_SCREEN"
    ONSITE = "ONSITE"
    FINAL = "FINAL"
    OFFER = "OFFER"
    HIRED = "HIRED"
    REJECTED = "REJECTED"
    WITHDREW = "WITHDREW"


class RequisitionStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    ON_HOLD = "OnHold"
    CANCELED = "Canceled"


class CandidateDisposition(str, Enum):
    ACTIVE = "Active"
    HIRED = "Hired"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"


class EventType(str, Enum):
    STAGE_CHANGE = "STAGE_CHANGE"
    INTERVIEW_SCHEDULED = "INTERVIEW_SCHEDULED"
    INTERVIEW_COMPLETED = "INTERVIEW_COMPLETED"
    FEEDBACK_SUBMITTED = "FEEDBACK_SUBMITTED"
    OFFER_EXTENDED = "OFFER_EXTENDED"
    OFFER_ACCEPTED = "OFFER_ACCEPTED"
    OFFER_DECLINED = "OFFER_DECLINED"
    CANDIDATE_WITHDREW = "CANDIDATE_WITHDREW"
    OTHER = "OTHER"


class ConfidenceLevel(str, Enum):
    HIGH = "HIGH"
    MED = "MED"
    LOW = "LOW"
    INSUFFICIENT = "INSUFFICIENT"


class LoadStatus(str, Enum):
    CRITICAL = "critical"
    OVERLOADED = "overloaded"
    BALANCED = "balanced"
    AVAILABLE = "available"
    UNDERUTILIZED = "underutilized"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ReasonKind(str, Enum):
    MISSING_DATA = "missing_data"
    SAMPLE_SIZE = "sample_size"
    SHRINKAGE = "shrinkage"
    OTHER = "other"


class ReasonImpact(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


CAPACITY_LIMITED_STAGES = (
    CanonicalStage.SCREEN,
    CanonicalStage.HM_SCREEN,
    CanonicalStage.ONSITE,
    CanonicalStage.OFFER,
)

STAGE_OWNERS = {
    CanonicalStage.SCREEN: "recruiter",
    CanonicalStage.HM_SCREEN: "hm",
    CanonicalStage.ONSITE: "shared",
    CanonicalStage.OFFER: "recruiter",
}

STAGE_LABELS = {
    CanonicalStage.SCREEN: "Screen",
    CanonicalStage.HM_SCREEN: "HM Interview",
    CanonicalStage.ONSITE: "Onsite",
    CanonicalStage.OFFER: "Offer",
}

OVERLOADED_STATUSES = (LoadStatus.CRITICAL, LoadStatus.OVERLOADED)
AVAILABLE_STATUSES = (LoadStatus.AVAILABLE, LoadStatus.UNDERUTILIZED, LoadStatus.BALANCED)

_STAGE_ALIASES = {
    "phone screen": CanonicalStage.SCREEN,
    "recruiter screen": CanonicalStage.SCREEN,
    "screen": CanonicalStage.SCREEN,
    "hm screen": CanonicalStage.HM_SCREEN,
    "hm interview": CanonicalStage.HM_SCREEN,
    "hiring manager screen": CanonicalStage.HM_SCREEN,
    "onsite": CanonicalStage.ONSITE,
    "on-site": CanonicalStage.ONSITE,
    "panel": CanonicalStage.ONSITE,
    "final": CanonicalStage.FINAL,
    "offer": CanonicalStage.OFFER,
    "hired": CanonicalStage.HIRED,
}


def normalize_stage(stage) -> Optional[CanonicalStage]:
    """Map a loose stage label onto the canonical stage enum."""
    if stage is None:
        return None
    if isinstance(stage, CanonicalStage):
        return stage
    text = str(stage).strip()
    try:
        return CanonicalStage(text.upper().replace(" ", "_").replace("-", "_"))
    except ValueError:
        return _STAGE_ALIASES.get(text.lower().replace("_", " "))


# =============================================================================
# SNAPSHOT ENTITIES
# =============================================================================

@dataclass(frozen=True)
class Requisition:
    req_id: str
    title: str
    status: RequisitionStatus
    recruiter_id: Optional[str]
    hiring_manager_id: Optional[str] = None
    closed_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        if self.status == RequisitionStatus.OPEN:
            return True
        return self.closed_at is None and self.status != RequisitionStatus.CLOSED


@dataclass(frozen=True)
class Candidate:
    candidate_id: str
    req_id: str
    current_stage: Optional[CanonicalStage]
    disposition: Optional[CandidateDisposition] = CandidateDisposition.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.disposition is None or self.disposition == CandidateDisposition.ACTIVE


@dataclass(frozen=True)
class Event:
    event_id: str
    candidate_id: str
    req_id: str
    event_type: EventType
    event_at: datetime
    from_stage: Optional[CanonicalStage] = None
    to_stage: Optional[CanonicalStage] = None
    actor_user_id: Optional[str] = None


@dataclass(frozen=True)
class User:
    user_id: str
    name: Optional[str]
    role: str = "Recruiter"


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    @property
    def weeks(self) -> int:
        return max(1, (self.end - self.start).days // 7)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class RebalancerInput:
    candidates: List[Candidate]
    requisitions: List[Requisition]
    events: List[Event]
    users: List[User]
    date_range: DateRange


# =============================================================================
# CAPACITY AND DEMAND
# =============================================================================

@dataclass(frozen=True)
class ConfidenceReason:
    kind: ReasonKind
    message: str
    impact: ReasonImpact


@dataclass(frozen=True)
class StageCapacity:
    stage: CanonicalStage
    throughput_per_week: float
    n_weeks: int
    n_transitions_observed: int
    confidence: ConfidenceLevel
    prior_throughput: float
    observed_throughput: float
    used_fallback: bool


@dataclass(frozen=True)
class CohortDefaults:
    throughput: Dict[CanonicalStage, float]
    hm_feedback_hours: float
    recruiters: int
    weeks: int

    def for_stage(self, stage: CanonicalStage) -> float:
        return self.throughput.get(stage, self.throughput[CanonicalStage.SCREEN])


@dataclass(frozen=True)
class CapacityProfile:
    recruiter_id: Optional[str]
    stages: Dict[CanonicalStage, StageCapacity]
    cohort_defaults: CohortDefaults
    overall_confidence: ConfidenceLevel
    confidence_reasons: List[ConfidenceReason]
    used_cohort_fallback: bool
    hm_id: Optional[str] = None
    hm_interviews: Optional[StageCapacity] = None

    def throughput_for(self, stage: CanonicalStage) -> float:
        if stage == CanonicalStage.HM_SCREEN and self.hm_interviews is not None:
            return self.hm_interviews.throughput_per_week
        if stage in self.stages:
            return self.stages[stage].throughput_per_week
        return self.cohort_defaults.for_stage(stage)

    def confidence_for(self, stage: CanonicalStage) -> ConfidenceLevel:
        if stage == CanonicalStage.HM_SCREEN and self.hm_interviews is not None:
            return self.hm_interviews.confidence
        if stage in self.stages and not self.stages[stage].used_fallback:
            return self.stages[stage].confidence
        return ConfidenceLevel.LOW


PipelineByStage = Dict[CanonicalStage, int]


@dataclass(frozen=True)
class WorkloadContext:
    owner_id: Optional[str]
    owner_name: Optional[str]
    open_req_count: int
    total_candidates_in_flight: int
    req_ids: List[str]


@dataclass(frozen=True)
class GlobalDemand:
    demand_scope: str
    recruiter_demand: PipelineByStage
    hm_demand: PipelineByStage
    recruiter_context: WorkloadContext
    hm_context: WorkloadContext
    selected_req_pipeline: PipelineByStage
    confidence: ConfidenceLevel
    confidence_reasons: List[ConfidenceReason]


@dataclass(frozen=True)
class StageQueueDiagnostic:
    stage: CanonicalStage
    stage_name: str
    demand: int
    service_rate: float
    queue_delay_days: float
    is_bottleneck: bool
    bottleneck_owner: str
    confidence: ConfidenceLevel
    original_median_days: float
    adjusted_median_days: float
    adjusted_mu: Optional[float] = None


@dataclass(frozen=True)
class CapacityRecommendation:
    type: str
    description: str
    estimated_impact_days: float
    stage: Optional[CanonicalStage] = None
    current_value: Optional[float] = None
    target_value: Optional[float] = None
    owner_type: Optional[str] = None


@dataclass(frozen=True)
class PenaltyResult:
    stage_diagnostics: List[StageQueueDiagnostic]
    top_bottlenecks: List[StageQueueDiagnostic]
    total_queue_delay_days: float
    confidence: ConfidenceLevel
    global_demand: GlobalDemand
    recommendations: List[CapacityRecommendation] = field(default_factory=list)


# =============================================================================
# UTILIZATION
# =============================================================================

@dataclass(frozen=True)
class StageUtilization:
    stage: CanonicalStage
    stage_name: str
    demand: int
    capacity: float
    utilization: float
    confidence: ConfidenceLevel


@dataclass(frozen=True)
class UtilizationRow:
    recruiter_id: str
    recruiter_name: str
    req_count: int
    total_demand: int
    total_capacity: float
    utilization: float
    status: LoadStatus
    stage_utilization: List[StageUtilization]
    confidence: ConfidenceLevel
    confidence_reasons: List[ConfidenceReason]
    capacity_profile: Optional[CapacityProfile] = None


@dataclass(frozen=True)
class UtilizationSummary:
    total_demand: int
    total_capacity: float
    overall_utilization: float
    overall_status: LoadStatus
    critical_count: int
    overloaded_count: int
    balanced_count: int
    available_count: int
    underutilized_count: int


@dataclass(frozen=True)
class DataQuality:
    recruiter_id_coverage: float
    reqs_without_recruiter: int
    total_reqs: int


@dataclass(frozen=True)
class UtilizationResult:
    rows: List[UtilizationRow]
    summary: UtilizationSummary
    data_quality: DataQuality
    confidence: ConfidenceLevel
    confidence_reasons: List[ConfidenceReason]
    hedge_message: str

    def row_for(self, recruiter_id: str) -> Optional[UtilizationRow]:
        return next((r for r in self.rows if r.recruiter_id == recruiter_id), None)


# =============================================================================
# MOVES
# =============================================================================

@dataclass(frozen=True)
class ReassignmentCandidate:
    req_id: str
    from_recruiter_id: str
    to_recruiter_id: str
    req_demand: PipelineByStage = field(default_factory=dict)
    total_candidates: int = 0
    req_title: str = ""
    from_recruiter_name: str = ""
    to_recruiter_name: str = ""


@dataclass(frozen=True)
class MoveState:
    source_utilization: float
    source_queue_delay: float
    target_utilization: float
    target_queue_delay: float


@dataclass(frozen=True)
class MoveScore:
    move: ReassignmentCandidate
    score: float
    before_state: MoveState
    after_state: MoveState
    expected_delay_reduction: float
    utilization_balance_improvement: float
    confidence: ConfidenceLevel
    hedge_message: str

    @property
    def is_feasible(self) -> bool:
        return self.score > 0


@dataclass(frozen=True)
class EstimatedImpact:
    delay_reduction_days: float
    source_utilization_before: float
    source_utilization_after: float
    target_utilization_before: float
    target_utilization_after: float


@dataclass(frozen=True)
class ReassignmentSuggestion:
    rank: int
    req_id: str
    req_title: str
    from_recruiter_id: str
    from_recruiter_name: str
    to_recruiter_id: str
    to_recruiter_name: str
    rationale: str
    estimated_impact: EstimatedImpact
    confidence: ConfidenceLevel
    hedge_message: str
    req_demand: PipelineByStage
    score: float = 0.0

    def to_action_evidence(self) -> dict:
        """Evidence record attached to a REASSIGN_REQ action in the action queue."""
        impact = self.estimated_impact
        return {
            'source': 'capacity_rebalancer',
            'move_rank': self.rank,
            'expected_improvement_days': impact.delay_reduction_days,
            'confidence': self.confidence.value,
            'from_recruiter_id': self.from_recruiter_id,
            'to_recruiter_id': self.to_recruiter_id,
            'before_after_snapshot': {
                'source_util_before': impact.source_utilization_before,
                'source_util_after': impact.source_utilization_after,
                'target_util_before': impact.target_utilization_before,
                'target_util_after': impact.target_utilization_after,
            },
        }


@dataclass(frozen=True)
class RebalancerOptions:
    max_suggestions: Optional[int] = None
    allow_modest_overload: bool = False


@dataclass(frozen=True)
class RebalancerResult:
    utilization_result: UtilizationResult
    suggestions: List[ReassignmentSuggestion]
    has_suggestions: bool
    is_balanced: bool
    confidence: ConfidenceLevel
    hedge_message: str


@dataclass(frozen=True)
class RecruiterSnapshot:
    utilization: float
    queue_delay_days: float
    status: LoadStatus
    demand_by_stage: PipelineByStage


@dataclass(frozen=True)
class NetImpact:
    delay_reduction_days: float
    source_relief_percent: float
    target_impact_percent: float


@dataclass(frozen=True)
class SimulatedMoveImpact:
    move: ReassignmentCandidate
    before_source: RecruiterSnapshot
    after_source: RecruiterSnapshot
    before_target: RecruiterSnapshot
    after_target: RecruiterSnapshot
    net_impact: NetImpact
    confidence: ConfidenceLevel
    hedge_message: str


# =============================================================================
# FORECAST
# =============================================================================

@dataclass(frozen=True)
class ForecastSummary:
    p10_days: float
    p50_days: float
    p90_days: float
    p10_date: datetime
    p50_date: datetime
    p90_date: datetime
    n_hired_runs: int
    probability_by_target: Optional[float] = None
    probability_ci: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class CapacityAwareForecast:
    req_id: str
    start_stage: CanonicalStage
    pipeline_only: ForecastSummary
    capacity_aware: ForecastSummary
    p50_delta_days: float
    capacity_bottlenecks: List[StageQueueDiagnostic]
    capacity_confidence: ConfidenceLevel
    capacity_reasons: List[ConfidenceReason]
    capacity_constrained: bool
    recommendations: List[CapacityRecommendation]
    capacity_profile: CapacityProfile
