"""Shared fixtures for the Capacity Rebalancing Engine tests."""

from datetime import datetime, timedelta

import pytest

from capacity_rebalancer.config import DEFAULT_CONFIG, CapacityPriors
from capacity_rebalancer.models import (
    Candidate, CanonicalStage, DateRange, Event, EventType, RebalancerInput,
    Requisition, RequisitionStatus, User,
)

# Eight whole weeks
WINDOW = DateRange(start=datetime(2026, 1, 1), end=datetime(2026, 2, 26))


def make_req(req_id, recruiter_id, status=RequisitionStatus.OPEN, hm_id=None, title=None):
    return Requisition(
        req_id=req_id,
        title=title or f"Engineer {req_id}",
        status=status,
        recruiter_id=recruiter_id,
        hiring_manager_id=hm_id,
    )


def make_candidates(req_id, count, stage=CanonicalStage.SCREEN):
    return [Candidate(candidate_id=f"{req_id}-{stage.value.lower()}-{i}", req_id=req_id, current_stage=stage)
            for i in range(count)]


def make_transitions(req_id, stage, count, actor_user_id=None, start=WINDOW.start):
    """``count`` STAGE_CHANGE events into ``stage``, one per day from ``start``."""
    return [Event(event_id=f"{req_id}-{stage.value}-{i}", candidate_id=f"{req_id}-h{i}",
                  req_id=req_id, event_type=EventType.STAGE_CHANGE,
                  event_at=start + timedelta(days=i % 50), to_stage=stage,
                  actor_user_id=actor_user_id)
            for i in range(count)]


def make_input(requisitions, candidates, events=(), users=(), date_range=WINDOW):
    return RebalancerInput(
        candidates=list(candidates),
        requisitions=list(requisitions),
        events=list(events),
        users=list(users),
        date_range=date_range,
    )


def build_workload(loads, stage=CanonicalStage.SCREEN, users=()):
    """Snapshot from {recruiter_id: [candidates per req, ...]}."""
    reqs, candidates = [], []
    for recruiter_id, sizes in loads.items():
        for i, size in enumerate(sizes):
            req_id = f"{recruiter_id}-{i + 1}"
            reqs.append(make_req(req_id, recruiter_id))
            candidates.extend(make_candidates(req_id, size, stage))
    return make_input(reqs, candidates, users=users)


@pytest.fixture
def flat_config():
    """Every stage clears exactly 5 candidates a week when history is empty."""
    return DEFAULT_CONFIG.with_overrides(priors=CapacityPriors(
        screens_per_week=5.0,
        hm_screens_per_week=5.0,
        onsites_per_week=5.0,
        offers_per_week=5.0,
    ))


@pytest.fixture
def workload():
    return build_workload


@pytest.fixture
def users():
    return [User("alice", "Alice Smith"), User("bob", "Bob Jones")]


@pytest.fixture
def overloaded_pair(workload, users):
    """Alice: 5 reqs x 2 screens (200% loaded). Bob: 1 req x 1 screen (20%)."""
    return workload({"alice": [2, 2, 2, 2, 2], "bob": [1]}, users=users)
