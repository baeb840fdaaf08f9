"""Data loading and validation for the Capacity Rebalancing Engine."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from capacity_rebalancer.models import (
    Candidate, CandidateDisposition, DateRange, Event, EventType,
    RebalancerInput, Requisition, RequisitionStatus, User, normalize_stage,
)

logger = logging.getLogger(__name__)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse 'YYYY-MM-DD' or an ISO-8601 timestamp into naive UTC; None passes through."""
    if value is None:
        return None
    if len(value) == 10:
        return datetime.strptime(value, '%Y-%m-%d')
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_snapshot(json_text: str) -> RebalancerInput:
    """Parse an uploaded JSON snapshot into engine inputs."""
    data = json.loads(json_text)

    requisitions = [
        Requisition(
            req_id=r['req_id'],
            title=r.get('title', ''),
            status=RequisitionStatus(r.get('status', RequisitionStatus.OPEN.value)),
            recruiter_id=r.get('recruiter_id') or None,
            hiring_manager_id=r.get('hiring_manager_id') or None,
            closed_at=parse_datetime(r.get('closed_at')),
        )
        for r in data['requisitions']
    ]

    candidates = [
        Candidate(
            candidate_id=c['candidate_id'],
            req_id=c['req_id'],
            current_stage=normalize_stage(c.get('current_stage')),
            disposition=CandidateDisposition(c['disposition']) if c.get('disposition') else None,
        )
        for c in data['candidates']
    ]

    events = [
        Event(
            event_id=e['event_id'],
            candidate_id=e['candidate_id'],
            req_id=e['req_id'],
            event_type=EventType(e['event_type']),
            event_at=parse_datetime(e['event_at']),
            from_stage=normalize_stage(e.get('from_stage')),
            to_stage=normalize_stage(e.get('to_stage')),
            actor_user_id=e.get('actor_user_id'),
        )
        for e in data.get('events', [])
    ]

    users = [
        User(user_id=u['user_id'], name=u.get('name'), role=u.get('role', 'Recruiter'))
        for u in data.get('users', [])
    ]

    date_range = DateRange(
        start=parse_datetime(data['date_range']['start']),
        end=parse_datetime(data['date_range']['end']),
    )

    return RebalancerInput(
        candidates=candidates,
        requisitions=requisitions,
        events=events,
        users=users,
        date_range=date_range,
    )


def validate_data(data: RebalancerInput) -> Tuple[bool, str]:
    """Validate a parsed snapshot for consistency."""
    errors = []
    req_ids = {r.req_id for r in data.requisitions}

    for c in data.candidates:
        if c.req_id not in req_ids:
            errors.append(f"Candidate {c.candidate_id} references unknown req {c.req_id}")
    for e in data.events:
        if e.req_id not in req_ids:
            errors.append(f"Event {e.event_id} references unknown req {e.req_id}")

    if not data.requisitions:
        errors.append("No requisitions found in snapshot")
    if not data.candidates:
        errors.append("No candidates found in snapshot")
    if data.date_range.end < data.date_range.start:
        errors.append("date_range end is before start")

    if errors:
        logger.warning("Snapshot validation found %d problem(s)", len(errors))
        return False, "\n".join(errors)
    return True, (f"Loaded {len(data.requisitions)} requisitions, "
                  f"{len(data.candidates)} candidates and {len(data.events)} events")
