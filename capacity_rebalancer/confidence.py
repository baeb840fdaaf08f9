"""Confidence ordering and hedging helpers shared across the engine."""

from typing import Iterable, Optional

from capacity_rebalancer.models import ConfidenceLevel

CONFIDENCE_ORDER = (
    ConfidenceLevel.INSUFFICIENT,
    ConfidenceLevel.LOW,
    ConfidenceLevel.MED,
    ConfidenceLevel.HIGH,
)

HEDGE_MESSAGES = {
    ConfidenceLevel.HIGH: "Based on observed patterns",
    ConfidenceLevel.MED: "Based on similar cohorts",
    ConfidenceLevel.LOW: "Estimated (limited data)",
    ConfidenceLevel.INSUFFICIENT: "Estimated (limited data)",
}


def aggregate_confidences(confidences: Iterable[Optional[ConfidenceLevel]]) -> ConfidenceLevel:
    """Return the weakest confidence; LOW when nothing was supplied."""
    levels = [c for c in confidences if c is not None]
    if not levels:
        return ConfidenceLevel.LOW
    return min(levels, key=CONFIDENCE_ORDER.index)


def confidence_from_transitions(n_transitions: int, high: int = 15, med: int = 5) -> ConfidenceLevel:
    if n_transitions >= high:
        return ConfidenceLevel.HIGH
    if n_transitions >= med:
        return ConfidenceLevel.MED
    return ConfidenceLevel.LOW


def get_hedge_message(confidence: ConfidenceLevel) -> str:
    return HEDGE_MESSAGES.get(confidence, HEDGE_MESSAGES[ConfidenceLevel.LOW])
