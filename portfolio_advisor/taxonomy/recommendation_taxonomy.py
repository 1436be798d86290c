"""
Fixed vocabularies for portfolio recommendations and review filters.

  - ``Recommendation``   : the capital decision attached to a company.
  - ``ConfidenceLabel``  : human label for the 1-5 confidence ordinal.
  - ``InvestmentRange``  : total-investment buckets used by the range filter.
  - ``MoicBin``          : MOIC histogram buckets.
  - ``RiskBand``         : coarse risk classification of a 0-100 risk score.
  - ``BatchState`` / ``RecordState`` : orchestrator lifecycle states.

This module has NO imports from any other ``portfolio_advisor`` package.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional


class Recommendation(StrEnum):
    """Capital decision for a portfolio company."""

    HOLD = "Hold"
    REINVEST = "Reinvest"
    EXIT = "Exit"
    MONITOR = "Monitor"
    DECLINE = "Decline"
    DOUBLE_DOWN = "DoubleDown"
    PENDING = "Pending"
    """Not analyzed yet, or analysis could not produce a decision."""


class ConfidenceLabel(StrEnum):
    """Label shown for each confidence ordinal."""

    VERY_LOW = "Very Low"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"


CONFIDENCE_LABELS: dict[int, ConfidenceLabel] = {
    1: ConfidenceLabel.VERY_LOW,
    2: ConfidenceLabel.LOW,
    3: ConfidenceLabel.MEDIUM,
    4: ConfidenceLabel.HIGH,
    5: ConfidenceLabel.VERY_HIGH,
}


def confidence_label(confidence: Optional[int]) -> Optional[ConfidenceLabel]:
    """Return the label for a 1-5 confidence value, or ``None``."""
    if confidence is None:
        return None
    return CONFIDENCE_LABELS.get(confidence)


class InvestmentRange(StrEnum):
    """Total-investment buckets. Lower bound inclusive, upper bound exclusive."""

    UNDER_1M = "Under $1M"
    FROM_1M_TO_5M = "$1M–$5M"
    FROM_5M_TO_10M = "$5M–$10M"
    FROM_10M_TO_50M = "$10M–$50M"
    OVER_50M = "Over $50M"


# (range, lower bound inclusive, upper bound exclusive)
INVESTMENT_RANGE_BOUNDS: tuple[tuple[InvestmentRange, float, float], ...] = (
    (InvestmentRange.UNDER_1M, float("-inf"), 1_000_000),
    (InvestmentRange.FROM_1M_TO_5M, 1_000_000, 5_000_000),
    (InvestmentRange.FROM_5M_TO_10M, 5_000_000, 10_000_000),
    (InvestmentRange.FROM_10M_TO_50M, 10_000_000, 50_000_000),
    (InvestmentRange.OVER_50M, 50_000_000, float("inf")),
)


def investment_range_for(amount: float) -> InvestmentRange:
    """Return the bucket containing ``amount``."""
    for bucket, low, high in INVESTMENT_RANGE_BOUNDS:
        if low <= amount < high:
            return bucket
    return InvestmentRange.OVER_50M


def parse_investment_range(value: str) -> Optional[InvestmentRange]:
    """Parse a range label, accepting hyphen or en-dash spellings.

    ``""`` returns ``None`` (no constraint). ``"$1M - $5M"``, ``"$1M-$5M"``
    and ``"$1M–$5M"`` all parse to ``FROM_1M_TO_5M``.

    Raises:
        ValueError: For an unknown, non-empty label.
    """
    cleaned = value.strip()
    if not cleaned:
        return None
    canonical = "".join(cleaned.replace("-", "–").split()).lower()
    for bucket in InvestmentRange:
        if "".join(bucket.value.split()).lower() == canonical:
            return bucket
    raise ValueError(
        f"Unknown investment range '{value}'. "
        f"Expected one of {[r.value for r in InvestmentRange]}."
    )


class MoicBin(StrEnum):
    """MOIC histogram buckets, breakpoints 0 / 1 / 2 / 3 / 5."""

    BELOW_1X = "<1x"
    FROM_1X_TO_2X = "1–2x"
    FROM_2X_TO_3X = "2–3x"
    FROM_3X_TO_5X = "3–5x"
    ABOVE_5X = "5x+"


class RiskBand(StrEnum):
    """Coarse classification of a 0-100 risk score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BatchState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


class RecordState(StrEnum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    DONE = "done"
    FAILED = "failed"
