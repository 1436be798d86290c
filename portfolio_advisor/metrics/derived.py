"""
Derived portfolio metrics: pure functions over records, no I/O.

Nothing here is cached or persisted. The review surface calls these on every
query so metrics can never go stale relative to the active filters.

Per-record metrics
------------------
capital_efficiency:
    1 / burn_multiple when burn_multiple > 0. ``None`` (never 0, inf or NaN)
    when burn multiple is unknown or zero.

moic_bin:
    Breakpoints 0 / 1 / 2 / 3 / 5, lower bound inclusive::

        [0, 1) -> "<1x"   [1, 2) -> "1–2x"   [2, 3) -> "2–3x"
        [3, 5) -> "3–5x"  [5, inf) -> "5x+"

    ``None`` for unknown MOIC; such records are left out of bin counts.

risk_score (0-100):
    Base 50, +20 if burn multiple > 3, +15 if runway < 12 months, +25 if
    revenue growth is negative; capped at 100. Unknown inputs add nothing.

risk_band:
    score < 40 -> low;  40 <= score < 70 -> medium;  score >= 70 -> high.

exposure_weight:
    (total invested + additional requested) in millions of dollars; sizes
    the exposure bubbles.

risk_adjusted_moic:
    moic * confidence / 5.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from portfolio_advisor.models.analysis import EnrichedRecord
from portfolio_advisor.models.record import PortfolioRecord
from portfolio_advisor.taxonomy.recommendation_taxonomy import MoicBin, RiskBand

RecordLike = Union[PortfolioRecord, EnrichedRecord]

_MOIC_BREAKPOINTS: tuple[tuple[float, MoicBin], ...] = (
    (5.0, MoicBin.ABOVE_5X),
    (3.0, MoicBin.FROM_3X_TO_5X),
    (2.0, MoicBin.FROM_2X_TO_3X),
    (1.0, MoicBin.FROM_1X_TO_2X),
)

RISK_BASE_SCORE = 50.0
RISK_MEDIUM_THRESHOLD = 40.0
RISK_HIGH_THRESHOLD = 70.0


@dataclass(frozen=True)
class DerivedMetrics:
    """All derived metrics for one record (recomputed per query)."""

    capital_efficiency: Optional[float]
    moic_bin: Optional[MoicBin]
    risk_score: float
    risk_band: RiskBand
    exposure_weight: float
    risk_adjusted_moic: Optional[float]


@dataclass(frozen=True)
class EfficiencyEntry:
    """One row of the capital efficiency leaderboard."""

    record_id: str
    company_name: str
    capital_efficiency: float
    burn_multiple: float


@dataclass
class PortfolioSummary:
    """Headline numbers for the portfolio review surface.

    Attributes:
        company_count:      Records in the (filtered) collection.
        total_invested:     Sum of total_investment.
        total_requested:    Sum of known additional_investment_requested.
        average_moic:       Mean over records with known MOIC; ``None`` if none.
        high_risk_count:    Records whose risk band is ``high``.
        analyzed_count:     Records with a non-Pending recommendation.
        insufficient_count: Records flagged insufficient_data.
        pending_count:      Records still Pending.
        moic_bins:          Bin label -> count (unknown MOIC excluded).
    """

    company_count: int = 0
    total_invested: float = 0.0
    total_requested: float = 0.0
    average_moic: Optional[float] = None
    high_risk_count: int = 0
    analyzed_count: int = 0
    insufficient_count: int = 0
    pending_count: int = 0
    moic_bins: dict[str, int] = field(default_factory=dict)


# ── Per-record metrics ────────────────────────────────────────────────────────


def capital_efficiency(burn_multiple: Optional[float]) -> Optional[float]:
    if burn_multiple is None or burn_multiple <= 0:
        return None
    return 1.0 / burn_multiple


def moic_bin(moic: Optional[float]) -> Optional[MoicBin]:
    if moic is None:
        return None
    for lower, label in _MOIC_BREAKPOINTS:
        if moic >= lower:
            return label
    return MoicBin.BELOW_1X


def risk_score(record: RecordLike) -> float:
    rec = _as_record(record)
    score = RISK_BASE_SCORE
    if rec.burn_multiple is not None and rec.burn_multiple > 3:
        score += 20
    if rec.runway_months is not None and rec.runway_months < 12:
        score += 15
    if rec.revenue_growth is not None and rec.revenue_growth < 0:
        score += 25
    return min(100.0, score)


def risk_band(score: float) -> RiskBand:
    if score >= RISK_HIGH_THRESHOLD:
        return RiskBand.HIGH
    if score >= RISK_MEDIUM_THRESHOLD:
        return RiskBand.MEDIUM
    return RiskBand.LOW


def exposure_weight(record: RecordLike) -> float:
    rec = _as_record(record)
    additional = rec.additional_investment_requested or 0.0
    return (rec.total_investment + additional) / 1_000_000


def risk_adjusted_moic(moic: Optional[float], confidence: Optional[int]) -> Optional[float]:
    """Weight MOIC by analysis confidence (confidence 5 keeps it unchanged)."""
    if moic is None or confidence is None:
        return None
    return moic * (confidence / 5)


def derive_metrics(record: RecordLike) -> DerivedMetrics:
    rec = _as_record(record)
    confidence = record.confidence if isinstance(record, EnrichedRecord) else None
    score = risk_score(rec)
    return DerivedMetrics(
        capital_efficiency=capital_efficiency(rec.burn_multiple),
        moic_bin=moic_bin(rec.moic),
        risk_score=score,
        risk_band=risk_band(score),
        exposure_weight=exposure_weight(rec),
        risk_adjusted_moic=risk_adjusted_moic(rec.moic, confidence),
    )


# ── Aggregates ────────────────────────────────────────────────────────────────


def moic_bin_counts(records: Iterable[RecordLike]) -> dict[str, int]:
    """Count records per MOIC bin, in bin order. Unknown MOIC is excluded."""
    counts = {label.value: 0 for label in MoicBin}
    for record in records:
        label = moic_bin(_as_record(record).moic)
        if label is not None:
            counts[label.value] += 1
    return counts


def capital_efficiency_leaderboard(
    records: Iterable[RecordLike],
    top_n: int = 10,
) -> list[EfficiencyEntry]:
    """Most capital-efficient companies first; unknown / zero burn excluded.

    Ties keep input order.
    """
    entries: list[EfficiencyEntry] = []
    for record in records:
        rec = _as_record(record)
        efficiency = capital_efficiency(rec.burn_multiple)
        if efficiency is None:
            continue
        entries.append(
            EfficiencyEntry(
                record_id=rec.id,
                company_name=rec.company_name,
                capital_efficiency=efficiency,
                burn_multiple=rec.burn_multiple,
            )
        )
    entries.sort(key=lambda e: e.capital_efficiency, reverse=True)
    return entries[:max(top_n, 0)]


def summarize_portfolio(records: Iterable[RecordLike]) -> PortfolioSummary:
    enriched = [EnrichedRecord.from_record(r) for r in records]
    summary = PortfolioSummary(company_count=len(enriched))

    moics: list[float] = []
    for item in enriched:
        rec = item.record
        summary.total_invested += rec.total_investment
        summary.total_requested += rec.additional_investment_requested or 0.0
        if rec.moic is not None:
            moics.append(rec.moic)
        if risk_band(risk_score(rec)) is RiskBand.HIGH:
            summary.high_risk_count += 1
        if item.is_pending:
            summary.pending_count += 1
        else:
            summary.analyzed_count += 1
        if item.insufficient_data:
            summary.insufficient_count += 1

    summary.average_moic = sum(moics) / len(moics) if moics else None
    summary.moic_bins = moic_bin_counts(enriched)
    return summary


def _as_record(record: RecordLike) -> PortfolioRecord:
    return record.record if isinstance(record, EnrichedRecord) else record
