"""
Number and ASCII terminal formatters for CLI reporting commands.

Number formatting
-----------------
Large amounts are scaled to B / M / K with one decimal, dropped when the
scaled value is whole::

    format_large_number(2_500_000, currency=True)  -> "$2.5M"
    format_large_number(3_000_000_000)             -> "3B"
    format_currency(None)                          -> "N/A"

Unknown values always render as ``"N/A"``, never as 0.

Table formatters accept enriched records / summary objects and return plain
multi-line strings suitable for ``typer.echo()``. No third-party
dependencies.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from portfolio_advisor.metrics.derived import (
    EfficiencyEntry,
    PortfolioSummary,
    derive_metrics,
)
from portfolio_advisor.models.analysis import EnrichedRecord
from portfolio_advisor.taxonomy.recommendation_taxonomy import confidence_label

NOT_AVAILABLE = "N/A"

_SCALES: tuple[tuple[float, str], ...] = (
    (1_000_000_000, "B"),
    (1_000_000, "M"),
    (1_000, "K"),
)


# ── Numbers ───────────────────────────────────────────────────────────────────


def _is_missing(value: Optional[float]) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def format_large_number(
    amount: Optional[float],
    currency: bool = False,
    decimals: int = 1,
) -> str:
    """Scale ``amount`` to B / M / K.

    Amounts under 1,000 are shown unscaled; with ``currency`` they keep cents
    only when fractional (``"$950"``, ``"$12.50"``).
    """
    if _is_missing(amount):
        return NOT_AVAILABLE

    sign = "-" if amount < 0 else ""
    symbol = "$" if currency else ""
    magnitude = abs(amount)

    for divisor, suffix in _SCALES:
        if magnitude >= divisor:
            scaled = magnitude / divisor
            places = 0 if decimals == 0 or scaled.is_integer() else decimals
            return f"{sign}{symbol}{scaled:.{places}f}{suffix}"

    if float(magnitude).is_integer():
        return f"{sign}{symbol}{magnitude:,.0f}"
    return f"{sign}{symbol}{magnitude:,.2f}"


def format_currency(amount: Optional[float]) -> str:
    return format_large_number(amount, currency=True)


def format_multiple(value: Optional[float], decimals: int = 1) -> str:
    """``2.345`` -> ``"2.3x"``."""
    if _is_missing(value):
        return NOT_AVAILABLE
    return f"{value:.{decimals}f}x"


def format_percent(value: Optional[float], decimals: int = 0, signed: bool = False) -> str:
    """Percent points (``45`` -> ``"45%"``); ``signed`` adds a leading ``+``."""
    if _is_missing(value):
        return NOT_AVAILABLE
    fmt = f"+.{decimals}f" if signed else f".{decimals}f"
    return f"{value:{fmt}}%"


# ── Portfolio table ───────────────────────────────────────────────────────────


def format_portfolio_table(records: Sequence[EnrichedRecord], title: str = "Portfolio") -> str:
    """One row per company with headline inputs, recommendation and risk.

    Example::

        Company               Invested    MOIC  Growth   Burn  Recommendation  Conf.      Risk
        ----------------------------------------------------------------------------------------
        Acme Analytics           $2.5M    2.1x    +45%   1.2x  Reinvest        High      50 medium
    """
    lines: list[str] = []
    lines.append("")
    lines.append(f"=== {title} ===")
    lines.append(f"  Companies: {len(records)}")

    if not records:
        lines.append("")
        lines.append("  (no companies match)")
        return "\n".join(lines)

    header = (
        f"  {'Company':<24}  {'Invested':>9}  {'MOIC':>6}  {'Growth':>7}  "
        f"{'Burn':>6}  {'Recommendation':<14}  {'Conf.':<9}  {'Risk':>10}"
    )
    lines.append("")
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))

    for item in records:
        rec = item.record
        metrics = derive_metrics(item)
        label = confidence_label(item.confidence)
        risk = f"{metrics.risk_score:.0f} {metrics.risk_band.value}"
        lines.append(
            f"  {rec.company_name[:24]:<24}  {format_currency(rec.total_investment):>9}  "
            f"{format_multiple(rec.moic):>6}  "
            f"{format_percent(rec.revenue_growth, signed=True):>7}  "
            f"{format_multiple(rec.burn_multiple):>6}  {item.recommendation:<14}  "
            f"{(label.value if label else '-'):<9}  {risk:>10}"
        )
    return "\n".join(lines)


def format_record_detail(item: EnrichedRecord) -> str:
    """Multi-line detail block for a single analyzed company."""
    rec = item.record
    metrics = derive_metrics(item)
    efficiency = metrics.capital_efficiency
    lines = [
        "",
        f"--- {rec.company_name} ({rec.id}) ---",
        f"  Invested:           {format_currency(rec.total_investment)}",
        f"  Requested:          {format_currency(rec.additional_investment_requested)}",
        f"  Equity stake:       {format_percent(rec.equity_stake, decimals=1)}",
        f"  MOIC:               {format_multiple(rec.moic)} "
        f"(risk-adjusted {format_multiple(metrics.risk_adjusted_moic)})",
        f"  Capital efficiency: {format_multiple(efficiency, decimals=2)}",
        f"  Risk:               {metrics.risk_score:.0f} ({metrics.risk_band.value})",
        f"  Recommendation:     {item.recommendation}",
    ]
    if item.analysis is not None:
        analysis = item.analysis
        lines.extend([
            f"  Timing:             {analysis.timing_bucket}",
            f"  Confidence:         {analysis.confidence}/5",
            f"  Reasoning:          {analysis.reasoning}",
            f"  Key risks:          {analysis.key_risks}",
            f"  Suggested action:   {analysis.suggested_action}",
            f"  Sources:            {analysis.external_sources}",
        ])
        if analysis.insufficient_data:
            lines.append("  [INSUFFICIENT DATA]")
        for warning in analysis.warnings:
            lines.append(f"  [WARN] {warning}")
    return "\n".join(lines)


# ── Summary ───────────────────────────────────────────────────────────────────


def format_moic_histogram(bins: dict[str, int], width: int = 30) -> str:
    """Horizontal bar chart of MOIC bin counts."""
    lines = ["  MOIC distribution:"]
    peak = max(bins.values(), default=0)
    for label, count in bins.items():
        bar = "#" * (round(count / peak * width) if peak else 0)
        lines.append(f"    {label:>5}  {count:>4}  {bar}")
    return "\n".join(lines)


def format_leaderboard(entries: Sequence[EfficiencyEntry]) -> str:
    lines = ["  Capital efficiency leaders:"]
    if not entries:
        lines.append("    (no companies with a known burn multiple)")
        return "\n".join(lines)
    for rank, entry in enumerate(entries, start=1):
        lines.append(
            f"    {rank:>2}. {entry.company_name[:28]:<28}  "
            f"{entry.capital_efficiency:>6.2f}  (burn {format_multiple(entry.burn_multiple)})"
        )
    return "\n".join(lines)


def format_portfolio_summary(
    summary: PortfolioSummary,
    leaders: Sequence[EfficiencyEntry] = (),
) -> str:
    """Headline numbers, MOIC histogram and the efficiency leaderboard."""
    lines: list[str] = []
    lines.append("")
    lines.append("=== Portfolio Summary ===")
    lines.append(f"  Companies:          {summary.company_count}")
    lines.append(f"  Total invested:     {format_currency(summary.total_invested)}")
    lines.append(f"  Total requested:    {format_currency(summary.total_requested)}")
    lines.append(f"  Average MOIC:       {format_multiple(summary.average_moic, decimals=2)}")
    lines.append(f"  High-risk:          {summary.high_risk_count}")
    lines.append(
        f"  Analyzed:           {summary.analyzed_count}  "
        f"(insufficient data: {summary.insufficient_count}, pending: {summary.pending_count})"
    )
    lines.append("")
    lines.append(format_moic_histogram(summary.moic_bins))
    lines.append("")
    lines.append(format_leaderboard(leaders))
    return "\n".join(lines)
