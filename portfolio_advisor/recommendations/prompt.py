"""
Prompt construction for the reasoning service.

The user prompt has four blocks:
  1. Internal data: company name, exit activity text and every analyzable
     numeric field. Unknown values read "Not available", never 0.
  2. External research, or "Limited external data available".
  3. Scoring weights and upside / downside signal guidelines.
  4. The mandatory JSON output format.

The record id is never sent.
"""

from __future__ import annotations

from typing import Any, Optional

from portfolio_advisor.models.record import PortfolioRecord
from portfolio_advisor.taxonomy.recommendation_taxonomy import Recommendation

SYSTEM_PROMPT = (
    "You are an experienced venture capital partner with deep expertise in "
    "portfolio management. Provide investment recommendations that integrate "
    "internal performance data with external market signals. Always follow the "
    "exact output format specified and use precise figures from the provided data."
)

NOT_AVAILABLE = "Not available"

_GUIDELINES = """SCORING WEIGHTS:
- Implied MOIC: 20%
- TTM Revenue Growth: 15%
- Burn Multiple: 15%
- Runway: 10%
- Exit Activity in Sector: 10%
- TAM: 10%
- Barrier to Entry: 10%
- Fund Dilution Exposure: 10%

UPSIDE SIGNALS:
- TTM Revenue Growth > 50% YoY = Strong
- TAM Score 4-5 = Large/Expanding market
- MOIC > 1.7x = Attractive
- Burn Multiple < 1.5x = Efficient
- Barrier to Entry >= 4 = Defensible moat

DOWNSIDE RISKS:
- Burn Multiple > 2.5x = Inefficient
- Runway < 6 months = Concerning
- Exit Activity "Low" with no peer comps = Weak
- TTM Growth < 25% YoY = Weak
- Equity Stake < 5% = Dilution risk"""

_OUTPUT_FORMAT = """MANDATORY OUTPUT FORMAT (a single JSON object, nothing else):
{{
  "recommendation": "One of: {choices}",
  "timingBucket": "Urgency of the capital action, e.g. 'Reinvest (3-12 Months)', 'Hold (3-6 Months)', 'Bridge Capital Only'",
  "reasoning": "Start with internal performance figures, then external validation, then downside risks, then the capital logic",
  "confidence": "Integer 1-5 where 5 = complete internal data and strong external validation, 1 = missing data",
  "keyRisks": "Specific risks, including at least one external-facing risk when research is available",
  "suggestedAction": "Tactical, specific next step",
  "externalSources": "Research sources actually used"
}}"""


def build_payload(record: PortfolioRecord) -> dict[str, Optional[float]]:
    """Analyzable numeric fields only; never the id or free text."""
    return record.numeric_values()


def _money(value: Optional[float]) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"${value / 1_000_000:.1f}M"


def _with_unit(value: Optional[Any], unit: str) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value}{unit}"


def build_metrics_summary(record: PortfolioRecord) -> str:
    """Bullet list of the internal data for ``record``."""
    lines = [
        f"- Company: {record.company_name}",
        f"- Total Investment to Date: {_money(record.total_investment)}",
        f"- Equity Stake (Fully Diluted): {_with_unit(record.equity_stake, '%')}",
        f"- Implied MOIC: {_with_unit(record.moic, 'x')}",
        f"- TTM Revenue Growth: {_with_unit(record.revenue_growth, '%')}",
        f"- Burn Multiple: {_with_unit(record.burn_multiple, 'x')}",
        f"- Runway: {_with_unit(record.runway_months, ' months')}",
        f"- TAM Rating: {_with_unit(record.tam, '/5')}",
        f"- Exit Activity in Sector: {record.exit_activity or NOT_AVAILABLE}",
        f"- Barrier to Entry: {_with_unit(record.barrier_to_entry, '/5')}",
        f"- Additional Investment Requested: {_money(record.additional_investment_requested)}",
    ]
    return "\n".join(lines)


def build_user_prompt(record: PortfolioRecord, research_text: str = "") -> str:
    choices = ", ".join(
        r.value for r in Recommendation if r is not Recommendation.PENDING
    )
    if research_text:
        research_block = f"EXTERNAL RESEARCH DATA:\n{research_text}"
    else:
        research_block = "EXTERNAL RESEARCH: Limited external data available"

    return "\n\n".join([
        f"COMPANY: {record.company_name}",
        "INTERNAL DATA:\n" + build_metrics_summary(record),
        research_block,
        _GUIDELINES,
        _OUTPUT_FORMAT.format(choices=choices),
        "Generate the investment recommendation now.",
    ])
