"""
Record normalization: raw ingestion rows -> ``PortfolioRecord``.

Processing steps for each row:
  1. Resolve column aliases. camelCase (``companyName``), snake_case
     (``company_name``) and the spreadsheet headers of the portfolio template
     (``"Total Investment to Date"``) all map to the canonical field names.
  2. Validate the required fields in order: ``company_name``, then
     ``total_investment``. The first one missing or unusable raises
     ``RecordValidationError`` naming it.
  3. Parse every other numeric field if parseable, else ``None``. Strings
     such as ``"$1,200,000"``, ``"45%"`` or ``"2.5x"`` are accepted; blanks
     and placeholders (``"N/A"``, ``"-"``) become ``None``, never 0.
  4. Values outside a field's domain (negative currency, equity above 100,
     ratings outside 1-5) become ``None`` with a warning.

Validation failure is fatal to that row only: ``normalize_rows()`` collects
rejected rows and keeps going.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from portfolio_advisor.models.record import PortfolioRecord

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: tuple[str, ...] = ("company_name", "total_investment")

_COLUMN_ALIASES: dict[str, str] = {
    # Portfolio template headers
    "Company Name": "company_name",
    "Total Investment to Date": "total_investment",
    "Equity Stake (FD %)": "equity_stake",
    "MOIC": "moic",
    "TTM Revenue Growth": "revenue_growth",
    "Burn Multiple": "burn_multiple",
    "Runway": "runway_months",
    "TAM (1–5)": "tam",
    "TAM (1-5)": "tam",
    "Exit Activity in Sector": "exit_activity",
    "Barrier to Entry (1–5)": "barrier_to_entry",
    "Barrier to Entry (1-5)": "barrier_to_entry",
    "Additional Investment Requested": "additional_investment_requested",
    # camelCase keys
    "companyName": "company_name",
    "totalInvestment": "total_investment",
    "equityStake": "equity_stake",
    "revenueGrowth": "revenue_growth",
    "burnMultiple": "burn_multiple",
    "runway": "runway_months",
    "runwayMonths": "runway_months",
    "exitActivity": "exit_activity",
    "barrierToEntry": "barrier_to_entry",
    "additionalInvestmentRequested": "additional_investment_requested",
}

_CANONICAL_FIELDS = frozenset(PortfolioRecord.model_fields)

_NULL_TOKENS = frozenset({"", "n/a", "na", "none", "null", "-", "--", "tbd", "unknown"})

_STRIP_CHARS = re.compile(r"[$,%\s]")

_MULTIPLE_SUFFIX = re.compile(r"[xX]$")

# (field, lower bound, upper bound, integer?)
_NUMERIC_DOMAINS: dict[str, tuple[Optional[float], Optional[float], bool]] = {
    "equity_stake": (0.0, 100.0, False),
    "moic": (0.0, None, False),
    "revenue_growth": (None, None, False),
    "burn_multiple": (0.0, None, False),
    "runway_months": (0.0, None, True),
    "tam": (1.0, 5.0, True),
    "barrier_to_entry": (1.0, 5.0, True),
    "additional_investment_requested": (0.0, None, False),
}


class RecordValidationError(ValueError):
    """Raised when a raw row lacks a usable required field.

    Attributes:
        field: Canonical name of the first missing / invalid required field.
        row_index: Position of the row in the input, when known.
    """

    def __init__(self, field: str, row_index: Optional[int] = None, detail: str = "") -> None:
        self.field = field
        self.row_index = row_index
        where = f" (row {row_index})" if row_index is not None else ""
        msg = f"Missing or invalid required field '{field}'{where}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


@dataclass
class NormalizationResult:
    """Outcome of ``normalize_rows()``.

    Attributes:
        records:  Valid records, in input order.
        rejected: One ``RecordValidationError`` per excluded row.
    """

    records: list[PortfolioRecord] = field(default_factory=list)
    rejected: list[RecordValidationError] = field(default_factory=list)


# ── Public API ────────────────────────────────────────────────────────────────


def parse_number(value: Any) -> Optional[float]:
    """Parse a loosely formatted number, or return ``None``.

    ``parse_number("$1,250,000") == 1250000.0``; ``parse_number("45%") == 45.0``;
    ``parse_number("2.5x") == 2.5``; ``parse_number("N/A") is None``.
    Booleans, NaN and infinities are treated as unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if text.lower() in _NULL_TOKENS:
            return None
        negative = text.startswith("(") and text.endswith(")")
        text = _MULTIPLE_SUFFIX.sub("", _STRIP_CHARS.sub("", text.strip("()")))
        try:
            number = float(text)
        except ValueError:
            return None
        if negative:
            number = -number
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def canonicalize_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Map alias keys to canonical field names; unknown keys are dropped."""
    canonical: dict[str, Any] = {}
    for key, value in raw.items():
        name = str(key).strip()
        target = _COLUMN_ALIASES.get(name, name)
        if target in _CANONICAL_FIELDS and target not in canonical:
            canonical[target] = value
    return canonical


def normalize_row(raw: Mapping[str, Any], index: Optional[int] = None) -> PortfolioRecord:
    """Validate and coerce one raw row into a ``PortfolioRecord``.

    Args:
        raw:   Key -> primitive mapping from ingestion.
        index: Row position, used for the generated id ``row-<index>`` and
               in error messages.

    Returns:
        The canonical record.

    Raises:
        RecordValidationError: Naming the first missing required field.
    """
    row = canonicalize_keys(raw)

    company_name = row.get("company_name")
    if company_name is None or not str(company_name).strip():
        raise RecordValidationError("company_name", index)
    company_name = str(company_name).strip()

    total_investment = parse_number(row.get("total_investment"))
    if total_investment is None:
        raise RecordValidationError("total_investment", index)
    if total_investment < 0:
        raise RecordValidationError(
            "total_investment", index, detail=f"negative value {total_investment}"
        )

    values: dict[str, Any] = {}
    for name, (low, high, integer) in _NUMERIC_DOMAINS.items():
        values[name] = _coerce_numeric(row.get(name), name, low, high, integer, company_name)

    exit_activity = row.get("exit_activity")
    if exit_activity is not None:
        exit_activity = str(exit_activity).strip() or None

    raw_id = row.get("id")
    record_id = str(raw_id).strip() if raw_id not in (None, "") else _generated_id(index)

    return PortfolioRecord(
        id=record_id,
        company_name=company_name,
        total_investment=total_investment,
        exit_activity=exit_activity,
        **values,
    )


def normalize_rows(rows: Iterable[Mapping[str, Any]]) -> NormalizationResult:
    """Normalize an ordered sequence of raw rows, excluding invalid ones.

    Rows whose every value is blank are skipped silently (spreadsheet
    padding). Duplicate ids are made unique by suffixing the row index.
    """
    result = NormalizationResult()
    seen_ids: set[str] = set()

    for index, raw in enumerate(rows, start=1):
        if all(parse_number(v) is None and not str(v or "").strip() for v in raw.values()):
            logger.debug("Skipping blank row %d", index)
            continue
        try:
            record = normalize_row(raw, index=index)
        except RecordValidationError as exc:
            logger.warning("Rejected row %d: %s", index, exc)
            result.rejected.append(exc)
            continue

        if record.id in seen_ids:
            new_id = _unique_id(record.id, index, seen_ids)
            logger.warning("Duplicate id '%s' at row %d; renamed to '%s'", record.id, index, new_id)
            record = record.model_copy(update={"id": new_id})
        seen_ids.add(record.id)
        result.records.append(record)

    logger.info(
        "Normalized %d record(s), rejected %d row(s)",
        len(result.records), len(result.rejected),
    )
    return result


# ── Helpers ───────────────────────────────────────────────────────────────────


def _generated_id(index: Optional[int]) -> str:
    return f"row-{index}" if index is not None else "row-0"


def _unique_id(record_id: str, index: int, seen_ids: set[str]) -> str:
    """``<id>-<row index>``, with a counter appended until it is unused."""
    candidate = f"{record_id}-{index}"
    counter = 2
    while candidate in seen_ids:
        candidate = f"{record_id}-{index}-{counter}"
        counter += 1
    return candidate


def _coerce_numeric(
    value: Any,
    name: str,
    low: Optional[float],
    high: Optional[float],
    integer: bool,
    company_name: str,
) -> Optional[float]:
    number = parse_number(value)
    if number is None:
        return None
    if (low is not None and number < low) or (high is not None and number > high):
        logger.warning(
            "%s: %s=%r is out of range; treating as unknown", company_name, name, value
        )
        return None
    if integer:
        return int(round(number))
    return number
