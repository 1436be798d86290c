"""
Search, filter and sort over an enriched portfolio collection.

All functions are pure: they return new lists and never mutate records.

Search
------
Case-insensitive substring match over company name, recommendation, key
risks, reasoning and provenance. An empty (or whitespace) term matches all.

Filter
------
``FilterCriteria`` holds three categories. Values are OR-ed within a
category and categories are AND-ed; an empty category imposes no
constraint. A record without analysis has recommendation "Pending" and no
confidence label, so it never matches a confidence selection.

Sort
----
Stable, multi-field. Unknown numerics sort as 0; strings compare
case-insensitively. ``SortState.toggle(field)`` flips the direction when the
field is already primary, otherwise makes it primary in ascending order and
keeps the previous keys as tie-breakers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from portfolio_advisor.metrics.derived import (
    capital_efficiency,
    exposure_weight,
    risk_adjusted_moic,
    risk_score,
)
from portfolio_advisor.models.analysis import EnrichedRecord
from portfolio_advisor.models.record import PortfolioRecord
from portfolio_advisor.taxonomy.recommendation_taxonomy import (
    ConfidenceLabel,
    InvestmentRange,
    Recommendation,
    confidence_label,
    investment_range_for,
    parse_investment_range,
)

RecordLike = Union[PortfolioRecord, EnrichedRecord]

# field name -> accessor
_SORT_ACCESSORS: dict[str, Callable[[EnrichedRecord], Any]] = {
    "company_name": lambda r: r.company_name,
    "total_investment": lambda r: r.record.total_investment,
    "equity_stake": lambda r: r.record.equity_stake,
    "moic": lambda r: r.record.moic,
    "revenue_growth": lambda r: r.record.revenue_growth,
    "burn_multiple": lambda r: r.record.burn_multiple,
    "runway_months": lambda r: r.record.runway_months,
    "tam": lambda r: r.record.tam,
    "barrier_to_entry": lambda r: r.record.barrier_to_entry,
    "additional_investment_requested": lambda r: r.record.additional_investment_requested,
    "recommendation": lambda r: r.recommendation,
    "confidence": lambda r: r.confidence,
    "timing_bucket": lambda r: r.timing_bucket,
    "capital_efficiency": lambda r: capital_efficiency(r.record.burn_multiple),
    "risk_score": lambda r: risk_score(r.record),
    "exposure_weight": lambda r: exposure_weight(r.record),
    "risk_adjusted_moic": lambda r: risk_adjusted_moic(r.record.moic, r.confidence),
}

_STRING_FIELDS = frozenset({"company_name", "recommendation", "timing_bucket"})

SORTABLE_FIELDS: tuple[str, ...] = tuple(_SORT_ACCESSORS)


# ── Search ────────────────────────────────────────────────────────────────────


def _searchable_text(record: EnrichedRecord) -> list[str]:
    return [
        record.company_name,
        record.recommendation,
        record.key_risks or "",
        record.reasoning or "",
        record.external_sources or "",
    ]


def search(records: Iterable[RecordLike], term: str) -> list[EnrichedRecord]:
    """Records whose searchable text contains ``term`` (case-insensitive)."""
    items = [EnrichedRecord.from_record(r) for r in records]
    needle = (term or "").strip().casefold()
    if not needle:
        return items
    return [
        item for item in items
        if any(needle in text.casefold() for text in _searchable_text(item))
    ]


# ── Filter ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FilterCriteria:
    """Active filter selections. Empty means "no constraint".

    Attributes:
        recommendations:   Allowed recommendations (OR).
        confidence_labels: Allowed confidence labels (OR).
        investment_range:  Total-investment bucket, or ``None`` for any.
    """

    recommendations: frozenset[Recommendation] = field(default_factory=frozenset)
    confidence_labels: frozenset[ConfidenceLabel] = field(default_factory=frozenset)
    investment_range: Optional[InvestmentRange] = None

    @classmethod
    def parse(
        cls,
        recommendations: Iterable[str] = (),
        confidence_labels: Iterable[str] = (),
        investment_range: str = "",
    ) -> "FilterCriteria":
        """Build criteria from display strings (CLI options, form values).

        Recommendation and confidence values are matched case-insensitively;
        the range accepts hyphen or en-dash spellings.

        Raises:
            ValueError: For an unknown value in any category.
        """
        return cls(
            recommendations=frozenset(_lookup(Recommendation, v) for v in recommendations),
            confidence_labels=frozenset(_lookup(ConfidenceLabel, v) for v in confidence_labels),
            investment_range=parse_investment_range(investment_range or ""),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.recommendations or self.confidence_labels or self.investment_range)

    def matches(self, record: EnrichedRecord) -> bool:
        if self.recommendations and record.recommendation not in self.recommendations:
            return False
        if self.confidence_labels and confidence_label(record.confidence) not in self.confidence_labels:
            return False
        if (
            self.investment_range is not None
            and investment_range_for(record.record.total_investment) is not self.investment_range
        ):
            return False
        return True


def _lookup(enum_cls: Any, value: str) -> Any:
    wanted = "".join(value.split()).casefold()
    for member in enum_cls:
        if "".join(member.value.split()).casefold() == wanted:
            return member
    raise ValueError(
        f"Unknown {enum_cls.__name__} '{value}'. "
        f"Expected one of {[m.value for m in enum_cls]}."
    )


def apply_filters(
    records: Iterable[RecordLike],
    criteria: Optional[FilterCriteria] = None,
) -> list[EnrichedRecord]:
    items = [EnrichedRecord.from_record(r) for r in records]
    if criteria is None or criteria.is_empty:
        return items
    return [item for item in items if criteria.matches(item)]


# ── Sort ──────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SortKey:
    """One sort field and its direction."""

    field: str
    descending: bool = False

    def __post_init__(self) -> None:
        if self.field not in _SORT_ACCESSORS:
            raise ValueError(
                f"Cannot sort by '{self.field}'. Sortable fields: {list(SORTABLE_FIELDS)}."
            )


@dataclass(frozen=True)
class SortState:
    """Ordered sort keys; the first is primary. Defaults to company name."""

    keys: tuple[SortKey, ...] = (SortKey("company_name"),)

    @property
    def primary(self) -> Optional[SortKey]:
        return self.keys[0] if self.keys else None

    def toggle(self, field_name: str) -> "SortState":
        """Return the state after the user selects ``field_name``."""
        primary = self.primary
        if primary is not None and primary.field == field_name:
            flipped = SortKey(field_name, descending=not primary.descending)
            return SortState(keys=(flipped,) + self.keys[1:])
        rest = tuple(k for k in self.keys if k.field != field_name)
        return SortState(keys=(SortKey(field_name),) + rest)


def _sort_value(record: EnrichedRecord, field_name: str) -> Any:
    value = _SORT_ACCESSORS[field_name](record)
    if field_name in _STRING_FIELDS:
        return (value or "").casefold()
    return 0 if value is None else value


def sort_records(
    records: Iterable[RecordLike],
    sort: Union[SortState, SortKey, Sequence[SortKey], None] = None,
) -> list[EnrichedRecord]:
    """Stable sort by one or more keys. Equal keys keep input order."""
    items = [EnrichedRecord.from_record(r) for r in records]
    if sort is None:
        return items
    if isinstance(sort, SortState):
        keys: Sequence[SortKey] = sort.keys
    elif isinstance(sort, SortKey):
        keys = (sort,)
    else:
        keys = sort

    # Least significant key first; each pass is stable.
    for key in reversed(keys):
        items.sort(key=lambda r, f=key.field: _sort_value(r, f), reverse=key.descending)
    return items


# ── Composition ───────────────────────────────────────────────────────────────


def query(
    records: Iterable[RecordLike],
    term: str = "",
    criteria: Optional[FilterCriteria] = None,
    sort: Union[SortState, SortKey, Sequence[SortKey], None] = None,
) -> list[EnrichedRecord]:
    """Search, then filter, then sort."""
    return sort_records(apply_filters(search(records, term), criteria), sort)
