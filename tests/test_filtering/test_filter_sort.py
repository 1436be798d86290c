"""
Tests for portfolio_advisor/filtering/filter_sort.py.

What we test
------------
search():
  - Case-insensitive substring over name, recommendation, key risks,
    reasoning and provenance; empty term matches all.

FilterCriteria / apply_filters():
  - OR within a category, AND across categories.
  - Pending records match a "Pending" recommendation selection and never a
    confidence selection.
  - Investment range boundaries are lower-inclusive.
  - parse() accepts hyphen spellings and rejects unknown values.

sort_records() / SortState:
  - Strings sort case-insensitively ("alpha", "Beta", "Gamma").
  - Null numerics sort as 0; ties keep input order.
  - Multi-key sort, descending primary.
  - toggle() flips direction on the same field, resets on another.

query():
  - Search + filter + sort compose.
"""

from __future__ import annotations

import pytest

from portfolio_advisor.filtering.filter_sort import (
    FilterCriteria,
    SortKey,
    SortState,
    apply_filters,
    query,
    search,
    sort_records,
)
from portfolio_advisor.models.analysis import AnalysisResult, EnrichedRecord
from portfolio_advisor.taxonomy.recommendation_taxonomy import (
    ConfidenceLabel,
    InvestmentRange,
    Recommendation,
)


def _item(make_record, rid, name, rec=None, confidence=3, **fields):
    record = make_record(rid, name, **fields)
    if rec is None:
        return EnrichedRecord.from_record(record)
    analysis = AnalysisResult(
        recommendation=Recommendation(rec),
        confidence=confidence,
        reasoning=f"{name} reasoning",
        key_risks=fields.get("exit_activity") or "General market risk",
    )
    return EnrichedRecord(record=record, analysis=analysis)


@pytest.fixture
def portfolio(make_record):
    return [
        _item(make_record, "1", "Beta Robotics", "Hold", 4, total_investment=900_000.0, moic=1.5),
        _item(make_record, "2", "alpha Health", "Reinvest", 5, total_investment=1_000_000.0, moic=None,
              exit_activity="Regulatory exposure"),
        _item(make_record, "3", "Gamma Fintech", "Exit", 2, total_investment=4_999_999.0, moic=3.0),
        _item(make_record, "4", "Delta Data", None, total_investment=5_000_000.0, moic=0.8),
    ]


# ── search ────────────────────────────────────────────────────────────────────

def test_search_empty_term_matches_all(portfolio):
    assert len(search(portfolio, "")) == 4
    assert len(search(portfolio, "   ")) == 4


def test_search_company_name_case_insensitive(portfolio):
    assert [r.id for r in search(portfolio, "ALPHA")] == ["2"]


def test_search_recommendation_and_pending(portfolio):
    assert [r.id for r in search(portfolio, "reinvest")] == ["2"]
    assert [r.id for r in search(portfolio, "pending")] == ["4"]


def test_search_key_risks_and_reasoning(portfolio):
    assert [r.id for r in search(portfolio, "regulatory")] == ["2"]
    assert [r.id for r in search(portfolio, "gamma fintech reasoning")] == ["3"]


def test_search_no_match(portfolio):
    assert search(portfolio, "zzz") == []


# ── filters ───────────────────────────────────────────────────────────────────

def test_empty_criteria_match_all(portfolio):
    assert len(apply_filters(portfolio, FilterCriteria())) == 4
    assert len(apply_filters(portfolio, None)) == 4


def test_or_within_recommendation(portfolio):
    criteria = FilterCriteria(recommendations=frozenset({Recommendation.HOLD, Recommendation.EXIT}))
    assert [r.id for r in apply_filters(portfolio, criteria)] == ["1", "3"]


def test_pending_recommendation_filter(portfolio):
    criteria = FilterCriteria(recommendations=frozenset({Recommendation.PENDING}))
    assert [r.id for r in apply_filters(portfolio, criteria)] == ["4"]


def test_and_across_categories(portfolio):
    criteria = FilterCriteria(
        recommendations=frozenset({Recommendation.HOLD, Recommendation.REINVEST}),
        confidence_labels=frozenset({ConfidenceLabel.VERY_HIGH}),
    )
    assert [r.id for r in apply_filters(portfolio, criteria)] == ["2"]


def test_confidence_filter_excludes_unanalyzed(portfolio):
    criteria = FilterCriteria(
        confidence_labels=frozenset(ConfidenceLabel),
    )
    assert [r.id for r in apply_filters(portfolio, criteria)] == ["1", "2", "3"]


def test_investment_range_boundaries(make_record):
    items = [
        _item(make_record, str(i), f"Co {i}", total_investment=amount)
        for i, amount in enumerate([900_000.0, 1_000_000.0, 4_999_999.0, 5_000_000.0])
    ]
    criteria = FilterCriteria(investment_range=InvestmentRange.FROM_1M_TO_5M)
    assert [r.record.total_investment for r in apply_filters(items, criteria)] == [1_000_000.0, 4_999_999.0]


def test_parse_accepts_display_strings():
    criteria = FilterCriteria.parse(
        recommendations=["hold", "Double Down"],
        confidence_labels=["very high"],
        investment_range="$1M - $5M",
    )
    assert criteria.recommendations == {Recommendation.HOLD, Recommendation.DOUBLE_DOWN}
    assert criteria.confidence_labels == {ConfidenceLabel.VERY_HIGH}
    assert criteria.investment_range is InvestmentRange.FROM_1M_TO_5M


def test_parse_empty_range_is_no_constraint():
    assert FilterCriteria.parse(investment_range="").is_empty


@pytest.mark.parametrize(
    "kwargs",
    [
        {"recommendations": ["Buy"]},
        {"confidence_labels": ["Extreme"]},
        {"investment_range": "$2M-$3M"},
    ],
)
def test_parse_rejects_unknown_values(kwargs):
    with pytest.raises(ValueError):
        FilterCriteria.parse(**kwargs)


# ── sort ──────────────────────────────────────────────────────────────────────

def test_sort_strings_case_insensitive(portfolio):
    three = portfolio[:3]
    ordered = sort_records(three, SortKey("company_name"))
    assert [r.company_name for r in ordered] == ["alpha Health", "Beta Robotics", "Gamma Fintech"]


def test_sort_descending(portfolio):
    ordered = sort_records(portfolio, SortKey("total_investment", descending=True))
    assert [r.id for r in ordered] == ["4", "3", "2", "1"]


def test_sort_nulls_as_zero(portfolio):
    ordered = sort_records(portfolio, SortKey("moic"))
    assert [r.id for r in ordered] == ["2", "4", "1", "3"]


def test_sort_is_stable_for_ties(make_record):
    items = [_item(make_record, str(i), f"Co {i}", moic=None) for i in range(5)]
    ordered = sort_records(items, SortKey("moic", descending=True))
    assert [r.id for r in ordered] == ["0", "1", "2", "3", "4"]


def test_multi_key_sort(make_record):
    items = [
        _item(make_record, "a", "Zed", "Hold", tam=3),
        _item(make_record, "b", "Amp", "Hold", tam=5),
        _item(make_record, "c", "Kin", "Exit", tam=5),
    ]
    ordered = sort_records(items, [SortKey("tam", descending=True), SortKey("company_name")])
    assert [r.id for r in ordered] == ["b", "c", "a"]


def test_sort_by_derived_field(make_record):
    items = [
        _item(make_record, "a", "A", burn_multiple=2.0),
        _item(make_record, "b", "B", burn_multiple=None),
        _item(make_record, "c", "C", burn_multiple=0.5),
    ]
    ordered = sort_records(items, SortKey("capital_efficiency", descending=True))
    assert [r.id for r in ordered] == ["c", "a", "b"]


def test_unknown_sort_field_rejected():
    with pytest.raises(ValueError):
        SortKey("ebitda")


class TestSortStateToggle:
    """Column-header toggling: same field flips, another field resets."""

    def test_same_field_flips(self) -> None:
        """The default state sorts company_name ascending; toggling flips it."""
        state = SortState().toggle("company_name")
        assert state.primary == SortKey("company_name", descending=True)
        assert state.toggle("company_name").primary == SortKey("company_name")

    def test_other_field_resets_ascending(self) -> None:
        """The previous primary key is kept as a tie-breaker."""
        state = SortState().toggle("company_name").toggle("moic")
        assert state.primary == SortKey("moic")
        assert state.keys[1] == SortKey("company_name", descending=True)


def test_sort_none_keeps_order(portfolio):
    assert [r.id for r in sort_records(portfolio, None)] == ["1", "2", "3", "4"]


# ── query ─────────────────────────────────────────────────────────────────────

def test_query_composes(portfolio):
    criteria = FilterCriteria(confidence_labels=frozenset({ConfidenceLabel.HIGH, ConfidenceLabel.LOW}))
    result = query(portfolio, term="a", criteria=criteria, sort=SortState().toggle("company_name"))
    assert [r.company_name for r in result] == ["Gamma Fintech", "Beta Robotics"]
