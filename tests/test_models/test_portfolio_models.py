"""
Tests for portfolio_advisor/models/.

What we test
------------
PortfolioRecord:
  - Required fields; validators reject out-of-domain values.
  - numeric_values() never includes the id; null count.
  - Frozen.

AnalysisResult:
  - Confidence must be 1-5.

EnrichedRecord:
  - Without analysis it reports Pending and None accessors.
  - with_analysis() replaces analysis wholesale and leaves the record intact.
  - from_record() is idempotent for enriched input.
  - JSON round-trip through model_dump / model_validate.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from portfolio_advisor.models.analysis import AnalysisResult, EnrichedRecord
from portfolio_advisor.models.record import ANALYZABLE_NUMERIC_FIELDS, PortfolioRecord
from portfolio_advisor.taxonomy.recommendation_taxonomy import Recommendation


# ── PortfolioRecord ───────────────────────────────────────────────────────────

def test_minimal_record():
    rec = PortfolioRecord(id="x", company_name="Acme", total_investment=10.0)
    assert rec.moic is None
    assert rec.null_numeric_count() == len(ANALYZABLE_NUMERIC_FIELDS) - 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"company_name": "  "},
        {"total_investment": -1.0},
        {"equity_stake": 101.0},
        {"moic": -0.1},
        {"runway_months": -3},
        {"tam": 6},
        {"barrier_to_entry": 0},
    ],
)
def test_record_validators(make_record, overrides):
    with pytest.raises(ValidationError):
        make_record(**overrides)


def test_numeric_values_exclude_id(make_record):
    values = make_record("secret").numeric_values()
    assert "id" not in values
    assert "company_name" not in values
    assert tuple(values) == ANALYZABLE_NUMERIC_FIELDS


def test_record_is_frozen(make_record):
    rec = make_record()
    with pytest.raises(ValidationError):
        rec.moic = 9.0


# ── AnalysisResult ────────────────────────────────────────────────────────────

@pytest.mark.parametrize("confidence", [0, 6])
def test_confidence_range(confidence):
    with pytest.raises(ValidationError):
        AnalysisResult(recommendation=Recommendation.HOLD, confidence=confidence)


# ── EnrichedRecord ────────────────────────────────────────────────────────────

def test_pending_accessors(make_record):
    item = EnrichedRecord.from_record(make_record())
    assert item.recommendation == "Pending"
    assert item.is_pending
    assert item.confidence is None
    assert item.key_risks is None
    assert item.insufficient_data is False


def test_with_analysis_replaces_wholesale(make_record):
    first = AnalysisResult(
        recommendation=Recommendation.HOLD, confidence=3,
        key_risks="Old risk", warnings=("w",),
    )
    second = AnalysisResult(recommendation=Recommendation.EXIT, confidence=5)
    item = EnrichedRecord.from_record(make_record()).with_analysis(first).with_analysis(second)

    assert item.analysis == second
    assert item.key_risks == ""
    assert item.analysis.warnings == ()
    assert item.record == make_record()


def test_from_record_returns_enriched_unchanged(make_record):
    item = EnrichedRecord.from_record(make_record())
    assert EnrichedRecord.from_record(item) is item


def test_json_round_trip(make_record):
    item = EnrichedRecord(
        record=make_record(),
        analysis=AnalysisResult(recommendation=Recommendation.DOUBLE_DOWN, confidence=4),
    )
    data = item.model_dump(mode="json")
    assert data["analysis"]["recommendation"] == "DoubleDown"
    assert EnrichedRecord.model_validate(data) == item
