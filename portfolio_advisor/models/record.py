"""
Canonical portfolio company record.

``PortfolioRecord`` is produced by the normalizer from a raw ingestion row.
Every field except ``id``, ``company_name`` and ``total_investment`` is
nullable: a value missing from the source stays ``None`` and is never
replaced by 0, so "zero" and "unknown" remain distinguishable downstream
(insufficient-data checks, MOIC aggregates, capital efficiency).

The model is frozen; analysis results are overlaid through
``EnrichedRecord`` rather than by mutating the record.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

# Numeric fields sent to the reasoning service and counted by the
# insufficient-data check. Order is the order of the prompt.
ANALYZABLE_NUMERIC_FIELDS: tuple[str, ...] = (
    "total_investment",
    "equity_stake",
    "moic",
    "revenue_growth",
    "burn_multiple",
    "runway_months",
    "tam",
    "barrier_to_entry",
    "additional_investment_requested",
)


class PortfolioRecord(BaseModel):
    """One portfolio company as supplied by ingestion.

    Attributes:
        id: Opaque identifier, unique within a batch.
        company_name: Display name; required.
        total_investment: Capital invested to date (USD, >= 0); required.
        equity_stake: Fully diluted ownership percent (0-100).
        moic: Multiple on invested capital.
        revenue_growth: Trailing twelve-month revenue growth percent (signed).
        burn_multiple: Net burn / net new ARR (>= 0).
        runway_months: Months of cash runway (>= 0).
        tam: Total addressable market rating (1-5).
        exit_activity: Free-text description of exit activity in the sector.
        barrier_to_entry: Defensibility rating (1-5).
        additional_investment_requested: Follow-on capital asked for (USD, >= 0).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    company_name: str
    total_investment: float
    equity_stake: Optional[float] = None
    moic: Optional[float] = None
    revenue_growth: Optional[float] = None
    burn_multiple: Optional[float] = None
    runway_months: Optional[int] = None
    tam: Optional[int] = None
    exit_activity: Optional[str] = None
    barrier_to_entry: Optional[int] = None
    additional_investment_requested: Optional[float] = None

    @field_validator("company_name")
    @classmethod
    def validate_company_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("company_name must not be empty.")
        return v.strip()

    @field_validator("total_investment")
    @classmethod
    def validate_total_investment(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"total_investment must be >= 0, got {v}.")
        return v

    @field_validator("equity_stake")
    @classmethod
    def validate_equity_stake(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 0.0 <= v <= 100.0:
            raise ValueError(f"equity_stake must be in [0, 100], got {v}.")
        return v

    @field_validator("moic", "burn_multiple", "additional_investment_requested")
    @classmethod
    def validate_non_negative(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError(f"value must be >= 0, got {v}.")
        return v

    @field_validator("runway_months")
    @classmethod
    def validate_runway(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError(f"runway_months must be >= 0, got {v}.")
        return v

    @field_validator("tam", "barrier_to_entry")
    @classmethod
    def validate_ordinal(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 1 <= v <= 5:
            raise ValueError(f"ordinal rating must be in [1, 5], got {v}.")
        return v

    def numeric_values(self) -> dict[str, Optional[float]]:
        """Return the analyzable numeric fields, keyed by field name."""
        return {name: getattr(self, name) for name in ANALYZABLE_NUMERIC_FIELDS}

    def null_numeric_count(self) -> int:
        """Number of analyzable numeric fields that are ``None``."""
        return sum(1 for v in self.numeric_values().values() if v is None)
