"""
Analysis output models.

``AnalysisResult`` is the recommendation produced for one company by the
reasoning service (or by the engine's short-circuit / failure fallbacks).

``EnrichedRecord`` overlays an optional ``AnalysisResult`` onto a
``PortfolioRecord``. A record without analysis is in the Pending state; the
accessor properties report ``"Pending"`` and ``None`` for it so filter and
sort code never has to branch on ``analysis is None``.

Both models are frozen. Re-running a batch replaces the whole
``AnalysisResult`` via ``with_analysis()``; fields are never merged.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from portfolio_advisor.models.record import PortfolioRecord
from portfolio_advisor.taxonomy.recommendation_taxonomy import Recommendation

INTERNAL_DATA_ONLY = "internal data only"


class AnalysisResult(BaseModel):
    """Recommendation for one portfolio company.

    Attributes:
        recommendation: Capital decision from the fixed ``Recommendation`` set.
        timing_bucket: Urgency / type label for the capital action.
        reasoning: Prose justification.
        confidence: Ordinal 1 (lowest) to 5 (highest).
        key_risks: Prose risk summary.
        suggested_action: Concrete next step.
        external_sources: Provenance of the evidence used.
        insufficient_data: True when no responsible recommendation could be made.
        warnings: Parse warnings recorded while coercing the service response.
    """

    model_config = ConfigDict(frozen=True)

    recommendation: Recommendation
    timing_bucket: str = "N/A"
    reasoning: str = ""
    confidence: int = 1
    key_risks: str = ""
    suggested_action: str = ""
    external_sources: str = INTERNAL_DATA_ONLY
    insufficient_data: bool = False
    warnings: tuple[str, ...] = ()

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: int) -> int:
        if not 1 <= v <= 5:
            raise ValueError(f"confidence must be in [1, 5], got {v}.")
        return v


class EnrichedRecord(BaseModel):
    """A portfolio record with its (optional) analysis overlaid."""

    model_config = ConfigDict(frozen=True)

    record: PortfolioRecord
    analysis: Optional[AnalysisResult] = None

    @classmethod
    def from_record(cls, record: "PortfolioRecord | EnrichedRecord") -> "EnrichedRecord":
        """Wrap a bare record; enriched records are returned unchanged."""
        if isinstance(record, EnrichedRecord):
            return record
        return cls(record=record)

    def with_analysis(self, analysis: AnalysisResult) -> "EnrichedRecord":
        """Return a copy whose analysis is replaced wholesale."""
        return EnrichedRecord(record=self.record, analysis=analysis)

    # ── Accessors used by search / filter / sort ─────────────────────────────

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def company_name(self) -> str:
        return self.record.company_name

    @property
    def recommendation(self) -> str:
        if self.analysis is None:
            return Recommendation.PENDING.value
        return self.analysis.recommendation.value

    @property
    def confidence(self) -> Optional[int]:
        return self.analysis.confidence if self.analysis else None

    @property
    def timing_bucket(self) -> Optional[str]:
        return self.analysis.timing_bucket if self.analysis else None

    @property
    def reasoning(self) -> Optional[str]:
        return self.analysis.reasoning if self.analysis else None

    @property
    def key_risks(self) -> Optional[str]:
        return self.analysis.key_risks if self.analysis else None

    @property
    def external_sources(self) -> Optional[str]:
        return self.analysis.external_sources if self.analysis else None

    @property
    def insufficient_data(self) -> bool:
        return bool(self.analysis and self.analysis.insufficient_data)

    @property
    def is_pending(self) -> bool:
        return self.recommendation == Recommendation.PENDING.value
