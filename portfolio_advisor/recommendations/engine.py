"""
Per-record recommendation engine.

``RecommendationEngine.analyze(record, findings)`` returns a tagged outcome
and never raises for a service problem:

  1. Build the payload of analyzable numeric fields (never the id).
  2. If MORE than half of those fields are null, short-circuit WITHOUT calling
     the service: ``Ok`` with insufficient_data=True, recommendation=Pending,
     confidence=1.
  3. Otherwise call the reasoning service and parse the response
     (``recommendations.parser``). Coercions are warnings, not failures.
  4. Transport / service failure or a malformed response:
     ``Err(AnalysisError)`` whose fallback result carries
     insufficient_data=True, recommendation=Pending and the failure summary
     as reasoning. ``unreachable`` is set when the service could not be
     reached at all, which the orchestrator may escalate.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from portfolio_advisor.clients.analysis_client import (
    AnalysisServiceError,
    ServiceUnreachableError,
)
from portfolio_advisor.config import PipelineConfig
from portfolio_advisor.models.analysis import INTERNAL_DATA_ONLY, AnalysisResult
from portfolio_advisor.models.record import ANALYZABLE_NUMERIC_FIELDS, PortfolioRecord
from portfolio_advisor.models.result import AnalysisError, AnalysisOutcome, Err, Ok
from portfolio_advisor.recommendations.parser import (
    ResponseParseError,
    parse_analysis_response,
)
from portfolio_advisor.recommendations.prompt import (
    SYSTEM_PROMPT,
    build_payload,
    build_user_prompt,
)
from portfolio_advisor.research.augmenter import ResearchFindings, provenance
from portfolio_advisor.taxonomy.recommendation_taxonomy import Recommendation

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    def complete(self, system_prompt: str, user_prompt: str) -> str: ...


def insufficient_data_result() -> AnalysisResult:
    """Fallback for records lacking enough numeric inputs."""
    return AnalysisResult(
        recommendation=Recommendation.PENDING,
        timing_bucket="N/A",
        reasoning=(
            "Missing critical inputs (e.g. growth, burn, TAM, runway), which "
            "prevents a responsible investment recommendation. Hold until "
            "updated data is provided."
        ),
        confidence=1,
        key_risks=(
            "Lack of visibility into company performance, capital efficiency, "
            "or exit feasibility makes additional investment highly speculative."
        ),
        suggested_action=(
            "Request updated financials, capital plan, and growth KPIs before "
            "reassessing capital deployment."
        ),
        external_sources=INTERNAL_DATA_ONLY,
        insufficient_data=True,
    )


def analysis_failed_result(reason: str) -> AnalysisResult:
    """Fallback stored on a record whose analysis call failed."""
    return AnalysisResult(
        recommendation=Recommendation.PENDING,
        timing_bucket="N/A",
        reasoning=f"Analysis failed: {reason}",
        confidence=1,
        key_risks="Unable to complete analysis due to technical issues.",
        suggested_action="Retry analysis or conduct manual review.",
        external_sources="analysis incomplete",
        insufficient_data=True,
    )


class RecommendationEngine:
    """Produces one ``AnalysisResult`` per record via the reasoning service.

    Args:
        client: Anything with ``complete(system_prompt, user_prompt) -> str``;
                normally an ``AnalysisClient``.
        config: ``PipelineConfig`` (insufficient-data threshold).
    """

    def __init__(
        self,
        client: CompletionClient,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self.client = client
        self.config = config or PipelineConfig()

    def is_insufficient(self, record: PortfolioRecord) -> bool:
        """True when more than the configured share of numeric fields is null."""
        payload = build_payload(record)
        nulls = sum(1 for v in payload.values() if v is None)
        return nulls > self.config.insufficient_data_fraction * len(ANALYZABLE_NUMERIC_FIELDS)

    def analyze(
        self,
        record: PortfolioRecord,
        findings: Optional[ResearchFindings] = None,
    ) -> AnalysisOutcome:
        """Analyze one record. See module docstring for the outcome rules."""
        if self.is_insufficient(record):
            logger.info(
                "Insufficient data for %s (%d null numeric fields); skipping service call",
                record.company_name, record.null_numeric_count(),
                extra={"record_id": record.id},
            )
            return Ok(insufficient_data_result())

        research_used = findings is not None and findings.found
        prompt = build_user_prompt(record, findings.text if research_used else "")

        try:
            content = self.client.complete(SYSTEM_PROMPT, prompt)
            result = parse_analysis_response(
                content,
                external_sources=provenance(findings),
                research_used=research_used,
            )
        except ServiceUnreachableError as exc:
            return self._failure(record, str(exc), unreachable=True)
        except (AnalysisServiceError, ResponseParseError) as exc:
            return self._failure(record, str(exc), unreachable=False)
        except Exception as exc:
            logger.exception("Unexpected analysis error for %s", record.company_name)
            return self._failure(record, f"unexpected error: {exc}", unreachable=False)

        logger.info(
            "Analyzed %s: %s (confidence %d)",
            record.company_name, result.recommendation.value, result.confidence,
            extra={"record_id": record.id},
        )
        return Ok(result)

    def _failure(self, record: PortfolioRecord, reason: str, unreachable: bool) -> Err[AnalysisError]:
        logger.error(
            "Analysis failed for %s: %s", record.company_name, reason,
            extra={"record_id": record.id},
        )
        return Err(
            AnalysisError(
                reason=reason,
                unreachable=unreachable,
                fallback=analysis_failed_result(reason),
            )
        )
