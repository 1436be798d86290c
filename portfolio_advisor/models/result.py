"""
Tagged per-record outcome of the recommendation engine.

``RecommendationEngine.analyze()`` never raises for a service problem; it
returns ``Ok(result)`` or ``Err(error)`` and the orchestrator matches on the
tag to decide continue versus abort::

    match engine.analyze(record):
        case Ok(result):
            ...
        case Err(error) if error.unreachable and is_first_attempt:
            raise FatalBatchError(...)
        case Err(error):
            record_failure(error.fallback)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from portfolio_advisor.models.analysis import AnalysisResult

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E


@dataclass(frozen=True)
class AnalysisError:
    """Remote analysis failure for one record, encoded as data.

    Attributes:
        reason:      Short failure summary (also used as fallback reasoning).
        unreachable: True when the service could not be reached at all
                     (connection refused, DNS failure, connect timeout).
        fallback:    The insufficient-data ``AnalysisResult`` to store on the
                     record in place of a real analysis.
    """

    reason: str
    unreachable: bool
    fallback: AnalysisResult


AnalysisOutcome = Union[Ok[AnalysisResult], Err[AnalysisError]]
