"""
Shared pytest fixtures for the Portfolio Advisor test suite.

Provides:
  - ``app_config``: Built-in default ``AppConfig`` with all delays at zero.
  - ``credentials``: In-memory provider holding an analysis key only.
  - ``make_record``: Factory for fully populated ``PortfolioRecord`` objects.
  - ``ScriptedClient``: Completion client stub that replays scripted
    responses (strings) or raises scripted exceptions, counting calls.
  - ``analysis_json``: Builder for a well-formed service response.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable, Optional, Union

import pytest

from portfolio_advisor.config import AnalysisConfig, AppConfig, ResearchConfig
from portfolio_advisor.credentials import ANALYSIS_API_KEY, InMemoryCredentialProvider
from portfolio_advisor.models.record import PortfolioRecord


# ── Config / credentials ──────────────────────────────────────────────────────

@pytest.fixture
def app_config() -> AppConfig:
    """Default config with inter-record and inter-query delays disabled."""
    return AppConfig(
        analysis=AnalysisConfig(inter_record_delay_seconds=0.0),
        research=ResearchConfig(query_delay_seconds=0.0),
    )


@pytest.fixture
def credentials() -> InMemoryCredentialProvider:
    """Analysis key present, research key absent (research disabled)."""
    return InMemoryCredentialProvider({ANALYSIS_API_KEY: "sk-test"})


# ── Sample domain object factories ────────────────────────────────────────────

def build_record(record_id: str = "c1", company_name: str = "Acme Analytics", **overrides: Any) -> PortfolioRecord:
    """A fully populated record; override any field by keyword."""
    values: dict[str, Any] = {
        "id": record_id,
        "company_name": company_name,
        "total_investment": 2_500_000.0,
        "equity_stake": 12.5,
        "moic": 2.1,
        "revenue_growth": 45.0,
        "burn_multiple": 1.2,
        "runway_months": 18,
        "tam": 4,
        "exit_activity": "Moderate",
        "barrier_to_entry": 3,
        "additional_investment_requested": 1_000_000.0,
    }
    values.update(overrides)
    return PortfolioRecord(**values)


@pytest.fixture
def make_record() -> Callable[..., PortfolioRecord]:
    return build_record


def build_analysis_json(
    recommendation: Any = "Hold",
    confidence: Any = 4,
    **overrides: Any,
) -> str:
    """A well-formed reasoning-service message body."""
    body: dict[str, Any] = {
        "recommendation": recommendation,
        "timingBucket": "Hold (3-6 Months)",
        "reasoning": "MOIC of 2.1x with 45% growth and efficient burn.",
        "confidence": confidence,
        "keyRisks": "Runway below two years.",
        "suggestedAction": "Review Q3 board deck.",
    }
    body.update(overrides)
    return json.dumps(body)


@pytest.fixture
def analysis_json() -> Callable[..., str]:
    return build_analysis_json


# ── Service stubs ─────────────────────────────────────────────────────────────

class ScriptedClient:
    """Completion client replaying a script of responses / exceptions.

    Each call to ``complete()`` consumes the next script entry. When the
    script runs out, ``default`` is returned (or raised, for an exception).
    """

    def __init__(
        self,
        script: Iterable[Union[str, Exception]] = (),
        default: Optional[Union[str, Exception]] = None,
    ) -> None:
        self._script = list(script)
        self._default = default if default is not None else build_analysis_json()
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        item = self._script.pop(0) if self._script else self._default
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def scripted_client() -> Callable[..., ScriptedClient]:
    """Factory: ``scripted_client([resp1, exc2, ...], default=...)``."""
    return ScriptedClient
