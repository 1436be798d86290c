"""
Best-effort external research for one company.

The augmenter is active only when the injected credential provider holds a
research key (and ``[research] enabled`` is true). For each company it runs
the research topics below one at a time, inline, before that company's
analysis call; research is never fanned out across companies.

Failure policy: every ``ResearchError`` (or unexpected client exception) is
logged and swallowed. A topic that fails simply contributes nothing; if no
topic produced text the findings are empty and the provenance reads
``"internal data only"``.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from portfolio_advisor.clients.research_client import ResearchClient, ResearchError
from portfolio_advisor.config import ResearchConfig
from portfolio_advisor.credentials import RESEARCH_API_KEY, CredentialProvider
from portfolio_advisor.models.analysis import INTERNAL_DATA_ONLY

logger = logging.getLogger(__name__)

# (label, query template)
RESEARCH_TOPICS: tuple[tuple[str, str], ...] = (
    ("Funding Intelligence",
     "{name} latest funding round Series A B C venture capital news"),
    ("Hiring Trends",
     "{name} hiring trends LinkedIn employee growth headcount team expansion"),
    ("Market Positioning",
     "{name} market position competitors product launches partnerships TechCrunch"),
    ("Recent News",
     "{name} recent news press releases product updates customer wins"),
    ("Competitor Activity",
     "{name} competitive landscape industry analysis market share"),
)

_SOURCE_PATTERN = re.compile(
    r"\b(Crunchbase|TechCrunch|LinkedIn|PitchBook|AngelList|VentureBeat|"
    r"company blog|press release|SEC filing)\b",
    re.IGNORECASE,
)

_CANONICAL_SOURCES = {
    "crunchbase": "Crunchbase",
    "techcrunch": "TechCrunch",
    "linkedin": "LinkedIn",
    "pitchbook": "PitchBook",
    "angellist": "AngelList",
    "venturebeat": "VentureBeat",
    "company blog": "company blog",
    "press release": "press release",
    "sec filing": "SEC filing",
}


class SearchClient(Protocol):
    def search(self, query: str) -> str: ...


@dataclass(frozen=True)
class ResearchFindings:
    """Research text for one company plus the source names it cites."""

    text: str = ""
    sources: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return bool(self.text)


NO_FINDINGS = ResearchFindings()


def extract_sources(text: str) -> list[str]:
    """Return cited source names in first-seen order, de-duplicated."""
    seen: list[str] = []
    for match in _SOURCE_PATTERN.finditer(text):
        name = _CANONICAL_SOURCES[match.group(1).lower()]
        if name not in seen:
            seen.append(name)
    return seen


def provenance(findings: Optional[ResearchFindings]) -> str:
    """Provenance string for an analysis backed by ``findings``."""
    if findings is None or not findings.found:
        return INTERNAL_DATA_ONLY
    if findings.sources:
        return "internal data + external research (" + ", ".join(findings.sources) + ")"
    return "internal data + external research"


class ResearchAugmenter:
    """Looks up external research for a company when a research key exists.

    Args:
        credentials:    Provider queried for ``research_api_key`` on each call.
        config:         ``ResearchConfig`` section.
        client_factory: ``(api_key, config) -> SearchClient``; defaults to
                        ``ResearchClient``.
        sleep:          Delay function between topic queries (tests pass a no-op).
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        config: Optional[ResearchConfig] = None,
        client_factory: Optional[Callable[[str, ResearchConfig], SearchClient]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.credentials = credentials
        self.config = config or ResearchConfig()
        self._client_factory = client_factory or ResearchClient
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self.config.enabled and bool(self.credentials.get(RESEARCH_API_KEY))

    def research(
        self,
        company_name: str,
        abort_signal: Optional[threading.Event] = None,
    ) -> ResearchFindings:
        """Run every research topic for ``company_name``.

        Args:
            company_name: Company to research.
            abort_signal: Optional event; once set, no further topic is queried.

        Returns:
            Findings with the concatenated topic answers, or ``NO_FINDINGS``
            when research is disabled or every topic failed. Never raises.
        """
        api_key = self.credentials.get(RESEARCH_API_KEY)
        if not self.config.enabled or not api_key:
            return NO_FINDINGS

        try:
            client = self._client_factory(api_key, self.config)
        except Exception as exc:
            logger.warning("Research client unavailable for %s: %s", company_name, exc)
            return NO_FINDINGS

        sections: list[str] = []
        sources: list[str] = []
        try:
            for i, (label, template) in enumerate(RESEARCH_TOPICS):
                if abort_signal is not None and abort_signal.is_set():
                    logger.info("Research for %s stopped: batch cancelled", company_name)
                    break
                if i > 0 and self.config.query_delay_seconds > 0:
                    self._sleep(self.config.query_delay_seconds)
                answer = self._run_query(client, template.format(name=company_name), company_name)
                if not answer:
                    continue
                sections.append(f"{label}: {answer}")
                for source in extract_sources(answer):
                    if source not in sources:
                        sources.append(source)
        finally:
            close = getattr(client, "close", None)
            if callable(close):
                close()

        logger.info(
            "Research for %s: %d/%d topics answered, %d source(s)",
            company_name, len(sections), len(RESEARCH_TOPICS), len(sources),
        )
        if not sections:
            return NO_FINDINGS
        return ResearchFindings(text="\n".join(sections), sources=tuple(sources))

    def _run_query(self, client: SearchClient, query: str, company_name: str) -> str:
        try:
            return client.search(query).strip()
        except ResearchError as exc:
            logger.warning("Research query failed for %s: %s", company_name, exc)
        except Exception as exc:
            logger.warning(
                "Research query raised unexpectedly for %s: %s", company_name, exc
            )
        return ""
