"""
External research client (Perplexity-compatible online chat completions).

Endpoint::

    POST {base_url}/chat/completions
      Auth: Bearer <research_api_key>
      Body: model, messages, temperature, max_tokens,
            search_domain_filter, search_recency_filter

Every failure (connect error, timeout, quota / non-2xx, malformed body,
empty content) raises ``ResearchError``. Callers treat research as
best-effort and swallow it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from portfolio_advisor.config import ResearchConfig

logger = logging.getLogger(__name__)

RESEARCH_SYSTEM_PROMPT = (
    "You are a venture capital research analyst. Provide factual, objective "
    "information from credible sources like Crunchbase, LinkedIn, TechCrunch, "
    "company press releases, and PitchBook. Focus on recent developments "
    "(last 6 months), funding activity, hiring trends, and market positioning. "
    "Be concise and cite specific sources."
)


class ResearchError(RuntimeError):
    """A research lookup failed. Never surfaced beyond the augmenter."""


class ResearchClient:
    """Synchronous client for one-shot research queries.

    Args:
        api_key:     Bearer token for the research service.
        config:      ``ResearchConfig`` section.
        http_client: Optional pre-built ``httpx.Client`` (tests).
    """

    def __init__(
        self,
        api_key: str,
        config: Optional[ResearchConfig] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config or ResearchConfig()
        self._api_key = api_key
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=self.config.timeout_seconds)

    def __enter__(self) -> "ResearchClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def search(self, query: str) -> str:
        """Run one research query and return the answer text.

        Raises:
            ResearchError: On any failure, including an empty answer.
        """
        body = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
                {"role": "user", "content": query},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "search_domain_filter": list(self.config.search_domains),
            "search_recency_filter": self.config.recency_filter,
            "return_related_questions": False,
            "return_images": False,
        }
        url = f"{self.config.base_url.rstrip('/')}/chat/completions"

        try:
            resp = self._http.post(
                url,
                json=body,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self.config.timeout_seconds,
            )
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
        except httpx.HTTPStatusError as exc:
            raise ResearchError(
                f"Research service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ResearchError(f"Research request failed: {exc}") from exc
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ResearchError("Research service returned a malformed body") from exc

        if not isinstance(content, str) or not content.strip():
            raise ResearchError("Research service returned empty content")
        return content.strip()
