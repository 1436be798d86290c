"""
Reasoning service client (OpenAI-compatible chat completions).

Endpoint::

    POST {base_url}/chat/completions
      Auth: Bearer <analysis_api_key>
      Body: {"model": ..., "messages": [...], "temperature": ..., "max_tokens": ...}
      Returns: {"choices": [{"message": {"content": "..."}}]}

Failure mapping
---------------
- Connection refused / DNS failure / connect timeout -> ``ServiceUnreachableError``
  (the orchestrator aborts the batch if this happens on the first record).
- Non-2xx status, read timeout, undecodable body, empty content
  -> ``AnalysisServiceError`` (recorded on that record only).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from portfolio_advisor.config import AnalysisConfig

logger = logging.getLogger(__name__)


class AnalysisServiceError(RuntimeError):
    """The reasoning service was reached but did not return usable content."""


class ServiceUnreachableError(AnalysisServiceError):
    """The reasoning service could not be reached at all."""


class AnalysisClient:
    """Synchronous chat-completions client for per-record analysis.

    Usage::

        with AnalysisClient(api_key, config.analysis) as client:
            content = client.complete(system_prompt, user_prompt)

    Args:
        api_key:     Bearer token for the service.
        config:      ``AnalysisConfig`` section (model, base URL, timeouts).
        http_client: Optional pre-built ``httpx.Client``; the caller then
                     owns its lifetime.
    """

    def __init__(
        self,
        api_key: str,
        config: Optional[AnalysisConfig] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config or AnalysisConfig()
        self._api_key = api_key
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=self.config.timeout_seconds)

    def __enter__(self) -> "AnalysisClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Send one chat completion request and return the message content.

        Raises:
            ServiceUnreachableError: On connection-level failure.
            AnalysisServiceError:    On any other transport or response problem.
        """
        body = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        url = f"{self.config.base_url.rstrip('/')}/chat/completions"

        try:
            resp = self._http.post(
                url,
                json=body,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self.config.timeout_seconds,
            )
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise ServiceUnreachableError(f"Reasoning service unreachable: {exc}") from exc
        except httpx.HTTPError as exc:
            raise AnalysisServiceError(f"Reasoning service request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise AnalysisServiceError(
                f"Reasoning service returned HTTP {resp.status_code}: {_error_message(resp)}"
            )

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AnalysisServiceError("Reasoning service returned an unexpected body") from exc

        if not isinstance(content, str) or not content.strip():
            raise AnalysisServiceError("No response content received from reasoning service")

        logger.debug("Reasoning service returned %d chars", len(content))
        return content


def _error_message(resp: httpx.Response) -> str:
    """Best-effort extraction of ``{"error": {"message": ...}}``."""
    try:
        payload = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return resp.text[:200]
