"""
Tests for portfolio_advisor/clients/.

Uses ``httpx.MockTransport`` so no network traffic is made.

What we test
------------
AnalysisClient.complete():
  - Sends model, both messages and the bearer token to /chat/completions.
  - Returns the first choice's message content.
  - Connect errors map to ServiceUnreachableError.
  - Non-2xx, read timeouts, bad bodies and empty content map to
    AnalysisServiceError (and NOT to ServiceUnreachableError).

ResearchClient.search():
  - Sends the domain / recency filters and returns stripped content.
  - Every failure maps to ResearchError.
"""

from __future__ import annotations

import json

import httpx
import pytest

from portfolio_advisor.clients.analysis_client import (
    AnalysisClient,
    AnalysisServiceError,
    ServiceUnreachableError,
)
from portfolio_advisor.clients.research_client import ResearchClient, ResearchError
from portfolio_advisor.config import AnalysisConfig, ResearchConfig


def _completion(content) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _http(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _raise(exc_type):
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_type("simulated", request=request)
    return handler


# ── AnalysisClient ────────────────────────────────────────────────────────────

def test_analysis_request_shape_and_content():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion('{"recommendation": "Hold"}'))

    config = AnalysisConfig(base_url="https://llm.test/v1/", model="test-model")
    client = AnalysisClient("sk-abc", config, http_client=_http(handler))

    content = client.complete("system text", "user text")

    assert content == '{"recommendation": "Hold"}'
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-abc"
    assert seen["body"]["model"] == "test-model"
    assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user"]
    assert seen["body"]["messages"][1]["content"] == "user text"


@pytest.mark.parametrize("exc_type", [httpx.ConnectError, httpx.ConnectTimeout])
def test_analysis_connect_failure_is_unreachable(exc_type):
    client = AnalysisClient("sk", http_client=_http(_raise(exc_type)))
    with pytest.raises(ServiceUnreachableError):
        client.complete("s", "u")


def test_analysis_read_timeout_is_not_unreachable():
    client = AnalysisClient("sk", http_client=_http(_raise(httpx.ReadTimeout)))
    with pytest.raises(AnalysisServiceError) as exc_info:
        client.complete("s", "u")
    assert not isinstance(exc_info.value, ServiceUnreachableError)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(429, json={"error": {"message": "Rate limit reached"}}),
        httpx.Response(500, text="upstream failure"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json=_completion("   ")),
        httpx.Response(200, json=_completion(None)),
    ],
)
def test_analysis_bad_responses(response):
    client = AnalysisClient("sk", http_client=_http(lambda request: response))
    with pytest.raises(AnalysisServiceError) as exc_info:
        client.complete("s", "u")
    assert not isinstance(exc_info.value, ServiceUnreachableError)


def test_analysis_error_message_included():
    response = httpx.Response(401, json={"error": {"message": "Invalid API key"}})
    client = AnalysisClient("sk", http_client=_http(lambda request: response))
    with pytest.raises(AnalysisServiceError, match="Invalid API key"):
        client.complete("s", "u")


def test_analysis_context_manager_leaves_injected_client_open():
    http = _http(lambda request: httpx.Response(200, json=_completion("ok")))
    with AnalysisClient("sk", http_client=http) as client:
        assert client.complete("s", "u") == "ok"
    assert not http.is_closed


# ── ResearchClient ────────────────────────────────────────────────────────────

def test_research_request_carries_filters():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion("  Raised a Series B (Crunchbase).  "))

    config = ResearchConfig(search_domains=["crunchbase.com"], recency_filter="week")
    client = ResearchClient("pplx", config, http_client=_http(handler))

    answer = client.search("Acme funding")

    assert answer == "Raised a Series B (Crunchbase)."
    assert seen["body"]["search_domain_filter"] == ["crunchbase.com"]
    assert seen["body"]["search_recency_filter"] == "week"
    assert seen["body"]["messages"][1]["content"] == "Acme funding"


@pytest.mark.parametrize(
    "handler",
    [
        _raise(httpx.ConnectError),
        _raise(httpx.ReadTimeout),
        lambda request: httpx.Response(402, json={"error": "quota"}),
        lambda request: httpx.Response(200, text="<html>"),
        lambda request: httpx.Response(200, json=_completion("")),
    ],
)
def test_research_failures_raise_research_error(handler):
    client = ResearchClient("pplx", http_client=_http(handler))
    with pytest.raises(ResearchError):
        client.search("Acme")
