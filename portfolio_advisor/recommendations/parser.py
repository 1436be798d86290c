"""
Parsing and coercion of reasoning-service responses.

Shape rule
----------
The message content must contain one JSON object (surrounding prose or code
fences are tolerated) carrying all of::

    recommendation, timingBucket, reasoning, confidence, keyRisks, suggestedAction

``externalSources`` is optional. Any other shape raises ``ResponseParseError``,
which the engine turns into a per-record failure.

Coercion rules (never fatal; each coercion records a warning)
-------------------------------------------------------------
recommendation:
    Matched case-, space- and punctuation-insensitively against the fixed
    set, ignoring a trailing parenthetical ("Hold (3-6 Months)" -> Hold,
    "double down" -> DoubleDown). Anything else, including "Pending",
    becomes Monitor.
confidence:
    First integer found in the value, clamped to 1-5. Unparseable -> 3.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from portfolio_advisor.models.analysis import AnalysisResult
from portfolio_advisor.taxonomy.recommendation_taxonomy import Recommendation

logger = logging.getLogger(__name__)

REQUIRED_RESPONSE_KEYS: tuple[str, ...] = (
    "recommendation",
    "timingBucket",
    "reasoning",
    "confidence",
    "keyRisks",
    "suggestedAction",
)

DEFAULT_CONFIDENCE = 3

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_PARENTHETICAL = re.compile(r"\([^)]*\)")
_NON_LETTERS = re.compile(r"[^a-z]")
_FIRST_INT = re.compile(r"-?\d+(?:\.\d+)?")

_RECOMMENDATION_KEYS: dict[str, Recommendation] = {
    _NON_LETTERS.sub("", r.value.lower()): r
    for r in Recommendation
    if r is not Recommendation.PENDING
}


class ResponseParseError(ValueError):
    """The service response does not have the required shape."""


def extract_json_object(content: str) -> dict[str, Any]:
    """Pull the outermost ``{...}`` out of ``content`` and decode it.

    Raises:
        ResponseParseError: No object, invalid JSON, or not a JSON object.
    """
    match = _JSON_OBJECT.search(content or "")
    if not match:
        raise ResponseParseError("Could not find a JSON object in the response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"Response JSON is invalid: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise ResponseParseError("Response JSON is not an object")
    return data


def coerce_recommendation(value: Any) -> tuple[Recommendation, Optional[str]]:
    """Map a raw recommendation to the fixed set.

    Returns:
        ``(recommendation, warning)``; warning is ``None`` on a clean match.
    """
    text = "" if value is None else str(value)
    key = _NON_LETTERS.sub("", _PARENTHETICAL.sub("", text).lower())
    matched = _RECOMMENDATION_KEYS.get(key)
    if matched is not None:
        return matched, None
    return (
        Recommendation.MONITOR,
        f"recommendation {text!r} is not a recognised decision; coerced to Monitor",
    )


def coerce_confidence(value: Any) -> tuple[int, Optional[str]]:
    """Map a raw confidence to an int in 1-5.

    Returns:
        ``(confidence, warning)``; warning is ``None`` when no change was needed.
    """
    number: Optional[float] = None
    if isinstance(value, bool):
        number = None
    elif isinstance(value, (int, float)):
        number = float(value)
    elif value is not None:
        match = _FIRST_INT.search(str(value))
        if match:
            number = float(match.group(0))

    if number is None or number != number:  # NaN check
        return DEFAULT_CONFIDENCE, f"confidence {value!r} is not numeric; defaulted to {DEFAULT_CONFIDENCE}"

    rounded = int(round(number))
    clamped = min(5, max(1, rounded))
    if clamped != number:
        return clamped, f"confidence {value!r} mapped to {clamped}"
    return clamped, None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "; ".join(str(v).strip() for v in value if str(v).strip())
    return str(value).strip()


def parse_analysis_response(
    content: str,
    external_sources: str,
    research_used: bool = False,
) -> AnalysisResult:
    """Turn raw message content into an ``AnalysisResult``.

    Args:
        content:          Message content from the reasoning service.
        external_sources: Provenance derived from the research findings.
        research_used:    When True, a non-empty ``externalSources`` in the
                          response replaces ``external_sources``. Without
                          research the provenance is always ours.

    Raises:
        ResponseParseError: When the content does not have the required shape.
    """
    data = extract_json_object(content)
    missing = [k for k in REQUIRED_RESPONSE_KEYS if k not in data]
    if missing:
        raise ResponseParseError(f"Response is missing field(s): {', '.join(missing)}")

    warnings: list[str] = []
    recommendation, warn = coerce_recommendation(data["recommendation"])
    if warn:
        warnings.append(warn)
    confidence, warn = coerce_confidence(data["confidence"])
    if warn:
        warnings.append(warn)

    for warning in warnings:
        logger.warning("Parse warning: %s", warning)

    if research_used and _text(data.get("externalSources")):
        external_sources = _text(data["externalSources"])

    return AnalysisResult(
        recommendation=recommendation,
        timing_bucket=_text(data["timingBucket"]) or "N/A",
        reasoning=_text(data["reasoning"]),
        confidence=confidence,
        key_risks=_text(data["keyRisks"]),
        suggested_action=_text(data["suggestedAction"]),
        external_sources=external_sources,
        insufficient_data=False,
        warnings=tuple(warnings),
    )
