"""
Portfolio file reader.

Input files are JSON arrays. Two shapes are accepted:

  - Raw ingestion rows: one object per company with spreadsheet, camelCase
    or snake_case keys. These go through the normalizer.
  - Enriched records written by ``portfolio-advisor analyze``: objects with a
    ``record`` key (and optional ``analysis``). These are validated as-is so
    ``summary`` / ``list`` can run on a previous batch's output.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from portfolio_advisor.models.analysis import EnrichedRecord
from portfolio_advisor.pipeline.normalize import RecordValidationError, normalize_rows

logger = logging.getLogger(__name__)


class PortfolioFileError(ValueError):
    """The file is missing, not JSON, or not a JSON array of objects."""


def load_rows(path: Path) -> list[dict[str, Any]]:
    """Read a JSON array of row objects.

    Raises:
        PortfolioFileError: On a missing file, invalid JSON or wrong shape.
    """
    if not path.exists():
        raise PortfolioFileError(f"Portfolio file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise PortfolioFileError(f"{path} is not valid JSON: {exc.msg} (line {exc.lineno})") from exc
    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise PortfolioFileError(f"{path} must contain a JSON array of objects.")
    return data


def is_enriched(rows: list[dict[str, Any]]) -> bool:
    return bool(rows) and all("record" in row for row in rows)


def load_portfolio(path: Path) -> tuple[list[EnrichedRecord], list[RecordValidationError]]:
    """Load raw or enriched rows as enriched records.

    Returns:
        ``(records, rejected)``; ``rejected`` is always empty for enriched input.
    """
    rows = load_rows(path)
    if is_enriched(rows):
        records = [EnrichedRecord.model_validate(row) for row in rows]
        logger.info("Loaded %d enriched records from %s", len(records), path)
        return records, []

    result = normalize_rows(rows)
    logger.info(
        "Loaded %d records from %s (%d rejected)",
        len(result.records), path, len(result.rejected),
    )
    return [EnrichedRecord.from_record(r) for r in result.records], result.rejected
