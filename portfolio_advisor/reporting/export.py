"""
JSON export of enriched records.

The written file is a JSON array of ``{"record": ..., "analysis": ...}``
objects that ``reporting.reader.load_portfolio`` reads back unchanged.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

from portfolio_advisor.models.analysis import EnrichedRecord


def export_enriched_json(records: Sequence[EnrichedRecord], path: Path) -> Path:
    """Write ``records`` to a pretty-printed JSON file.

    Args:
        records: Enriched records in output order.
        path:    Destination file path (parent dirs created if missing).

    Returns:
        ``path`` as written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data = [item.model_dump(mode="json") for item in records]
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path
