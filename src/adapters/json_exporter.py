"""JSON export of the run report.

Why JSON:
- Lets deployment scripts check what was downloaded/extracted without
  scraping console output.
"""

from __future__ import annotations

import json
from pathlib import Path

from core.domain.models import RunReport


def export_run_json(*, report: RunReport, output_path: Path) -> Path:
    """Export `RunReport` as UTF-8 JSON with a stable layout."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = report.model_dump(mode="json")
    payload["failure_count"] = report.failure_count
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path
