"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from visual_qa.models.analysis import Report


def generate_json_report(report: Report, output_path: Path) -> None:
    """Write a machine-readable JSON report."""
    data = report.model_dump()
    # Summary counts up front for quick inspection
    data["summary"] = {
        "total_screenshots": report.total_screenshots,
        "ai_analyzed": report.ai_analyzed,
        "fallback_analyzed": report.fallback_analyzed,
        "total_issues": report.total_issues,
        "issues_per_type": {t: len(entries) for t, entries in report.issues_by_type.items()},
    }

    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)
