"""Aggregates per-image analyses into a Report."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from visual_qa.capture.naming import viewport_from_filename
from visual_qa.models.analysis import Analysis, IssueEntry, Report
from visual_qa.models.capture import success_rate

logger = logging.getLogger(__name__)


def build_report(
    analyses: list[Analysis],
    model_used: Optional[str],
    expected_total: int,
    viewport_names: Iterable[str] = (),
    generated: Optional[str] = None,
) -> Report:
    """Build the aggregate report for one run."""
    viewport_names = list(viewport_names)
    issues_by_type: dict[str, list[IssueEntry]] = {}
    by_viewport: dict[str, list[Analysis]] = {}
    total_issues = 0

    for analysis in analyses:
        for issue in analysis.issues:
            issues_by_type.setdefault(issue.type, []).append(
                IssueEntry.from_issue(analysis.filename, issue)
            )
            total_issues += 1

        viewport = analysis.viewport or viewport_from_filename(analysis.filename, viewport_names)
        by_viewport.setdefault(viewport, []).append(analysis)

    ai_analyzed = sum(1 for a in analyses if a.ai_generated)
    report = Report(
        generated=generated or datetime.now(timezone.utc).isoformat(),
        model_used=model_used or "",
        total_screenshots=len(analyses),
        expected_total=expected_total,
        success_rate=success_rate(len(analyses), expected_total),
        ai_analyzed=ai_analyzed,
        fallback_analyzed=len(analyses) - ai_analyzed,
        total_issues=total_issues,
        analyses=analyses,
        issues_by_type=issues_by_type,
        analyses_by_viewport=by_viewport,
        available_viewports=list(by_viewport),
    )
    logger.debug(
        "Report built: %d analyses, %d issues across %d types",
        len(analyses), total_issues, len(issues_by_type),
    )
    return report
