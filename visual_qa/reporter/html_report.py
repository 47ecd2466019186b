"""HTML report generator that fills the report template with the run's analyses."""

from __future__ import annotations

import html
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from visual_qa.models.analysis import Analysis, Report

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = Path(__file__).with_name("template.html")

SEVERITY_COLORS = {"critical": "#dc2626", "high": "#f97316", "medium": "#eab308", "low": "#22c55e"}

_PLACEHOLDER_RE = re.compile(r"\{\{([A-Z_]+)\}\}")


def _title(name: str) -> str:
    return name[:1].upper() + name[1:]


def _format_date(iso: str) -> str:
    try:
        return datetime.fromisoformat(iso).strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    except ValueError:
        return iso


def _build_viewport_selector(report: Report) -> str:
    if not report.available_viewports:
        return ""
    default = "desktop" if "desktop" in report.available_viewports else report.available_viewports[0]
    options = "".join(
        f'<option value="{html.escape(v)}"{" selected" if v == default else ""}>{html.escape(_title(v))}</option>'
        for v in report.available_viewports
    )
    return f'''
  <div class="viewport-selector section">
    <label for="viewportSelect">Viewport:</label>
    <select id="viewportSelect">{options}</select>
    <span id="viewportInfo"></span>
  </div>'''


def _build_issues_section(report: Report) -> str:
    if report.total_issues == 0:
        return '''
  <div class="section">
    <h2>Issues Found</h2>
    <div class="no-issues">No issues found! UI looks good.</div>
  </div>'''

    groups = ""
    for issue_type, entries in report.issues_by_type.items():
        items = ""
        for entry in entries:
            explanation = (
                f'<div class="issue-explanation">{html.escape(entry.explanation)}</div>'
                if entry.explanation else ""
            )
            recommendation = (
                f'<div class="issue-recommendation"><strong>Recommendation:</strong> '
                f'{html.escape(entry.recommendation)}</div>'
                if entry.recommendation else ""
            )
            items += f'''
      <div class="issue-item {entry.severity}">
        <div class="issue-title">
          <strong>{html.escape(entry.filename)}</strong>: {html.escape(entry.message)}
          <span class="severity-badge severity-{entry.severity}">{entry.severity}</span>
        </div>
        {explanation}
        {recommendation}
        <div class="issue-meta">Confidence: {entry.confidence} &middot; File: {html.escape(entry.filename)}</div>
      </div>'''
        groups += f'<div class="issue-type"><h3>{html.escape(issue_type.upper())} ({len(entries)})</h3>{items}</div>'

    return f'''
  <div class="section">
    <h2>Issues Found ({report.total_issues})</h2>
    <div class="issues">{groups}</div>
  </div>'''


def _build_screenshot_item(viewport: str, analysis: Analysis) -> str:
    page = analysis.page or analysis.filename.split("-")[0]
    source = "AI Powered" if analysis.ai_generated else "Fallback Analysis"

    issues_html = ""
    if analysis.issues:
        rows = ""
        for issue in analysis.issues:
            color = SEVERITY_COLORS.get(issue.severity, SEVERITY_COLORS["medium"])
            rows += (
                f'<div style="border-left: 3px solid {color}; padding-left: 0.4rem; margin: 0.3rem 0;">'
                f'<strong>{html.escape(issue.type)}:</strong> {html.escape(issue.message)}</div>'
            )
        issues_html = f'<div class="screenshot-issues"><strong>Issues Found:</strong>{rows}</div>'

    return f'''
      <div class="screenshot-item" data-viewport="{html.escape(viewport)}">
        <img src="{html.escape(Path(analysis.filename).name)}" alt="{html.escape(analysis.filename)}" loading="lazy" onclick="this.classList.toggle('zoomed')"/>
        <div class="screenshot-info">
          <div class="screenshot-title">{html.escape(_title(page))} - {html.escape(_title(viewport))}</div>
          <div class="screenshot-meta">
            <strong>File:</strong> {html.escape(analysis.filename)}<br>
            <strong>Analysis:</strong> {source}<br>
            <strong>Confidence:</strong> {analysis.confidence * 100:.1f}%
          </div>
          <div class="screenshot-description">{html.escape(analysis.description)}</div>
          {issues_html}
        </div>
      </div>'''


def _build_screenshots_section(report: Report) -> str:
    return "".join(
        _build_screenshot_item(viewport, analysis)
        for viewport, analyses in report.analyses_by_viewport.items()
        for analysis in analyses
    )


def render_html(report: Report, template_path: Optional[Path] = None) -> str:
    """Substitute the report into the HTML template and return the page."""
    template = Path(template_path or DEFAULT_TEMPLATE).read_text(encoding="utf-8")
    values = {
        "GENERATED_DATE": html.escape(_format_date(report.generated)),
        "TOTAL_SCREENSHOTS": str(report.total_screenshots),
        "AI_ANALYZED": str(report.ai_analyzed),
        "TOTAL_ISSUES": str(report.total_issues),
        "SUCCESS_RATE": str(report.success_rate),
        "MODEL_USED": html.escape(report.model_used or "n/a"),
        "VIEWPORT_SELECTOR": _build_viewport_selector(report),
        "ISSUES_SECTION": _build_issues_section(report),
        "SCREENSHOTS_SECTION": _build_screenshots_section(report),
    }
    # Single pass: substituted text is never rescanned
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def generate_html_report(
    report: Report, output_path: Path, template_path: Optional[Path] = None
) -> None:
    """Write the self-contained HTML report next to the screenshots."""
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(render_html(report, template_path))
