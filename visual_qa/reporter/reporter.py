"""Report generation orchestration."""

from __future__ import annotations

import logging
import webbrowser
from pathlib import Path
from typing import Callable, Optional

from visual_qa.models.analysis import Analysis, Report
from visual_qa.models.config import AnalyzerConfig

from .html_report import generate_html_report
from .json_report import generate_json_report
from .report_builder import build_report

logger = logging.getLogger(__name__)

JSON_REPORT_NAME = "analysis-report.json"
HTML_REPORT_NAME = "analysis-report.html"


class Reporter:
    """Builds the run report and writes it next to the screenshots."""

    def __init__(
        self,
        config: AnalyzerConfig,
        open_browser: Optional[Callable[[str], bool]] = None,
    ):
        self.config = config
        self._open_browser = open_browser or webbrowser.open

    def build(self, analyses: list[Analysis], model_used: Optional[str]) -> Report:
        return build_report(
            analyses,
            model_used,
            expected_total=self.config.expected_total,
            viewport_names=[v.name for v in self.config.viewports],
        )

    def generate_reports(self, report: Report, output_dir: Optional[Path] = None) -> dict[str, str]:
        """Write the JSON and HTML reports. Returns format -> file path."""
        out_dir = Path(output_dir or self.config.output_path)
        out_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("Report output directory: %s", out_dir)
        generated = {}

        path = out_dir / JSON_REPORT_NAME
        logger.debug("Generating JSON report...")
        generate_json_report(report, path)
        generated["json"] = str(path)
        logger.info("JSON report: %s", path)

        path = out_dir / HTML_REPORT_NAME
        logger.debug("Generating HTML report...")
        generate_html_report(report, path, self.config.template_path)
        generated["html"] = str(path)
        logger.info("HTML report: %s", path)

        if self.config.open_report:
            self.open_in_browser(path)
        return generated

    def open_in_browser(self, path: Path) -> bool:
        """Open the report in the default browser. Failures are only logged."""
        try:
            opened = self._open_browser(Path(path).resolve().as_uri())
        except Exception as e:
            logger.warning("Could not open browser: %s", e)
            return False
        if not opened:
            logger.warning("Could not open browser. Open %s manually.", path)
        return bool(opened)
