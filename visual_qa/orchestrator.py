"""Pipeline orchestrator: runs the model init, capture, analysis and report stages."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from visual_qa.ai.client import CaptionClient
from visual_qa.analyzer.analyzer import ScreenshotAnalyzer
from visual_qa.capture.capturer import ScreenshotCapturer, load_captures, wait_for_server
from visual_qa.errors import ModelInitError, NoScreenshotsError, ServerUnavailable
from visual_qa.models.analysis import Analysis, Report
from visual_qa.models.capture import CaptureResult, success_rate
from visual_qa.models.config import AnalyzerConfig
from visual_qa.reporter.reporter import Reporter
from visual_qa.utils.retry import Sleep

logger = logging.getLogger(__name__)


class Orchestrator:
    """Coordinates the capture-and-analyze pipeline."""

    def __init__(
        self,
        config: AnalyzerConfig,
        caption_client: Optional[CaptionClient] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.caption_client = caption_client or CaptionClient.from_config(config, sleep)
        self._sleep = sleep
        self.capturer = ScreenshotCapturer(config)
        self.reporter = Reporter(config)

    def run_full_pipeline(self) -> dict:
        """Execute the complete init → capture → analyze → report pipeline."""
        return asyncio.run(self._run_pipeline())

    async def _run_pipeline(self) -> dict:
        start = time.time()
        logger.info("=== Starting visual QA pipeline for %s ===", self.config.base_url)

        # Stage 1: Model init (before any capture)
        logger.info("--- Stage 1: Model init ---")
        stage_start = time.time()
        model = self.caption_client.initialize()
        logger.info("--- Stage 1 complete: %s ready in %.1fs ---", model, time.time() - stage_start)

        # Stage 2: Capture
        logger.info("--- Stage 2: Capture (%d pages x %d viewports) ---",
                    len(self.config.pages), len(self.config.viewports))
        stage_start = time.time()
        captures = await self.capturer.capture_all()
        logger.info("--- Stage 2 complete: %d/%d screenshots in %.1fs ---",
                    len(captures), self.config.expected_total, time.time() - stage_start)
        if not captures:
            raise NoScreenshotsError(
                "No screenshots generated. Please check your server is running."
            )

        analyses, report, reports = await self._analyze_and_report(captures, first_stage=3)

        duration = time.time() - start
        logger.info("=== Pipeline complete in %.1fs ===", duration)
        return self._summary(duration, captures, analyses, report, reports)

    def run_capture_only(self) -> dict:
        """Capture screenshots and write metadata.json, without analysis."""
        return asyncio.run(self._capture_only())

    async def _capture_only(self) -> dict:
        start = time.time()
        captures = await self.capturer.capture_all()
        return {
            "duration": round(time.time() - start, 2),
            "captured": len(captures),
            "expected": self.config.expected_total,
            "success_rate": success_rate(len(captures), self.config.expected_total),
            "failures": list(self.capturer.failures),
            "output_dir": str(self.config.output_path.resolve()),
        }

    def run_analyze_only(self) -> dict:
        """Analyze the screenshots already in the output directory."""
        return asyncio.run(self._analyze_only())

    async def _analyze_only(self) -> dict:
        start = time.time()
        captures = load_captures(self.config.output_path, self.config)
        if not captures:
            raise NoScreenshotsError(
                f"No screenshots found in {self.config.output_path}. Run 'visual-qa capture' first."
            )
        logger.info("Found %d existing screenshots", len(captures))
        self.caption_client.initialize()
        analyses, report, reports = await self._analyze_and_report(captures, first_stage=1)
        return self._summary(time.time() - start, captures, analyses, report, reports)

    async def _analyze_and_report(
        self, captures: list[CaptureResult], first_stage: int
    ) -> tuple[list[Analysis], Report, dict[str, str]]:
        stage = first_stage
        logger.info("--- Stage %d: Analyze (%d screenshots) ---", stage, len(captures))
        stage_start = time.time()
        analyzer = ScreenshotAnalyzer(self.caption_client, self.config, sleep=self._sleep)
        analyses = await analyzer.analyze_all(captures)
        logger.info("--- Stage %d complete: %d analyses in %.1fs ---",
                    stage, len(analyses), time.time() - stage_start)

        stage += 1
        logger.info("--- Stage %d: Report ---", stage)
        stage_start = time.time()
        report = self.reporter.build(analyses, self.caption_client.model_name)
        reports = self.reporter.generate_reports(report)
        logger.info("--- Stage %d complete: %d reports generated in %.1fs ---",
                    stage, len(reports), time.time() - stage_start)
        return analyses, report, reports

    def _summary(
        self,
        duration: float,
        captures: list[CaptureResult],
        analyses: list[Analysis],
        report: Report,
        reports: dict[str, str],
    ) -> dict:
        return {
            "duration": round(duration, 2),
            "model": report.model_used,
            "captures": {
                "captured": len(captures),
                "expected": self.config.expected_total,
                "success_rate": report.success_rate,
                "failures": list(self.capturer.failures),
            },
            "analysis": {
                "total": len(analyses),
                "ai": report.ai_analyzed,
                "fallback": report.fallback_analyzed,
                "skipped": len(captures) - len(analyses),
            },
            "issues": {
                "total": report.total_issues,
                "by_type": {t: len(entries) for t, entries in report.issues_by_type.items()},
            },
            "viewports": report.available_viewports,
            "reports": reports,
        }

    def check(self) -> dict:
        """Report whether the target server and the caption model are usable."""
        return asyncio.run(self._check())

    async def _check(self) -> dict:
        result: dict = {"server": False, "server_error": None, "model": None, "model_error": None}
        try:
            await wait_for_server(
                self.config.base_url,
                retries=1,
                timeout=self.config.server_check_timeout_ms / 1000,
                sleep=self._sleep,
            )
            result["server"] = True
        except ServerUnavailable as e:
            result["server_error"] = str(e)

        start = time.time()
        try:
            result["model"] = self.caption_client.initialize()
            result["init_seconds"] = round(time.time() - start, 1)
        except ModelInitError as e:
            result["model_error"] = str(e)
        return result

    def download_models(self, models: Optional[list[str]] = None) -> list[str]:
        """Pre-download the candidate models. Returns the ones that loaded."""
        logger.info("Pre-downloading models to avoid delays during analysis...")
        return self.caption_client.prefetch(models)
