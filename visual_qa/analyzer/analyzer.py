"""Screenshot analyzer: captions each capture and derives its issues."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from visual_qa.ai.client import CaptionClient
from visual_qa.errors import ImageError, InferenceError
from visual_qa.heuristics.rules import derive_issues, fallback_issues
from visual_qa.models.analysis import FALLBACK_DESCRIPTION, Analysis
from visual_qa.models.capture import CaptureResult
from visual_qa.models.config import AnalyzerConfig
from visual_qa.utils.retry import Sleep

logger = logging.getLogger(__name__)

VIEWPORT_PRIORITY = ("desktop", "tablet", "mobile", "large-desktop")


def group_by_viewport(captures: list[CaptureResult]) -> list[tuple[str, list[CaptureResult]]]:
    """Group captures by viewport, prioritized viewports first."""
    groups: dict[str, list[CaptureResult]] = {}
    for capture in captures:
        groups.setdefault(capture.viewport.name, []).append(capture)

    ordered = [name for name in VIEWPORT_PRIORITY if name in groups]
    ordered += [name for name in groups if name not in VIEWPORT_PRIORITY]
    return [(name, groups[name]) for name in ordered]


class ScreenshotAnalyzer:
    """Runs captures through the caption client one image at a time."""

    def __init__(self, client: CaptionClient, config: AnalyzerConfig, sleep: Sleep = asyncio.sleep):
        self.client = client
        self.config = config
        self._sleep = sleep
        self.skipped: list[str] = []

    async def analyze_all(self, captures: list[CaptureResult]) -> list[Analysis]:
        """Analyze every capture. ModelInitError propagates."""
        self.skipped = []
        delay = self.config.api_delay_ms / 1000
        groups = group_by_viewport(captures)
        analyses: list[Analysis] = []

        for group_index, (viewport, group) in enumerate(groups):
            if group_index > 0 and delay:
                await self._sleep(delay * 2)
            logger.info("Analyzing %s screenshots (%d images)...", viewport, len(group))

            for index, capture in enumerate(group):
                if index > 0 and delay:
                    await self._sleep(delay)
                analysis = await self.analyze_one(capture)
                if analysis is not None:
                    analyses.append(analysis)

        ai_count = sum(1 for a in analyses if a.ai_generated)
        logger.info(
            "Analysis complete: %d analyzed (%d AI, %d fallback, %d skipped)",
            len(analyses), ai_count, len(analyses) - ai_count, len(self.skipped),
        )
        return analyses

    async def analyze_one(self, capture: CaptureResult) -> Analysis | None:
        """Analyze one capture, or return None if its image is unusable."""
        logger.info("Analyzing: %s", capture.filename)
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            result = await self.client.caption(capture.path)
        except ImageError as e:
            logger.error("Skipping %s: %s", capture.filename, e)
            self.skipped.append(capture.filename)
            return None
        except InferenceError as e:
            logger.warning("AI analysis failed for %s, using fallback: %s", capture.filename, e)
            return Analysis(
                filename=capture.filename,
                page=capture.page,
                viewport=capture.viewport.name,
                timestamp=timestamp,
                ai_generated=False,
                description=FALLBACK_DESCRIPTION,
                confidence=0.0,
                model=self.client.model_name,
                issues=fallback_issues(capture.filename),
            )

        issues = derive_issues(result.text)
        logger.info(
            "  %s: \"%s\" (%d issue%s)",
            capture.filename, result.text[:80], len(issues), "" if len(issues) == 1 else "s",
        )
        return Analysis(
            filename=capture.filename,
            page=capture.page,
            viewport=capture.viewport.name,
            timestamp=timestamp,
            ai_generated=True,
            description=result.text,
            confidence=result.confidence,
            model=result.model,
            issues=issues,
            suggestions=[issue.recommendation for issue in issues if issue.recommendation],
        )
