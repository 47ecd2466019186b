"""Screenshot capturer. Renders every (page, viewport) pair with Playwright."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx
from playwright.async_api import Browser, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from visual_qa.capture.actions import perform_action
from visual_qa.capture.naming import build_filename, parse_filename
from visual_qa.errors import (
    CaptureError,
    CorruptScreenshot,
    NavigationTimeout,
    ServerUnavailable,
)
from visual_qa.models.capture import CaptureManifest, CaptureResult
from visual_qa.models.config import AnalyzerConfig, PageConfig, ViewportConfig
from visual_qa.utils.retry import RetryPolicy, Sleep, retry_async

logger = logging.getLogger(__name__)

MANIFEST_NAME = "metadata.json"


def _iso(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).isoformat()


class _ServerNotReady(Exception):
    pass


async def wait_for_server(
    url: str,
    retries: int = 5,
    delay: float = 2.0,
    timeout: float = 5.0,
    sleep: Sleep = asyncio.sleep,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """Poll ``url`` until it answers with a 2xx status."""
    logger.info("Checking server availability at %s...", url)

    async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
        async def probe() -> None:
            response = await client.get(url)
            if not response.is_success:
                raise _ServerNotReady(f"HTTP {response.status_code}")

        policy = RetryPolicy(
            max_retries=max(retries - 1, 0),
            delay_seconds=delay,
            retryable=lambda e: isinstance(e, (httpx.HTTPError, _ServerNotReady)),
        )
        try:
            await retry_async(probe, policy, sleep=sleep, label="Server check")
        except (httpx.HTTPError, _ServerNotReady) as e:
            raise ServerUnavailable(
                f"Server at {url} not responding after {retries} attempts ({e}). "
                "Please start the server first."
            ) from e
    logger.info("Server is ready")


class ScreenshotCapturer:
    """Captures full-page PNGs for every configured page at every viewport.

    Capture policy is best-effort: a pair that fails to navigate, open its
    modal, or produce a valid image is logged and skipped, and the run moves
    on to the next pair. Each pair gets its own browser context.
    """

    def __init__(self, config: AnalyzerConfig):
        self.config = config
        self.output_dir = config.output_path
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.failures: list[str] = []

    def purge_old_screenshots(self) -> int:
        """Delete PNGs left over from a previous run."""
        old = list(self.output_dir.glob("*.png"))
        if old:
            logger.info("Cleaning up %d old screenshots...", len(old))
        for path in old:
            path.unlink()
        return len(old)

    async def capture_all(self) -> list[CaptureResult]:
        """Run a full capture pass and write the metadata manifest."""
        self.failures = []
        self.purge_old_screenshots()
        await wait_for_server(
            self.config.base_url,
            retries=self.config.server_check_retries,
            delay=self.config.server_check_delay_ms / 1000,
            timeout=self.config.server_check_timeout_ms / 1000,
        )

        captures: list[CaptureResult] = []
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            try:
                for page_config in self.config.pages:
                    logger.info("Capturing screenshots for: %s", page_config.name)
                    page_captures = await self._capture_page(browser, page_config)
                    captures.extend(page_captures)
                    logger.info(
                        "  %d/%d screenshots captured for %s",
                        len(page_captures), len(self.config.viewports), page_config.name,
                    )
            finally:
                await browser.close()

        self.write_manifest(captures)
        logger.info(
            "Screenshot generation complete: %d/%d captured",
            len(captures), self.config.expected_total,
        )
        return captures

    async def _capture_page(self, browser: Browser, page_config: PageConfig) -> list[CaptureResult]:
        results = []
        for viewport in self.config.viewports:
            try:
                result = await self.capture_one(browser, page_config, viewport)
            except CaptureError as e:
                logger.error("Error capturing %s at %s: %s", page_config.name, viewport.name, e)
                self.failures.append(f"{page_config.name}@{viewport.name}: {e}")
                continue
            logger.info("  Captured: %s (%.1fKB)", result.filename, result.size_bytes / 1024)
            results.append(result)
        return results

    async def capture_one(
        self, browser: Browser, page_config: PageConfig, viewport: ViewportConfig
    ) -> CaptureResult:
        """Capture one (page, viewport) pair in a fresh context.

        Any Playwright failure surfaces as a CaptureError so the caller can
        skip the pair.
        """
        try:
            context = await browser.new_context(
                viewport={"width": viewport.width, "height": viewport.height},
            )
        except PlaywrightError as e:
            raise CaptureError(f"Could not create browser context: {e}") from e
        try:
            url = self.config.base_url.rstrip("/") + page_config.url
            try:
                page = await context.new_page()
                logger.debug("Navigating to %s (%s)", url, viewport.name)
                await page.goto(
                    url, wait_until="networkidle", timeout=self.config.navigation_timeout_ms,
                )
            except PlaywrightTimeout as e:
                raise NavigationTimeout(
                    f"Timed out loading {url} after {self.config.navigation_timeout_ms}ms"
                ) from e
            except PlaywrightError as e:
                raise CaptureError(f"Navigation to {url} failed: {e}") from e

            try:
                await page.wait_for_timeout(self.config.settle_ms)
            except PlaywrightError as e:
                raise CaptureError(f"Page closed while settling: {e}") from e
            await perform_action(page, page_config, self.config)
            return await self._take_screenshot(page, page_config, viewport)
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.debug("Error closing context for %s@%s: %s", page_config.name, viewport.name, e)

    async def _take_screenshot(self, page, page_config: PageConfig, viewport: ViewportConfig) -> CaptureResult:
        millis = time.time_ns() // 1_000_000
        filename = build_filename(page_config.name, viewport.name, millis)
        path = self.output_dir / filename

        try:
            await page.screenshot(path=str(path), full_page=True, type="png")
        except PlaywrightError as e:
            raise CaptureError(f"Screenshot failed: {e}") from e

        size = path.stat().st_size if path.exists() else 0
        if size < self.config.min_screenshot_bytes:
            path.unlink(missing_ok=True)
            raise CorruptScreenshot(f"Screenshot too small: {size} bytes")

        return CaptureResult(
            filename=filename,
            path=str(path.resolve()),
            page=page_config.name,
            viewport=viewport,
            timestamp=_iso(millis),
            size_bytes=size,
        )

    def write_manifest(self, captures: list[CaptureResult]) -> Path:
        manifest = CaptureManifest.from_captures(
            captures,
            expected_total=self.config.expected_total,
            generated=datetime.now(timezone.utc).isoformat(),
        )
        path = self.output_dir / MANIFEST_NAME
        logger.debug("Saving capture manifest to %s", path)
        with open(path, "w") as f:
            json.dump(manifest.model_dump(), f, indent=2)
        return path


def load_captures(output_dir: str | Path, config: AnalyzerConfig) -> list[CaptureResult]:
    """Rebuild CaptureResults for screenshots already on disk.

    Uses metadata.json when present, otherwise parses the PNG filenames.
    Entries whose file is gone are dropped.
    """
    output_dir = Path(output_dir)
    manifest_path = output_dir / MANIFEST_NAME
    if manifest_path.exists():
        with open(manifest_path) as f:
            manifest = CaptureManifest.model_validate(json.load(f))
        return [c for c in manifest.screenshots if Path(c.path).exists()]

    viewports = {v.name: v for v in config.viewports}
    captures = []
    for path in sorted(output_dir.glob("*.png")):
        parsed = parse_filename(path.name, viewports)
        if parsed is None:
            logger.debug("Skipping unrecognized file %s", path.name)
            continue
        page, viewport_name, millis = parsed
        viewport = viewports.get(viewport_name) or ViewportConfig(name=viewport_name, width=0, height=0)
        captures.append(CaptureResult(
            filename=path.name,
            path=str(path.resolve()),
            page=page,
            viewport=viewport,
            timestamp=_iso(millis),
            size_bytes=path.stat().st_size,
        ))
    return captures
