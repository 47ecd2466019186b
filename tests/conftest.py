"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from visual_qa.ai.backends import CaptionBackend
from visual_qa.models.analysis import Analysis, Issue
from visual_qa.models.capture import CaptureResult
from visual_qa.models.config import AnalyzerConfig, ViewportConfig


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def analyzer_config(tmp_path: Path) -> AnalyzerConfig:
    """Config writing into a temp dir, with no delays and no browser opening."""
    return AnalyzerConfig(
        output_dir=str(tmp_path / "screenshots"),
        api_delay_ms=0,
        retry_delay_ms=0,
        server_check_delay_ms=0,
        open_report=False,
    )


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that records the requested delays."""
    return AsyncMock(return_value=None)


# ============================================================================
# Image / Capture Fixtures
# ============================================================================


def write_png(path: Path, size: tuple[int, int] = (64, 48)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color=(200, 220, 240)).save(path, format="PNG")
    return path


def make_capture(
    directory: Path,
    page: str = "home",
    viewport: str = "desktop",
    millis: int = 1700000000000,
    write: bool = True,
) -> CaptureResult:
    filename = f"{page}-{viewport}-{millis}.png"
    path = directory / filename
    if write:
        write_png(path)
    return CaptureResult(
        filename=filename,
        path=str(path),
        page=page,
        viewport=ViewportConfig(name=viewport, width=100, height=100),
        timestamp="2025-01-01T00:00:00+00:00",
        size_bytes=path.stat().st_size if write else 0,
    )


@pytest.fixture
def png_file(tmp_path: Path) -> Path:
    return write_png(tmp_path / "home-desktop-1700000000000.png")


# ============================================================================
# Analysis Fixtures
# ============================================================================


def make_analysis(
    filename: str = "home-desktop-1700000000000.png",
    viewport: str | None = "desktop",
    ai_generated: bool = True,
    issues: list[Issue] | None = None,
    description: str = "a web page with a product list",
) -> Analysis:
    return Analysis(
        filename=filename,
        page=filename.split("-")[0],
        viewport=viewport,
        timestamp="2025-01-01T00:00:00+00:00",
        ai_generated=ai_generated,
        description=description,
        confidence=0.8 if ai_generated else 0.0,
        model="test-model",
        issues=issues or [],
    )


# ============================================================================
# Mock Backends
# ============================================================================


class ScriptedBackend(CaptionBackend):
    """Caption backend that replays scripted outputs and errors in order.

    ``loadable`` lists the model names ``load`` accepts (all when None).
    Once the script is exhausted the last entry repeats.
    """

    name = "scripted"
    downloads_models = True

    def __init__(self, script: list[Any] | None = None, loadable: list[str] | None = None):
        super().__init__()
        self.script = list(script or [[{"generated_text": "a web page"}]])
        self.loadable = loadable
        self.load_calls: list[str] = []
        self.generate_calls: list[tuple[str, Path]] = []

    def load(self, model_name: str) -> None:
        self.load_calls.append(model_name)
        if self.loadable is not None and model_name not in self.loadable:
            raise OSError(f"cannot load {model_name}")
        self.model_name = model_name

    async def generate(self, image_path: Path) -> Any:
        self.generate_calls.append((self.model_name, Path(image_path)))
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def scripted_backend() -> ScriptedBackend:
    return ScriptedBackend()
