"""Capture data structures produced by the screenshot capturer."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from visual_qa.models.config import ViewportConfig


class CaptureResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    path: str  # absolute file path
    page: str
    viewport: ViewportConfig
    timestamp: str  # ISO timestamp
    size_bytes: int = 0


class CaptureSummary(BaseModel):
    total_size_kb: int = 0
    average_size_kb: int = 0
    pages_captured: list[str] = Field(default_factory=list)
    viewports_captured: list[str] = Field(default_factory=list)


class CaptureManifest(BaseModel):
    """Contents of metadata.json."""
    generated: str
    total: int = 0
    expected_total: int = 0
    success_rate: int = 0  # percent of expected_total
    screenshots: list[CaptureResult] = Field(default_factory=list)
    summary: CaptureSummary = Field(default_factory=CaptureSummary)

    @classmethod
    def from_captures(
        cls, captures: list[CaptureResult], expected_total: int, generated: str
    ) -> "CaptureManifest":
        total_bytes = sum(c.size_bytes for c in captures)
        summary = CaptureSummary(
            total_size_kb=round(total_bytes / 1024),
            average_size_kb=round(total_bytes / 1024 / len(captures)) if captures else 0,
            pages_captured=list(dict.fromkeys(c.page for c in captures)),
            viewports_captured=list(dict.fromkeys(c.viewport.name for c in captures)),
        )
        return cls(
            generated=generated,
            total=len(captures),
            expected_total=expected_total,
            success_rate=success_rate(len(captures), expected_total),
            screenshots=captures,
            summary=summary,
        )


def success_rate(count: int, expected: int) -> int:
    """Percentage of the expected total, rounded to an int."""
    if expected <= 0:
        return 0
    return round(count / expected * 100)
