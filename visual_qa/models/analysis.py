"""Analysis and report data structures."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

IssueType = Literal[
    "error",
    "accessibility",
    "design",
    "layout",
    "usability",
    "content",
    "general",
    "analysis",
    "functionality",
]
Severity = Literal["low", "medium", "high", "critical"]
Confidence = Literal["low", "medium", "high"]

NO_CAPTION = "No caption generated"
FALLBACK_DESCRIPTION = "AI analysis unavailable - using fallback analysis"


class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: IssueType
    message: str
    explanation: str = ""
    confidence: Confidence = "medium"
    severity: Severity = "medium"
    recommendation: str = ""


class Analysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    page: Optional[str] = None
    viewport: Optional[str] = None
    timestamp: str
    ai_generated: bool
    description: str = NO_CAPTION
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    model: Optional[str] = None
    issues: list[Issue] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class IssueEntry(BaseModel):
    """An issue flattened together with the screenshot it was found in."""
    filename: str
    type: IssueType
    message: str
    explanation: str = ""
    confidence: Confidence = "medium"
    severity: Severity = "medium"
    recommendation: str = ""

    @classmethod
    def from_issue(cls, filename: str, issue: Issue) -> "IssueEntry":
        return cls(filename=filename, **issue.model_dump())


class Report(BaseModel):
    generated: str
    model_used: str = ""
    total_screenshots: int = 0
    expected_total: int = 0
    success_rate: int = 0
    ai_analyzed: int = 0
    fallback_analyzed: int = 0
    total_issues: int = 0
    analyses: list[Analysis] = Field(default_factory=list)
    issues_by_type: dict[str, list[IssueEntry]] = Field(default_factory=dict)
    analyses_by_viewport: dict[str, list[Analysis]] = Field(default_factory=dict)
    available_viewports: list[str] = Field(default_factory=list)
