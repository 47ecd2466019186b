"""Keyword rules that turn a screenshot caption into probable UI issues."""

from __future__ import annotations

from dataclasses import dataclass

from visual_qa.models.analysis import Issue


@dataclass(frozen=True)
class KeywordRule:
    """Matches when a standalone phrase appears, or when any keyword appears
    together with any of the required context words (if there are any)."""
    keywords: tuple[str, ...]
    issue: Issue
    requires: tuple[str, ...] = ()
    standalone: tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        if any(phrase in text for phrase in self.standalone):
            return True
        if self.requires and not any(word in text for word in self.requires):
            return False
        return any(word in text for word in self.keywords)


ISSUE_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        keywords=("error", "failed", "broken"),
        issue=Issue(
            type="error",
            message="Error or broken elements detected in the interface",
            explanation=(
                "The caption mentions error messages, failed states, or broken UI elements. "
                "This could indicate JavaScript errors, API failures, or broken functionality."
            ),
            confidence="high",
            severity="critical",
            recommendation=(
                "Check the browser console for JavaScript errors, verify API endpoints are "
                "working, and test all interactive elements."
            ),
        ),
    ),
    KeywordRule(
        keywords=("small", "tiny", "unreadable", "hard to read"),
        issue=Issue(
            type="accessibility",
            message="Text appears to be too small or unreadable",
            explanation=(
                "Text may be too small for comfortable reading, especially on mobile devices."
            ),
            confidence="high",
            severity="high",
            recommendation=(
                "Increase font sizes, especially for body text. Use at least 16px on mobile "
                "and keep good contrast ratios."
            ),
        ),
    ),
    KeywordRule(
        keywords=("poor", "bad", "contrast"),
        requires=("color",),
        standalone=("hard to see", "blend"),
        issue=Issue(
            type="design",
            message="Poor color choices or contrast detected",
            explanation=(
                "Color combinations may have insufficient contrast or a weak visual hierarchy, "
                "which hurts readability."
            ),
            confidence="high",
            severity="medium",
            recommendation=(
                "Check colors against WCAG AA contrast ratios and increase contrast between "
                "text and background."
            ),
        ),
    ),
    KeywordRule(
        keywords=("cluttered", "crowded", "messy", "busy"),
        issue=Issue(
            type="layout",
            message="Layout appears cluttered or poorly organized",
            explanation="A crowded layout is harder to scan and navigate.",
            confidence="medium",
            severity="medium",
            recommendation=(
                "Add white space, group related elements, and reduce visual noise."
            ),
        ),
    ),
    KeywordRule(
        keywords=("small", "hard to click"),
        requires=("button",),
        issue=Issue(
            type="usability",
            message="Buttons may be too small or hard to interact with",
            explanation=(
                "Interactive elements may be difficult to tap or click, especially on touch devices."
            ),
            confidence="medium",
            severity="high",
            recommendation=(
                "Make buttons at least 44px tall on mobile and leave enough spacing between "
                "interactive elements."
            ),
        ),
    ),
    KeywordRule(
        keywords=("broken", "missing", "not loading"),
        requires=("image",),
        issue=Issue(
            type="content",
            message="Images may be broken or not loading properly",
            explanation="Broken images usually mean bad paths or missing files on the server.",
            confidence="medium",
            severity="medium",
            recommendation=(
                "Check image paths, verify the files exist on the server, and provide alt text."
            ),
        ),
    ),
)

GENERIC_NEGATIVE_TERMS = ("problem", "issue", "bad", "confusing")

GENERAL_ISSUE = Issue(
    type="general",
    message="AI detected potential usability concerns",
    explanation=(
        "The caption hints at problems that need human evaluation to pin down."
    ),
    confidence="low",
    severity="low",
    recommendation="Review the screen manually and gather user feedback.",
)

ANALYSIS_UNAVAILABLE_ISSUE = Issue(
    type="analysis",
    message="AI analysis unavailable - manual review required",
    explanation=(
        "Caption inference failed for this screenshot, so no automated findings exist."
    ),
    confidence="low",
    severity="low",
    recommendation="Review this screenshot by hand or rerun the analysis later.",
)

MOBILE_REVIEW_ISSUE = Issue(
    type="accessibility",
    message="Mobile viewport detected - verify responsive design",
    explanation="Manual verification is needed to confirm the layout works on small screens.",
    confidence="low",
    severity="low",
    recommendation="Test on real devices and verify touch targets are at least 44px.",
)

MODAL_REVIEW_ISSUE = Issue(
    type="functionality",
    message="Modal interface detected - verify proper modal behavior",
    explanation="Modal dialogs need manual checks for opening, closing and focus handling.",
    confidence="low",
    severity="low",
    recommendation=(
        "Test keyboard navigation (ESC to close), focus management and backdrop behavior."
    ),
)


def derive_issues(caption: str) -> list[Issue]:
    """Return the issues suggested by a caption, in rule order."""
    text = (caption or "").lower()
    issues = [rule.issue for rule in ISSUE_RULES if rule.matches(text)]
    if not issues and any(term in text for term in GENERIC_NEGATIVE_TERMS):
        issues.append(GENERAL_ISSUE)
    return issues


def fallback_issues(filename: str) -> list[Issue]:
    """Advisory issues for a screenshot that could not be captioned."""
    issues = [ANALYSIS_UNAVAILABLE_ISSUE]
    name = filename.lower()
    if "mobile" in name:
        issues.append(MOBILE_REVIEW_ISSUE)
    if "modal" in name:
        issues.append(MODAL_REVIEW_ISSUE)
    return issues
