"""Tests for the HTML report."""

import re

import pytest

from conftest import make_analysis
from visual_qa.heuristics.rules import ISSUE_RULES, fallback_issues
from visual_qa.models.analysis import Issue
from visual_qa.reporter.html_report import DEFAULT_TEMPLATE, generate_html_report, render_html
from visual_qa.reporter.report_builder import build_report

PLACEHOLDER = re.compile(r"\{\{[A-Z_]+\}\}")


@pytest.fixture
def clean_report():
    analyses = [
        make_analysis("home-desktop-1.png", "desktop"),
        make_analysis("home-mobile-2.png", "mobile"),
    ]
    return build_report(analyses, "model-a", expected_total=2, generated="2025-03-04T05:06:07+00:00")


@pytest.fixture
def issue_report():
    analyses = [
        make_analysis("home-desktop-1.png", "desktop", issues=[ISSUE_RULES[0].issue]),
        make_analysis(
            "add-product-modal-mobile-2.png", "mobile", ai_generated=False,
            issues=fallback_issues("add-product-modal-mobile-2.png"),
        ),
    ]
    return build_report(analyses, "model-a", expected_total=8)


class TestTemplate:

    def test_packaged_template_has_all_placeholders(self):
        text = DEFAULT_TEMPLATE.read_text(encoding="utf-8")
        for name in (
            "GENERATED_DATE", "TOTAL_SCREENSHOTS", "AI_ANALYZED", "TOTAL_ISSUES", "SUCCESS_RATE",
            "MODEL_USED", "VIEWPORT_SELECTOR", "ISSUES_SECTION", "SCREENSHOTS_SECTION",
        ):
            assert "{{" + name + "}}" in text


class TestRenderHtml:

    def test_all_placeholders_substituted(self, issue_report):
        assert PLACEHOLDER.search(render_html(issue_report)) is None

    def test_no_issues_branch(self, clean_report):
        page = render_html(clean_report)
        assert "No issues found! UI looks good." in page
        assert 'class="issue-item' not in page

    def test_issues_grouped_by_type(self, issue_report):
        page = render_html(issue_report)
        assert "No issues found" not in page
        assert "ERROR (1)" in page
        assert "ANALYSIS (1)" in page
        assert "FUNCTIONALITY (1)" in page
        assert "severity-critical" in page

    def test_summary_numbers(self, issue_report):
        page = render_html(issue_report)
        assert '<div class="value">2</div><div class="label">Screenshots</div>' in page
        assert '<div class="value">1</div><div class="label">AI Analyzed</div>' in page
        assert '<div class="value">25%</div>' in page
        assert "model-a" in page

    def test_viewport_selector_defaults_to_desktop(self, clean_report):
        page = render_html(clean_report)
        assert '<option value="desktop" selected>Desktop</option>' in page
        assert '<option value="mobile">Mobile</option>' in page

    def test_screenshot_items_tagged_with_viewport(self, clean_report):
        page = render_html(clean_report)
        assert page.count('data-viewport="desktop"') == 1
        assert page.count('data-viewport="mobile"') == 1
        assert 'src="home-desktop-1.png"' in page

    def test_fallback_label(self, issue_report):
        page = render_html(issue_report)
        assert "AI Powered" in page
        assert "Fallback Analysis" in page

    def test_text_is_escaped(self):
        nasty = Issue(
            type="general",
            message="<script>alert(1)</script>",
            explanation="a & b",
            severity="low",
            confidence="low",
        )
        analysis = make_analysis(
            "home-desktop-1.png", description='caption with <b>tags</b> and "quotes"', issues=[nasty],
        )
        page = render_html(build_report([analysis], "<model>", expected_total=1))
        assert "<script>alert(1)</script>" not in page
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in page
        assert "&lt;b&gt;tags&lt;/b&gt;" in page
        assert "a &amp; b" in page
        assert "&lt;model&gt;" in page

    def test_placeholder_text_in_caption_is_not_expanded(self):
        analysis = make_analysis(description="literally {{TOTAL_ISSUES}}")
        page = render_html(build_report([analysis], "m", expected_total=1))
        assert "literally {{TOTAL_ISSUES}}" in page

    def test_custom_template(self, tmp_path, clean_report):
        template = tmp_path / "mini.html"
        template.write_text("<p>{{TOTAL_SCREENSHOTS}} shots, {{UNKNOWN}}</p>")
        assert render_html(clean_report, template) == "<p>2 shots, {{UNKNOWN}}</p>"


class TestGenerateHtmlReport:

    def test_writes_file(self, tmp_path, clean_report):
        path = tmp_path / "analysis-report.html"
        generate_html_report(clean_report, path)
        content = path.read_text(encoding="utf-8")
        assert content.startswith("<!DOCTYPE html>")
        assert "Visual QA Report" in content
