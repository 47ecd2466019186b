"""Tests for report aggregation."""

from conftest import make_analysis
from visual_qa.heuristics.rules import ISSUE_RULES, derive_issues, fallback_issues
from visual_qa.reporter.report_builder import build_report

ERROR_ISSUE = ISSUE_RULES[0].issue
LAYOUT_ISSUE = ISSUE_RULES[3].issue


class TestBuildReport:

    def test_counts(self):
        analyses = [
            make_analysis("home-desktop-1.png", issues=[ERROR_ISSUE]),
            make_analysis("home-mobile-2.png", viewport="mobile"),
            make_analysis(
                "add-product-modal-tablet-3.png", viewport="tablet", ai_generated=False,
                issues=fallback_issues("add-product-modal-tablet-3.png"),
            ),
        ]
        report = build_report(analyses, "model-a", expected_total=8, generated="2025-01-01T00:00:00")

        assert report.generated == "2025-01-01T00:00:00"
        assert report.model_used == "model-a"
        assert report.total_screenshots == 3
        assert report.expected_total == 8
        assert report.success_rate == 38
        assert report.ai_analyzed == 2
        assert report.fallback_analyzed == 1
        assert report.total_issues == 3

    def test_issues_by_type_holds_each_issue_once(self):
        analyses = [
            make_analysis("a-desktop-1.png", issues=derive_issues("a broken image, cluttered and tiny")),
            make_analysis("b-desktop-2.png", issues=[ERROR_ISSUE, LAYOUT_ISSUE]),
            make_analysis("c-mobile-3.png", viewport="mobile", issues=fallback_issues("c-mobile-3.png")),
        ]
        report = build_report(analyses, "m", expected_total=3)

        assert sum(len(entries) for entries in report.issues_by_type.values()) == report.total_issues
        assert report.total_issues == sum(len(a.issues) for a in analyses)
        for issue_type, entries in report.issues_by_type.items():
            assert all(entry.type == issue_type for entry in entries)
        assert [e.filename for e in report.issues_by_type["error"]] == ["a-desktop-1.png", "b-desktop-2.png"]

    def test_no_issues(self):
        report = build_report([make_analysis(), make_analysis("home-mobile-2.png", "mobile")], "m", 2)
        assert report.total_issues == 0
        assert report.issues_by_type == {}
        assert report.success_rate == 100

    def test_grouped_by_viewport_in_first_seen_order(self):
        analyses = [
            make_analysis("home-desktop-1.png", "desktop"),
            make_analysis("home-tablet-2.png", "tablet"),
            make_analysis("cart-desktop-3.png", "desktop"),
        ]
        report = build_report(analyses, "m", 3)
        assert report.available_viewports == ["desktop", "tablet"]
        assert [a.filename for a in report.analyses_by_viewport["desktop"]] == [
            "home-desktop-1.png", "cart-desktop-3.png",
        ]

    def test_viewport_parsed_from_filename_when_missing(self):
        analyses = [
            make_analysis("add-product-modal-large-desktop-1.png", viewport=None),
            make_analysis("garbage.png", viewport=None),
        ]
        report = build_report(analyses, "m", 2, viewport_names=["desktop", "large-desktop"])
        assert report.available_viewports == ["large-desktop", "unknown"]

    def test_empty(self):
        report = build_report([], None, expected_total=8)
        assert report.total_screenshots == 0
        assert report.success_rate == 0
        assert report.model_used == ""
        assert report.available_viewports == []

    def test_zero_expected_total(self):
        assert build_report([make_analysis()], "m", expected_total=0).success_rate == 0
