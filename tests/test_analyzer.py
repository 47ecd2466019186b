"""Tests for the screenshot analyzer."""

from unittest.mock import AsyncMock, call

import pytest

from conftest import ScriptedBackend, make_capture
from visual_qa.ai.client import CaptionClient
from visual_qa.analyzer.analyzer import ScreenshotAnalyzer, group_by_viewport
from visual_qa.errors import InferenceError, InvalidImage, ModelInitError
from visual_qa.models.analysis import FALLBACK_DESCRIPTION
from visual_qa.utils.retry import RetryPolicy

ALL_VIEWPORTS = ["mobile", "tablet", "desktop", "large-desktop"]


def _captures(directory, pages=("home", "add-product-modal"), viewports=ALL_VIEWPORTS):
    return [
        make_capture(directory, page=p, viewport=v, millis=1700000000000 + i)
        for i, (p, v) in enumerate((p, v) for p in pages for v in viewports)
    ]


def _analyzer(backend, config, sleep, candidates=("model-a",)):
    client = CaptionClient(backend, list(candidates), RetryPolicy(max_retries=0), sleep=sleep)
    return ScreenshotAnalyzer(client, config, sleep=sleep)


class TestGroupByViewport:

    def test_priority_order(self, tmp_path):
        groups = group_by_viewport(_captures(tmp_path))
        assert [name for name, _ in groups] == ["desktop", "tablet", "mobile", "large-desktop"]
        assert all(len(items) == 2 for _, items in groups)

    def test_unknown_viewports_last(self, tmp_path):
        captures = _captures(tmp_path, pages=("home",), viewports=["watch", "mobile"])
        assert [name for name, _ in group_by_viewport(captures)] == ["mobile", "watch"]


class TestAnalyzeAll:

    @pytest.mark.asyncio
    async def test_one_analysis_per_capture(self, tmp_path, analyzer_config, no_sleep):
        backend = ScriptedBackend([[{"generated_text": "a clean product grid", "score": 0.6}]])
        analyzer = _analyzer(backend, analyzer_config, no_sleep)

        analyses = await analyzer.analyze_all(_captures(tmp_path))

        assert len(analyses) == 8
        assert all(a.ai_generated for a in analyses)
        assert all(a.issues == [] for a in analyses)
        assert [a.viewport for a in analyses[:2]] == ["desktop", "desktop"]
        assert analyses[0].model == "model-a"
        assert analyses[0].confidence == 0.6

    @pytest.mark.asyncio
    async def test_issues_and_suggestions_from_caption(self, tmp_path, analyzer_config, no_sleep):
        backend = ScriptedBackend([[{"generated_text": "The page shows a broken error message"}]])
        analyzer = _analyzer(backend, analyzer_config, no_sleep)

        analyses = await analyzer.analyze_all(_captures(tmp_path, pages=("home",), viewports=["desktop"]))

        issue = analyses[0].issues[0]
        assert (issue.type, issue.severity) == ("error", "critical")
        assert analyses[0].suggestions == [issue.recommendation]

    @pytest.mark.asyncio
    async def test_inference_failure_falls_back(self, tmp_path, analyzer_config, no_sleep):
        backend = ScriptedBackend([InferenceError("service down")])
        analyzer = _analyzer(backend, analyzer_config, no_sleep)
        captures = _captures(tmp_path, pages=("home",), viewports=["mobile"])

        analyses = await analyzer.analyze_all(captures)

        assert len(analyses) == 1
        fallback = analyses[0]
        assert fallback.ai_generated is False
        assert fallback.description == FALLBACK_DESCRIPTION
        assert fallback.confidence == 0.0
        assert [i.type for i in fallback.issues] == ["analysis", "accessibility"]

    @pytest.mark.asyncio
    async def test_image_error_skips_capture(self, tmp_path, analyzer_config, no_sleep):
        backend = ScriptedBackend([
            InvalidImage("bad bytes"),
            [{"generated_text": "a form"}],
        ])
        analyzer = _analyzer(backend, analyzer_config, no_sleep)
        captures = _captures(tmp_path, pages=("home", "cart"), viewports=["desktop"])

        analyses = await analyzer.analyze_all(captures)

        assert [a.filename for a in analyses] == [captures[1].filename]
        assert analyzer.skipped == [captures[0].filename]

    @pytest.mark.asyncio
    async def test_missing_file_skipped(self, tmp_path, analyzer_config, no_sleep):
        analyzer = _analyzer(ScriptedBackend(), analyzer_config, no_sleep)
        ghost = make_capture(tmp_path, write=False)
        assert await analyzer.analyze_all([ghost]) == []
        assert analyzer.skipped == [ghost.filename]

    @pytest.mark.asyncio
    async def test_model_init_error_propagates(self, tmp_path, analyzer_config, no_sleep):
        analyzer = _analyzer(ScriptedBackend(loadable=[]), analyzer_config, no_sleep)
        with pytest.raises(ModelInitError):
            await analyzer.analyze_all(_captures(tmp_path, pages=("home",), viewports=["desktop"]))

    @pytest.mark.asyncio
    async def test_delays_between_images_and_groups(self, tmp_path, analyzer_config):
        sleep = AsyncMock()
        config = analyzer_config.model_copy(update={"api_delay_ms": 1000})
        analyzer = _analyzer(ScriptedBackend(), config, sleep)
        captures = _captures(tmp_path, viewports=["desktop", "mobile"])

        await analyzer.analyze_all(captures)

        # desktop: img, 1s, img | 2s | mobile: img, 1s, img
        assert sleep.await_args_list == [call(1.0), call(2.0), call(1.0)]

    @pytest.mark.asyncio
    async def test_no_delay_when_zero(self, tmp_path, analyzer_config, no_sleep):
        analyzer = _analyzer(ScriptedBackend(), analyzer_config, no_sleep)
        await analyzer.analyze_all(_captures(tmp_path))
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_input(self, analyzer_config, no_sleep):
        analyzer = _analyzer(ScriptedBackend(), analyzer_config, no_sleep)
        assert await analyzer.analyze_all([]) == []
