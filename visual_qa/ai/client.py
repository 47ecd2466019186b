"""Caption client: owns one caption backend and the model it has loaded."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from visual_qa.ai.backends import CaptionBackend, candidate_models, create_backend
from visual_qa.errors import ImageNotFound, InferenceError, ModelInitError, ModelUnavailable
from visual_qa.models.analysis import NO_CAPTION
from visual_qa.models.config import AnalyzerConfig
from visual_qa.utils.retry import RetryPolicy, Sleep, retry_async

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptionResult:
    text: str
    confidence: float
    model: str


def parse_caption_output(output: Any, model: str) -> CaptionResult:
    """Pick the top caption out of a backend's raw output."""
    first = output[0] if isinstance(output, list) and output else output
    # Batched pipelines nest one list per input image
    if isinstance(first, list):
        first = first[0] if first else None
    if not isinstance(first, dict):
        return CaptionResult(NO_CAPTION, 0.0, model)

    text = str(first.get("generated_text") or "").strip()
    if not text:
        return CaptionResult(NO_CAPTION, 0.0, model)

    try:
        score = float(first.get("score") or 0.0)
    except (TypeError, ValueError):
        score = 0.0
    return CaptionResult(text, min(max(score, 0.0), 1.0), model)


class CaptionClient:
    """Captions screenshots through a backend, with model fallback and retries.

    ``initialize()`` loads the first candidate model that works and is safe
    to call repeatedly. ``caption()`` initializes on first use.
    """

    def __init__(
        self,
        backend: CaptionBackend,
        candidates: list[str],
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        if not candidates:
            raise ValueError("At least one candidate model is required")
        self.backend = backend
        self.candidates = list(candidates)
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._model: Optional[str] = None
        self._index = -1
        self._call_count = 0

    @classmethod
    def from_config(cls, config: AnalyzerConfig, sleep: Sleep = asyncio.sleep) -> "CaptionClient":
        policy = RetryPolicy(
            max_retries=config.max_retries,
            delay_seconds=config.retry_delay_ms / 1000,
        )
        return cls(create_backend(config), candidate_models(config), policy, sleep)

    @property
    def model_name(self) -> Optional[str]:
        return self._model

    @property
    def initialized(self) -> bool:
        return self._model is not None

    @property
    def call_count(self) -> int:
        return self._call_count

    def initialize(self) -> str:
        """Load the first candidate model that works. Cached after success."""
        if self._model is None:
            self._model = self._load_from(0)
        return self._model

    def _load_from(self, start: int) -> str:
        last_error: Optional[Exception] = None
        for index in range(start, len(self.candidates)):
            name = self.candidates[index]
            logger.info("Attempting to load caption model: %s (%s backend)", name, self.backend.name)
            try:
                self.backend.load(name)
            except Exception as e:
                logger.warning("Failed to load %s: %s", name, e)
                last_error = e
                continue
            self._index = index
            return name
        raise ModelInitError(
            f"All model attempts failed. Last error: {last_error}"
        ) from last_error

    async def caption(self, image_path: str | Path) -> CaptionResult:
        """Caption one image. Raises ImageError, InferenceError or ModelInitError."""
        self.initialize()
        path = Path(image_path)
        if not path.is_file():
            raise ImageNotFound(f"Image file not found: {path}")

        while True:
            self._call_count += 1
            start = time.time()
            try:
                output = await retry_async(
                    lambda: self.backend.generate(path),
                    self.retry_policy,
                    sleep=self._sleep,
                    label=f"Captioning {path.name} with {self._model}",
                )
            except ModelUnavailable as e:
                self._switch_to_next_model(e)
                continue
            logger.debug("Inference for %s completed in %.0fms", path.name, (time.time() - start) * 1000)
            return parse_caption_output(output, self._model)

    def _switch_to_next_model(self, error: InferenceError) -> None:
        if self._index + 1 >= len(self.candidates):
            raise error
        logger.warning("All retries failed for %s, trying next model", self._model)
        try:
            self._model = self._load_from(self._index + 1)
        except ModelInitError:
            raise error from None

    def prefetch(self, models: Optional[list[str]] = None) -> list[str]:
        """Download and cache models ahead of a run. Returns the ones that loaded.

        Remote backends keep no local weights, so there is nothing to fetch.
        """
        if not self.backend.downloads_models:
            logger.info("The %s backend serves models remotely; nothing to pre-download", self.backend.name)
            return []
        loaded = []
        for name in models or self.candidates:
            start = time.time()
            try:
                self.backend.load(name)
            except Exception as e:
                logger.warning("Failed to pre-download %s: %s", name, e)
                continue
            logger.info("%s downloaded and cached (%.0fs)", name, time.time() - start)
            loaded.append(name)
        # The backend now holds whichever model loaded last
        self._model = None
        self._index = -1
        return loaded
