"""Caption backends, the model runtimes behind the caption client.

Every backend returns the raw ``[{"generated_text": ..., "score": ...}]``
list of its runtime and raises the tagged errors from ``visual_qa.errors``.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional

import anthropic
import httpx
from PIL import Image, UnidentifiedImageError

from visual_qa.ai.prompts.caption import CAPTION_SYSTEM_PROMPT, build_caption_prompt
from visual_qa.errors import (
    ImageNotFound,
    InferenceError,
    InvalidImage,
    ModelLoading,
    ModelUnavailable,
    RateLimited,
)
from visual_qa.models.config import DEFAULT_ANTHROPIC_MODEL, AnalyzerConfig

logger = logging.getLogger(__name__)

HF_INFERENCE_URL = "https://api-inference.huggingface.co/models/{model}"


class CaptionBackend(ABC):
    """A model runtime that can load a named model and caption one image."""

    name: str = "backend"
    # True when load() fetches weights into a local cache
    downloads_models: bool = False

    def __init__(self) -> None:
        self.model_name: Optional[str] = None

    @abstractmethod
    def load(self, model_name: str) -> None:
        """Make ``model_name`` the active model. Raises on failure."""

    @abstractmethod
    async def generate(self, image_path: Path) -> Any:
        """Caption one image with the active model."""


# ----------------------------------------------------------------------
# Local transformers pipeline
# ----------------------------------------------------------------------


def _transformers_pipeline(model_name: str):
    """Build a Hugging Face image-to-text pipeline (downloads and caches weights)."""
    from transformers import pipeline

    return pipeline("image-to-text", model=model_name)


def _open_image(image_path: Path) -> Image.Image:
    try:
        with Image.open(image_path) as img:
            return img.convert("RGB")
    except FileNotFoundError as e:
        raise ImageNotFound(f"Image file not found: {image_path}") from e
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImage(f"Invalid image format: {image_path}") from e


class LocalPipelineBackend(CaptionBackend):
    """Runs a transformers image-to-text pipeline in-process."""

    name = "local"
    downloads_models = True

    def __init__(self, pipeline_factory: Optional[Callable[[str], Any]] = None):
        super().__init__()
        self._factory = pipeline_factory or _transformers_pipeline
        self._pipeline = None

    def load(self, model_name: str) -> None:
        logger.info("Loading image captioning pipeline: %s (first run downloads weights)", model_name)
        start = time.time()
        self._pipeline = self._factory(model_name)
        self.model_name = model_name
        logger.info("Pipeline loaded: %s (%.1fs)", model_name, time.time() - start)

    async def generate(self, image_path: Path) -> Any:
        if self._pipeline is None:
            raise InferenceError("Pipeline not loaded", retryable=False)
        image = _open_image(image_path)
        try:
            return await asyncio.to_thread(self._pipeline, image)
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e


# ----------------------------------------------------------------------
# Hosted Hugging Face inference API
# ----------------------------------------------------------------------


class HostedInferenceBackend(CaptionBackend):
    """Posts the image to the hosted inference API with a bearer token."""

    name = "hosted"

    def __init__(
        self,
        api_token: Optional[str],
        timeout: float = 60.0,
        rate_limit_delay: float = 5.0,
        model_loading_delay: float = 10.0,
        endpoint: str = HF_INFERENCE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self.api_token = api_token
        self.timeout = timeout
        self.rate_limit_delay = rate_limit_delay
        self.model_loading_delay = model_loading_delay
        self.endpoint = endpoint
        self._transport = transport

    def load(self, model_name: str) -> None:
        if not self.api_token:
            raise EnvironmentError(
                "HF_API_KEY environment variable is not set. "
                "It is required for the hosted inference backend."
            )
        self.model_name = model_name

    async def generate(self, image_path: Path) -> Any:
        try:
            data = Path(image_path).read_bytes()
        except FileNotFoundError as e:
            raise ImageNotFound(f"Image file not found: {image_path}") from e

        url = self.endpoint.format(model=self.model_name)
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "image/png",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, content=data, headers=headers)
        except httpx.TransportError as e:
            raise InferenceError(f"Connectivity issue: {e}") from e

        status = response.status_code
        if status == 404:
            raise ModelUnavailable(f"Model not found: {self.model_name}")
        if status == 429:
            raise RateLimited(
                "Rate limit exceeded, please wait before retrying",
                retry_after=self.rate_limit_delay,
            )
        if status == 503:
            raise ModelLoading(
                "Model is loading, please try again in a few seconds",
                retry_after=self.model_loading_delay,
            )
        if status != 200:
            raise InferenceError(
                f"API error: {status} - {response.text[:200]}",
                retryable=status >= 500,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise InferenceError(f"Invalid JSON response: {response.text[:200]}") from e
        if isinstance(payload, dict) and payload.get("error"):
            raise InferenceError(f"API error: {payload['error']}")
        return payload


# ----------------------------------------------------------------------
# Claude vision
# ----------------------------------------------------------------------


class AnthropicCaptionBackend(CaptionBackend):
    """Captions screenshots with a Claude vision model."""

    name = "anthropic"

    def __init__(
        self,
        max_tokens: int = 200,
        timeout: float = 60.0,
        rate_limit_delay: float = 5.0,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        super().__init__()
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.rate_limit_delay = rate_limit_delay
        self.client = client

    def load(self, model_name: str) -> None:
        if self.client is None:
            api_key = os.environ.get("ANTHROPIC_API_KEY")
            if not api_key:
                raise EnvironmentError(
                    "ANTHROPIC_API_KEY environment variable is not set. "
                    "It is required for the anthropic caption backend."
                )
            self.client = anthropic.AsyncAnthropic(api_key=api_key, timeout=self.timeout)
        self.model_name = model_name

    async def generate(self, image_path: Path) -> Any:
        image_path = Path(image_path)
        try:
            image_b64 = base64.b64encode(image_path.read_bytes()).decode()
        except FileNotFoundError as e:
            raise ImageNotFound(f"Image file not found: {image_path}") from e

        try:
            response = await self.client.messages.create(
                model=self.model_name,
                max_tokens=self.max_tokens,
                system=CAPTION_SYSTEM_PROMPT,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": "image/png",
                                    "data": image_b64,
                                },
                            },
                            {"type": "text", "text": build_caption_prompt()},
                        ],
                    }
                ],
            )
        except anthropic.RateLimitError as e:
            raise RateLimited(str(e), retry_after=self.rate_limit_delay) from e
        except anthropic.NotFoundError as e:
            raise ModelUnavailable(f"Model not found: {self.model_name}") from e
        except anthropic.APIConnectionError as e:
            raise InferenceError(f"Connectivity issue: {e}") from e
        except anthropic.APIStatusError as e:
            raise InferenceError(f"Claude API error: {e}", retryable=e.status_code >= 500) from e

        text = response.content[0].text.strip() if response.content else ""
        return [{"generated_text": text}]


def candidate_models(config: AnalyzerConfig) -> list[str]:
    """Model names to try, in order, for the configured backend."""
    if config.caption_backend == "anthropic":
        if config.caption_model.startswith("claude"):
            return [config.caption_model]
        return [DEFAULT_ANTHROPIC_MODEL]
    return config.model_candidates()


def create_backend(config: AnalyzerConfig) -> CaptionBackend:
    """Build the backend selected by ``config.caption_backend``."""
    if config.caption_backend == "hosted":
        return HostedInferenceBackend(
            api_token=config.hf_api_token,
            timeout=config.inference_timeout_seconds,
            rate_limit_delay=config.rate_limit_delay_ms / 1000,
            model_loading_delay=config.model_loading_delay_ms / 1000,
        )
    if config.caption_backend == "anthropic":
        return AnthropicCaptionBackend(
            timeout=config.inference_timeout_seconds,
            rate_limit_delay=config.rate_limit_delay_ms / 1000,
        )
    return LocalPipelineBackend()
