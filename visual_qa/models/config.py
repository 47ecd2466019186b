"""Configuration models for the visual QA pipeline."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CAPTION_MODELS = [
    "nlpconnect/vit-gpt2-image-captioning",
    "Salesforce/blip-image-captioning-base",
    "microsoft/git-base-coco",
]

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"


class ViewportConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    width: int
    height: int


class PageConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: str = "/"
    action: Literal["none", "open-modal"] = "none"
    trigger_selector: str = 'button[data-bs-target="#addProductModal"]'
    modal_selector: str = '#addProductModal.show, #addProductModal[style*="display: block"]'


def _default_viewports() -> list[ViewportConfig]:
    return [
        ViewportConfig(name="mobile", width=375, height=667),
        ViewportConfig(name="tablet", width=768, height=1024),
        ViewportConfig(name="desktop", width=1920, height=1080),
        ViewportConfig(name="large-desktop", width=2560, height=1440),
    ]


def _default_pages() -> list[PageConfig]:
    return [
        PageConfig(name="home", url="/"),
        PageConfig(name="add-product-modal", url="/", action="open-modal"),
    ]


# Environment variable -> (field name, type)
_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "BASE_URL": ("base_url", str),
    "SCREENSHOTS_DIR": ("output_dir", str),
    "CAPTION_BACKEND": ("caption_backend", str),
    "CAPTION_MODEL": ("caption_model", str),
    "TRANSFORMERS_MODEL": ("caption_model", str),
    "API_DELAY_MS": ("api_delay_ms", int),
    "MAX_RETRIES": ("max_retries", int),
    "RATE_LIMIT_DELAY_MS": ("rate_limit_delay_ms", int),
    "HF_API_KEY": ("hf_api_token", str),
}


class AnalyzerConfig(BaseModel):
    # Target
    base_url: str = "http://localhost:8001"
    output_dir: str = "./screenshots"
    viewports: list[ViewportConfig] = Field(default_factory=_default_viewports)
    pages: list[PageConfig] = Field(default_factory=_default_pages)

    # Capture
    navigation_timeout_ms: int = 10000
    settle_ms: int = 2000
    modal_timeout_ms: int = 5000
    modal_open_timeout_ms: int = 3000
    modal_settle_ms: int = 500
    min_screenshot_bytes: int = 1000
    server_check_retries: int = 5
    server_check_delay_ms: int = 2000
    server_check_timeout_ms: int = 5000

    # Captioning
    caption_backend: Literal["local", "hosted", "anthropic"] = "local"
    caption_model: str = DEFAULT_CAPTION_MODELS[0]
    candidate_models: list[str] = Field(default_factory=lambda: list(DEFAULT_CAPTION_MODELS))
    api_delay_ms: int = 1000
    max_retries: int = Field(default=2, ge=0)
    retry_delay_ms: int = 2000
    rate_limit_delay_ms: int = 5000
    model_loading_delay_ms: int = 10000
    hf_api_token: Optional[str] = Field(default=None, repr=False)
    inference_timeout_seconds: float = 60.0

    # Reporting
    template_path: Optional[str] = None
    open_report: bool = True

    @property
    def expected_total(self) -> int:
        return len(self.pages) * len(self.viewports)

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    def model_candidates(self) -> list[str]:
        """Requested model first, then the configured fallbacks, without duplicates."""
        ordered = [self.caption_model, *self.candidate_models]
        return list(dict.fromkeys(m for m in ordered if m))

    @classmethod
    def load(cls, path: str | Path) -> "AnalyzerConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file. The HF token is never written."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(exclude={"hf_api_token"}), f, indent=2)

    @classmethod
    def from_env(
        cls,
        base: Optional["AnalyzerConfig"] = None,
        env_file: str | Path | None = None,
    ) -> "AnalyzerConfig":
        """Overlay environment variables (and an optional .env file) on a config."""
        if env_file is not None:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv(".env")

        data = (base or cls()).model_dump()
        for env_var, (field, cast) in _ENV_OVERRIDES.items():
            raw = os.environ.get(env_var)
            if raw is None or raw == "":
                continue
            if cast is int:
                try:
                    data[field] = int(raw)
                except ValueError:
                    raise ValueError(
                        f"Environment variable '{env_var}' must be an integer, got {raw!r}"
                    ) from None
            else:
                data[field] = raw
        return cls(**data)
