"""Pre-capture UI actions performed on a loaded page."""

from __future__ import annotations

import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from visual_qa.errors import ModalOpenFailure
from visual_qa.models.config import AnalyzerConfig, PageConfig

logger = logging.getLogger(__name__)


async def open_modal(page: Page, page_config: PageConfig, config: AnalyzerConfig) -> None:
    """Click the modal trigger and wait for the modal to be shown."""
    try:
        await page.wait_for_selector(
            page_config.trigger_selector, state="visible", timeout=config.modal_timeout_ms,
        )
        await page.click(page_config.trigger_selector)
        await page.wait_for_selector(
            page_config.modal_selector, timeout=config.modal_open_timeout_ms,
        )
        # Let the open animation finish
        await page.wait_for_timeout(config.modal_settle_ms)
    except PlaywrightTimeout as e:
        raise ModalOpenFailure(
            f"Modal for '{page_config.name}' did not open in time: {e}"
        ) from e
    except PlaywrightError as e:
        raise ModalOpenFailure(
            f"Could not open modal for '{page_config.name}': {e}"
        ) from e
    logger.debug("Modal opened for %s", page_config.name)


async def perform_action(page: Page, page_config: PageConfig, config: AnalyzerConfig) -> None:
    if page_config.action == "open-modal":
        await open_modal(page, page_config, config)
