"""Best-effort product page scraping with a headless browser."""

from __future__ import annotations

import time
from typing import Protocol

import structlog
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from ..config import EnrichmentConfig
from ..errors import EnrichError


class Enricher(Protocol):
    """Anything able to turn a product URL into extra document attributes."""

    def enrich(self, url: str) -> dict[str, str]:
        """Return attribute -> text, raising EnrichError on failure."""


class PageEnricher:
    """Render a product page in Chromium and read its specification and category.

    Each call runs its own Playwright instance: the sync API is bound to the
    thread that started it and calls arrive from pool worker threads.
    """

    def __init__(
        self,
        config: EnrichmentConfig,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("catalog_sync.enricher")

    def enrich(self, url: str) -> dict[str, str]:
        if not url:
            raise EnrichError("Product has no link to enrich from")
        deadline = time.monotonic() + self.config.timeout

        def _remaining_ms() -> float:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise EnrichError(f"Timed out after {self.config.timeout}s enriching {url}")
            return remaining * 1000

        try:
            with sync_playwright() as playwright:
                browser = playwright.chromium.launch(headless=self.config.headless)
                try:
                    page = browser.new_page()
                    page.goto(url, wait_until="domcontentloaded", timeout=_remaining_ms())
                    specification = page.locator(self.config.specification_selector).first.inner_text(
                        timeout=_remaining_ms()
                    )
                    category = page.locator(self.config.category_selector).first.inner_text(
                        timeout=_remaining_ms()
                    )
                finally:
                    browser.close()
        except PlaywrightError as exc:
            raise EnrichError(f"Failed to fetch specification from {url}: {exc}") from exc
        return {
            "specification": specification.strip(),
            "category": category.strip(),
        }


__all__ = ["Enricher", "PageEnricher"]
