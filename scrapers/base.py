"""
Harvester Base Scraper
Abstract base class for browser-driven scrapers.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from playwright.async_api import async_playwright
from playwright_stealth import Stealth

from config import HEADLESS, USER_AGENT, BROWSER_ARGS, DEFAULT_TIMEOUT_MS

logger = logging.getLogger(__name__)


@dataclass
class RunStats:
    """Counters collected during one scrape run."""
    iterations: int = 0
    elements: int = 0
    inserted: int = 0
    duplicates: int = 0  # already in the database
    repeats: int = 0  # already handled earlier in this run
    errors: int = 0
    rejected: Counter = field(default_factory=Counter)

    def record_rejection(self, reason: str):
        self.rejected[reason] += 1

    def as_dict(self) -> dict:
        return {
            "iterations": self.iterations,
            "elements": self.elements,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "repeats": self.repeats,
            "errors": self.errors,
            "rejected": dict(self.rejected),
        }


class BaseScraper(ABC):
    """Abstract base class for scrapers that own one browser session per run."""

    def __init__(self, platform: str, headless: bool = HEADLESS):
        """
        Initialize the scraper.

        Args:
            platform: Source identifier used in logs (e.g., 'feed', 'places')
            headless: Whether to run the browser without a visible window
        """
        self.platform = platform
        self.headless = headless
        self.playwright = None
        self.browser = None
        self.context = None
        self.page = None
        self._initialized = False

    async def _initialize_browser(self):
        """Launch Chromium and open a stealth-patched page."""
        if self._initialized:
            return

        logger.info(f"Initializing {self.platform} browser (headless={self.headless})...")

        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(
            headless=self.headless,
            args=BROWSER_ARGS,
        )
        self.context = await self.browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=USER_AGENT,
            locale="en-US",
        )
        self.page = await self.context.new_page()
        self.page.set_default_timeout(DEFAULT_TIMEOUT_MS)

        # Apply stealth to avoid detection
        await Stealth().apply_stealth_async(self.page)

        self._initialized = True
        logger.info(f"{self.platform} browser initialized")

    @staticmethod
    async def _wait_for_stop(stop_event: Optional[asyncio.Event], seconds: float) -> bool:
        """
        Sleep for up to `seconds`, returning early when a stop is requested.

        Returns:
            True if the stop event was set
        """
        if stop_event is None:
            await asyncio.sleep(seconds)
            return False
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        return stop_event.is_set()

    @abstractmethod
    async def run(self, stop_event: Optional[asyncio.Event] = None) -> RunStats:
        """
        Perform one scrape run.

        Args:
            stop_event: Set by the caller to request a graceful stop

        Returns:
            Counters for the run
        """
        pass

    async def close(self):
        """Close browser and clean up. Each handle is released even if an earlier one fails."""
        for name in ("context", "browser"):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.error(f"Error closing {self.platform} {name}: {e}")
            setattr(self, name, None)

        if self.playwright:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.error(f"Error stopping playwright for {self.platform}: {e}")
            self.playwright = None

        self.page = None
        self._initialized = False
        logger.info(f"{self.platform} browser closed")
