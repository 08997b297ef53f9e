"""
Harvester Feed Scraper
Scroll-and-collect loop over an infinitely scrolling news feed.
"""

import asyncio
import logging
import sqlite3
from typing import Optional, Set

from playwright.async_api import Error as PlaywrightError

from .base import BaseScraper, RunStats
from .extract import RejectedElement, extract_post
from database import store_post
from config import (
    FEED_URL,
    POST_SELECTOR,
    MAX_SCROLLS,
    SCROLL_PIXELS,
    SCROLL_DURATION_MS,
    SCROLL_DELAY_MS,
    NAVIGATION_TIMEOUT_MS,
    SELECTOR_TIMEOUT_MS,
    HEADLESS,
)

logger = logging.getLogger(__name__)

# Animates window.scrollTo linearly over `dur` ms, resolving once the target is reached
SMOOTH_SCROLL_JS = """
async ({ dist, dur }) => {
    await new Promise((resolve) => {
        const startY = window.scrollY;
        const startTime = performance.now();
        function step() {
            const progress = Math.min((performance.now() - startTime) / dur, 1);
            window.scrollTo(0, startY + dist * progress);
            if (progress < 1) {
                requestAnimationFrame(step);
            } else {
                resolve();
            }
        }
        requestAnimationFrame(step);
    });
}
"""

INSTANT_SCROLL_JS = "(dist) => window.scrollBy(0, dist)"

OUTER_HTML_JS = "(el) => el.outerHTML"


class FeedScraper(BaseScraper):
    """Scrolls a feed page and stores every new post it renders."""

    def __init__(
        self,
        url: str = FEED_URL,
        selector: str = POST_SELECTOR,
        max_scrolls: Optional[int] = MAX_SCROLLS,
        scroll_pixels: int = SCROLL_PIXELS,
        scroll_duration_ms: int = SCROLL_DURATION_MS,
        scroll_delay_ms: int = SCROLL_DELAY_MS,
        headless: bool = HEADLESS,
    ):
        """
        Initialize the feed scraper.

        Args:
            url: Feed page to open
            selector: CSS selector matching one post element
            max_scrolls: Scroll budget for the run, None for unbounded
            scroll_pixels: Distance of each scroll
            scroll_duration_ms: Scroll animation length, 0 for an instant jump
            scroll_delay_ms: Wait after each scroll for new posts to render
            headless: Whether to run the browser without a visible window
        """
        super().__init__("feed", headless=headless)
        self.url = url
        self.selector = selector
        self.max_scrolls = max_scrolls
        self.scroll_pixels = scroll_pixels
        self.scroll_duration_ms = scroll_duration_ms
        self.scroll_delay_ms = scroll_delay_ms

    async def _open_feed(self):
        """Navigate to the feed and wait for the first posts. Failures here end the run."""
        logger.info(f"Navigating to {self.url}...")
        await self.page.goto(self.url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
        logger.info("Page loaded. Waiting for initial posts...")
        await self.page.wait_for_selector(self.selector, state="visible", timeout=SELECTOR_TIMEOUT_MS)
        logger.info("Initial content detected. Starting scroll and collect loop...")

    async def _collect(self, element, seen_ids: Set[str], stats: RunStats):
        """Extract one element and store it if it's new for this run."""
        stats.elements += 1

        try:
            html = await element.evaluate(OUTER_HTML_JS)
        except PlaywrightError as e:
            # Element was detached by a re-render between query and read
            logger.debug(f"Error reading post element: {e}. Skipping element.")
            stats.errors += 1
            return

        result = extract_post(html, base_url=self.page.url)
        if isinstance(result, RejectedElement):
            stats.record_rejection(result.reason)
            return

        if result.external_id in seen_ids:
            stats.repeats += 1
            return

        try:
            inserted = store_post(result)
        except sqlite3.Error as e:
            # Left out of seen_ids so the next pass retries it
            logger.error(f"Error saving post {result.external_id} to DB: {e}")
            stats.errors += 1
            return

        seen_ids.add(result.external_id)
        if inserted:
            stats.inserted += 1
            logger.debug(f"Saved post {result.external_id}: {result.title[:50]}")
        else:
            stats.duplicates += 1

    async def _scroll(self):
        """Scroll the viewport by the configured distance."""
        if self.scroll_duration_ms > 0:
            logger.debug(f"Smooth scrolling by {self.scroll_pixels}px over {self.scroll_duration_ms}ms")
            await self.page.evaluate(
                SMOOTH_SCROLL_JS,
                {"dist": self.scroll_pixels, "dur": self.scroll_duration_ms},
            )
        else:
            await self.page.evaluate(INSTANT_SCROLL_JS, self.scroll_pixels)

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> RunStats:
        """
        Scroll the feed and store new posts until the scroll budget is spent
        or a stop is requested.

        Args:
            stop_event: Set by the caller to stop after the current batch

        Returns:
            Counters for the run

        Raises:
            playwright.async_api.Error: If the browser can't be started, the
                feed can't be opened or no post shows up in time
        """
        stats = RunStats()
        seen_ids: Set[str] = set()
        budget = self.max_scrolls if self.max_scrolls is not None else "Infinite"

        logger.info("Starting feed scrape...")
        try:
            await self._initialize_browser()
            await self._open_feed()

            while self.max_scrolls is None or stats.iterations < self.max_scrolls:
                if stop_event is not None and stop_event.is_set():
                    logger.info("Stop requested, leaving scroll loop")
                    break

                stats.iterations += 1
                logger.info(f"Scroll attempt #{stats.iterations}/{budget}")

                elements = await self.page.query_selector_all(self.selector)
                logger.info(f"Found {len(elements)} potential post elements in current view")

                inserted_before = stats.inserted
                for element in elements:
                    await self._collect(element, seen_ids, stats)
                logger.info(f"Stored {stats.inserted - inserted_before} new posts in this batch")

                await self._scroll()

                logger.debug(f"Waiting {self.scroll_delay_ms / 1000}s for new content...")
                if await self._wait_for_stop(stop_event, self.scroll_delay_ms / 1000):
                    logger.info("Stop requested, leaving scroll loop")
                    break

            else:
                logger.info(f"Reached max scrolls ({self.max_scrolls})")

        finally:
            await self.close()
            logger.info(
                f"Feed scrape finished. Unique posts handled this run: {len(seen_ids)} | "
                f"stats: {stats.as_dict()}"
            )

        return stats
