"""
Harvester Places Scraper
Looks up a list of search terms on a map search page and stores the primary result.
"""

import asyncio
import logging
import random
from typing import List, Optional
from urllib.parse import quote

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from .base import BaseScraper, RunStats
from .extract import parse_coordinates, guess_country
from database import Place, store_place
from config import (
    MAPS_SEARCH_URL,
    SEARCH_TERMS,
    PLACES_DELAY_MIN,
    PLACES_DELAY_MAX,
    HEADLESS,
)

logger = logging.getLogger(__name__)

# These selectors track the map site's current markup and are likely to need updates
RESULTS_PANEL_SELECTOR = 'div[role="main"]'
NAME_SELECTOR = f"{RESULTS_PANEL_SELECTOR} h1"
ADDRESS_SELECTOR = (
    f'{RESULTS_PANEL_SELECTOR} [data-item-id="address"], '
    f'{RESULTS_PANEL_SELECTOR} button[data-tooltip*="address"] > div > div:nth-child(1)'
)
PHONE_SELECTOR = (
    f'{RESULTS_PANEL_SELECTOR} [data-item-id*="phone"], '
    f'{RESULTS_PANEL_SELECTOR} button[data-tooltip*="phone"] > div > div:nth-child(1)'
)
CATEGORY_SELECTOR = f'{RESULTS_PANEL_SELECTOR} button[jsaction*="category"]'

NOT_AVAILABLE = "N/A"


class PlacesScraper(BaseScraper):
    """Scraper for map search results (one place per search term)."""

    def __init__(
        self,
        search_terms: Optional[List[str]] = None,
        search_url: str = MAPS_SEARCH_URL,
        delay_min: float = PLACES_DELAY_MIN,
        delay_max: float = PLACES_DELAY_MAX,
        headless: bool = HEADLESS,
    ):
        super().__init__("places", headless=headless)
        self.search_terms = list(search_terms if search_terms is not None else SEARCH_TERMS)
        self.search_url = search_url
        self.delay_min = delay_min
        self.delay_max = delay_max

    def _build_search_url(self, term: str) -> str:
        """Build the search URL for a term."""
        return f"{self.search_url}{quote(term)}"

    async def _text_or_none(self, selector: str, label: str, term: str) -> Optional[str]:
        """Inner text of the first match, or None if it doesn't show up."""
        try:
            text = await self.page.locator(selector).first.inner_text(timeout=5000)
        except PlaywrightError:
            logger.info(f"  Could not extract {label} for '{term}'")
            return None
        text = (text or "").strip()
        return text or None

    async def _scrape_term(self, term: str) -> Optional[Place]:
        """
        Search for one term and read the primary result.

        Returns:
            Place if a name or address was found, else None
        """
        await self.page.goto(self._build_search_url(term), wait_until="networkidle", timeout=60000)

        try:
            await self.page.wait_for_selector(RESULTS_PANEL_SELECTOR, timeout=20000)
        except PlaywrightTimeout:
            logger.info(f"Results panel ({RESULTS_PANEL_SELECTOR}) not found for '{term}'. Skipping.")
            return None

        place = Place(search_term=term)
        place.name = await self._text_or_none(NAME_SELECTOR, "name", term)
        place.address = await self._text_or_none(ADDRESS_SELECTOR, "address", term) or NOT_AVAILABLE
        place.country = guess_country(place.address)
        place.phone = await self._text_or_none(PHONE_SELECTOR, "phone number", term) or NOT_AVAILABLE
        place.category = await self._text_or_none(CATEGORY_SELECTOR, "category", term) or NOT_AVAILABLE

        # The URL gains its @lat,lng segment once the map settles
        await self.page.wait_for_timeout(1500)
        place.latitude, place.longitude = parse_coordinates(self.page.url)
        if place.latitude is None:
            logger.info(f"  Could not extract coordinates from URL for '{term}'. URL: {self.page.url}")

        logger.info(
            f"  {term}: name={place.name!r} address={place.address!r} country={place.country!r} "
            f"coords=({place.latitude}, {place.longitude})"
        )

        if not place.name and place.address == NOT_AVAILABLE:
            logger.info(f"  Skipping '{term}' due to missing name and address")
            return None
        return place

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> RunStats:
        """
        Look up every search term once.

        Args:
            stop_event: Set by the caller to stop before the next term

        Returns:
            Counters for the run (one iteration per term)
        """
        stats = RunStats()
        logger.info(f"Starting places scrape for {len(self.search_terms)} search terms...")

        try:
            await self._initialize_browser()

            for term in self.search_terms:
                if stop_event is not None and stop_event.is_set():
                    logger.info("Stop requested, skipping remaining search terms")
                    break

                stats.iterations += 1
                logger.info(f"--- Searching for: {term} ---")

                try:
                    place = await self._scrape_term(term)
                except PlaywrightTimeout as e:
                    logger.error(f"Timeout searching for '{term}': {e}")
                    stats.errors += 1
                    place = None
                except PlaywrightError as e:
                    logger.error(f"Error searching for '{term}': {e}")
                    stats.errors += 1
                    place = None
                else:
                    if place is None:
                        stats.record_rejection("no-result")

                if place is not None:
                    row_id = store_place(place)
                    stats.inserted += 1
                    logger.info(f"Stored '{place.name or term}' with ID {row_id}")

                # Delay between searches to avoid rate limiting
                delay = random.uniform(self.delay_min, self.delay_max)
                logger.debug(f"Waiting {delay:.1f}s before next search...")
                if await self._wait_for_stop(stop_event, delay):
                    logger.info("Stop requested, skipping remaining search terms")
                    break

        finally:
            await self.close()
            logger.info(f"Places scrape finished: {stats.as_dict()}")

        return stats
