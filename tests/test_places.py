"""Tests for the places scraper: the search loop with stubbed lookups, and single lookups on a fake map page."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from database import Place, fetch_places_page
from scrapers import PlacesScraper
from scrapers.places import (
    ADDRESS_SELECTOR,
    CATEGORY_SELECTOR,
    NAME_SELECTOR,
    PHONE_SELECTOR,
)


def make_scraper(terms, results, monkeypatch):
    """PlacesScraper whose _scrape_term answers from `results` (Place, None or an exception)."""
    scraper = PlacesScraper(search_terms=terms, delay_min=0, delay_max=0)
    context = AsyncMock()

    async def fake_initialize():
        scraper.page = object()
        scraper.context = context
        scraper._initialized = True

    async def fake_scrape_term(term):
        result = results[term]
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(scraper, "_initialize_browser", fake_initialize)
    monkeypatch.setattr(scraper, "_scrape_term", fake_scrape_term)
    return scraper, context


def test_build_search_url_quotes_term():
    scraper = PlacesScraper(search_url="https://www.google.com/maps/search/")
    assert scraper._build_search_url("Colosseum Rome") == "https://www.google.com/maps/search/Colosseum%20Rome"


@pytest.mark.asyncio
async def test_run_stores_found_places_and_continues_past_errors(monkeypatch):
    terms = ["Eiffel Tower Paris", "Invalid Place Name XYZ123", "Colosseum Rome"]
    results = {
        "Eiffel Tower Paris": Place(search_term="Eiffel Tower Paris", name="Eiffel Tower", country="France"),
        "Invalid Place Name XYZ123": PlaywrightTimeout("Timeout 60000ms exceeded"),
        "Colosseum Rome": Place(search_term="Colosseum Rome", name="Colosseum"),
    }
    scraper, context = make_scraper(terms, results, monkeypatch)

    stats = await scraper.run()

    places, total = fetch_places_page(1, 10)
    assert total == 2
    assert {place.name for place in places} == {"Eiffel Tower", "Colosseum"}
    assert stats.iterations == 3
    assert stats.inserted == 2
    assert stats.errors == 1
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_counts_terms_without_result(monkeypatch):
    scraper, _ = make_scraper(["Nowhere"], {"Nowhere": None}, monkeypatch)

    stats = await scraper.run()

    assert stats.rejected["no-result"] == 1
    assert fetch_places_page(1, 10)[1] == 0


@pytest.mark.asyncio
async def test_stop_event_skips_remaining_terms(monkeypatch):
    stop_event = asyncio.Event()
    terms = ["First", "Second", "Third"]

    scraper, context = make_scraper(terms, {}, monkeypatch)

    async def stop_after_first(term):
        stop_event.set()
        return Place(search_term=term, name=term)

    monkeypatch.setattr(scraper, "_scrape_term", stop_after_first)

    stats = await scraper.run(stop_event)

    assert stats.iterations == 1
    assert fetch_places_page(1, 10)[1] == 1
    context.close.assert_awaited_once()


EIFFEL_URL = "https://www.google.com/maps/place/Tour+Eiffel/@48.8583701,2.2944813,17z"


class FakeLocator:
    def __init__(self, text):
        self.text = text

    @property
    def first(self):
        return self

    async def inner_text(self, timeout=None):
        if self.text is None:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded")
        return self.text


class FakeMapPage:
    """Map search page whose result panel shows the given texts (None = missing)."""

    def __init__(self, texts, url=EIFFEL_URL, panel_timeout=False):
        self.texts = texts
        self.url = url
        self.panel_timeout = panel_timeout
        self.visited = []

    async def goto(self, url, **kwargs):
        self.visited.append(url)

    async def wait_for_selector(self, selector, **kwargs):
        if self.panel_timeout:
            raise PlaywrightTimeout("Timeout 20000ms exceeded")

    def locator(self, selector):
        return FakeLocator(self.texts.get(selector))

    async def wait_for_timeout(self, ms):
        return None


def scraper_on(page):
    scraper = PlacesScraper(search_url="https://www.google.com/maps/search/")
    scraper.page = page
    return scraper


@pytest.mark.asyncio
async def test_scrape_term_reads_primary_result():
    page = FakeMapPage({
        NAME_SELECTOR: "Eiffel Tower",
        ADDRESS_SELECTOR: "Av. Gustave Eiffel, 75007 Paris, France",
    })

    place = await scraper_on(page)._scrape_term("Eiffel Tower Paris")

    assert page.visited == ["https://www.google.com/maps/search/Eiffel%20Tower%20Paris"]
    assert place.search_term == "Eiffel Tower Paris"
    assert place.name == "Eiffel Tower"
    assert place.country == "France"
    assert place.latitude == pytest.approx(48.8583701)
    assert place.longitude == pytest.approx(2.2944813)
    assert place.phone == "N/A"
    assert place.category == "N/A"


@pytest.mark.asyncio
async def test_scrape_term_fills_missing_address_with_na():
    page = FakeMapPage(
        {NAME_SELECTOR: "Colosseum", PHONE_SELECTOR: "+39 06 3996 7700", CATEGORY_SELECTOR: "Amphitheatre"},
        url="https://www.google.com/maps/search/Colosseum",
    )

    place = await scraper_on(page)._scrape_term("Colosseum Rome")

    assert place.name == "Colosseum"
    assert place.address == "N/A"
    assert place.country is None
    assert place.phone == "+39 06 3996 7700"
    assert place.category == "Amphitheatre"
    assert place.latitude is None and place.longitude is None


@pytest.mark.asyncio
async def test_scrape_term_skips_result_without_name_or_address():
    page = FakeMapPage({CATEGORY_SELECTOR: "Park"})

    assert await scraper_on(page)._scrape_term("Invalid Place Name XYZ123") is None


@pytest.mark.asyncio
async def test_scrape_term_skips_when_results_panel_missing():
    page = FakeMapPage({NAME_SELECTOR: "Eiffel Tower"}, panel_timeout=True)

    assert await scraper_on(page)._scrape_term("Eiffel Tower Paris") is None
