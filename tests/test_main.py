"""Tests for command-line parsing and foreground runs."""

import pytest

import main
from scrapers import RunStats
from main import build_parser


def test_scrape_defaults():
    args = build_parser().parse_args(["scrape"])
    assert args.command == "scrape"
    assert args.debug is False


def test_scrape_options():
    args = build_parser().parse_args(["--debug", "scrape", "--max-scrolls", "0", "--no-headless"])
    assert args.debug is True
    assert args.max_scrolls == 0
    assert args.headless is False


def test_places_terms():
    args = build_parser().parse_args(["places", "Colosseum Rome", "Sydney Opera House"])
    assert args.terms == ["Colosseum Rome", "Sydney Opera House"]


def test_serve_port():
    args = build_parser().parse_args(["serve", "--port", "8080"])
    assert args.port == 8080


def test_command_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


class OneShotScraper:
    async def run(self, stop_event):
        stats = RunStats()
        stats.iterations = 1
        return stats


@pytest.mark.asyncio
async def test_run_scraper_prepares_schema_first(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "ensure_schema", lambda: calls.append("schema"))
    monkeypatch.setattr(main, "install_stop_handlers", lambda loop, stop_event: None)

    assert await main.run_scraper(OneShotScraper()) == 0
    assert calls == ["schema"]
