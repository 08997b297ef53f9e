"""Harvester Scrapers Package"""

from .base import BaseScraper, RunStats
from .feed import FeedScraper
from .places import PlacesScraper

__all__ = ["BaseScraper", "RunStats", "FeedScraper", "PlacesScraper"]
