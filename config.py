"""
Harvester Configuration
Loads settings from environment variables and defines constants.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base directory (where this script lives)
BASE_DIR = Path(__file__).parent.resolve()


def _optional_int(value: str):
    """Parse an optional limit; empty, 'none' or 0 mean unbounded."""
    value = (value or "").strip().lower()
    if value in ("", "none", "null", "0"):
        return None
    return int(value)


# File paths
DATABASE_FILE = BASE_DIR / os.getenv("DATABASE_FILE", "harvester.db")
LOG_FILE = BASE_DIR / os.getenv("LOG_FILE", "harvester.log")

# Browser settings
HEADLESS = os.getenv("HEADLESS", "true").lower() == "true"
DEFAULT_TIMEOUT_MS = int(os.getenv("DEFAULT_TIMEOUT_MS", "60000"))
NAVIGATION_TIMEOUT_MS = int(os.getenv("NAVIGATION_TIMEOUT_MS", "90000"))
SELECTOR_TIMEOUT_MS = int(os.getenv("SELECTOR_TIMEOUT_MS", "30000"))

# Feed scraper
FEED_URL = os.getenv("FEED_URL", "https://www.reddit.com/r/all/")
POST_SELECTOR = os.getenv("POST_SELECTOR", "shreddit-post, div[data-testid='post-container']")
SCROLL_PIXELS = int(os.getenv("SCROLL_PIXELS", "500"))
SCROLL_DURATION_MS = int(os.getenv("SCROLL_DURATION_MS", "750"))  # 0 = instant scroll
SCROLL_DELAY_MS = int(os.getenv("SCROLL_DELAY_MS", "3000"))
MAX_SCROLLS = _optional_int(os.getenv("MAX_SCROLLS", "100"))

# Places (map search) scraper
MAPS_SEARCH_URL = os.getenv("MAPS_SEARCH_URL", "https://www.google.com/maps/search/")
PLACES_DELAY_MIN = float(os.getenv("PLACES_DELAY_MIN", "1.0"))
PLACES_DELAY_MAX = float(os.getenv("PLACES_DELAY_MAX", "3.0"))

# Search terms for the places scraper
SEARCH_TERMS = [
    "Eiffel Tower Paris",
    "Statue of Liberty New York",
    "British Museum London",
    "Colosseum Rome",
    "Sydney Opera House",
    "Central Park New York",
]
if os.getenv("SEARCH_TERMS"):
    SEARCH_TERMS = [term.strip() for term in os.getenv("SEARCH_TERMS").split(",") if term.strip()]

# HTTP server
SERVER_HOST = os.getenv("SERVER_HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("SERVER_PORT", "3000"))
PAGE_SIZE = int(os.getenv("PAGE_SIZE", "5"))
POSTS_VIEW_LIMIT = int(os.getenv("POSTS_VIEW_LIMIT", "200"))

# User agent for the browser context
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Chromium launch flags
BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
]
