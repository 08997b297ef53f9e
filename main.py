"""
Harvester - Feed and Places Scraper
Main entry point: HTTP service and foreground scrape runs.
"""

import sys
import signal
import asyncio
import logging
import argparse
import sqlite3

from config import LOG_FILE, SERVER_HOST, SERVER_PORT, MAX_SCROLLS, HEADLESS
from database import ensure_schema

logger = logging.getLogger("Harvester")


def setup_logging(level: int = logging.INFO):
    """Log to the configured file and to stdout."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(LOG_FILE),
            logging.StreamHandler(sys.stdout),
        ],
    )


def install_stop_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event):
    """First Ctrl+C requests a graceful stop, the second one forces exit."""

    def signal_handler():
        if stop_event.is_set():
            # Second Ctrl+C = force exit immediately
            logger.info("Force exit...")
            sys.exit(1)
        logger.info("Shutdown signal received, stopping after current batch... (press Ctrl+C again to force)")
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, signal_handler)
        except NotImplementedError:
            # Windows event loops don't support signal handlers; Ctrl+C raises KeyboardInterrupt instead
            pass


async def run_scraper(scraper) -> int:
    """
    Run one scraper in the foreground until it finishes or is interrupted.

    Returns:
        Process exit code
    """
    logger.info("Initializing database...")
    ensure_schema()

    stop_event = asyncio.Event()
    install_stop_handlers(asyncio.get_running_loop(), stop_event)

    stats = await scraper.run(stop_event)
    logger.info(f"Run complete: {stats.as_dict()}")
    return 0


def serve(host: str, port: int) -> int:
    """Run the HTTP service."""
    import uvicorn
    from server import create_app

    logger.info(f"Server listening at http://{host}:{port}")
    uvicorn.run(create_app(), host=host, port=port, log_config=None)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Harvester - feed and places scraper")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Serve stored records and the scrape control endpoints")
    serve_parser.add_argument("--host", default=SERVER_HOST, help="Interface to bind")
    serve_parser.add_argument("--port", type=int, default=SERVER_PORT, help="Port to listen on")

    scrape_parser = subparsers.add_parser("scrape", help="Run the feed scroll-and-collect loop once")
    scrape_parser.add_argument(
        "--max-scrolls",
        type=int,
        default=MAX_SCROLLS,
        help="Scroll budget (0 for unbounded)",
    )
    scrape_parser.add_argument(
        "--headless",
        action=argparse.BooleanOptionalAction,
        default=HEADLESS,
        help="Run the browser without a visible window",
    )

    places_parser = subparsers.add_parser("places", help="Look up the configured search terms once")
    places_parser.add_argument(
        "--headless",
        action=argparse.BooleanOptionalAction,
        default=HEADLESS,
        help="Run the browser without a visible window",
    )
    places_parser.add_argument("terms", nargs="*", help="Search terms (defaults to SEARCH_TERMS)")

    return parser


def main(argv=None) -> int:
    """Entry point with argument parsing."""
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.debug else logging.INFO)

    if args.command == "serve":
        return serve(args.host, args.port)

    from scrapers import FeedScraper, PlacesScraper

    if args.command == "scrape":
        max_scrolls = args.max_scrolls or None
        scraper = FeedScraper(max_scrolls=max_scrolls, headless=args.headless)
    else:
        scraper = PlacesScraper(search_terms=args.terms or None, headless=args.headless)

    try:
        return asyncio.run(run_scraper(scraper))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 130
    except sqlite3.Error as e:
        logger.error(f"Database unavailable: {e}", exc_info=True)
        return 1
    except Exception as e:
        logger.error(f"Scrape failed: {e}", exc_info=True)
        return 1
    finally:
        logger.info("Harvester stopped")


if __name__ == "__main__":
    sys.exit(main())
