"""
Harvester HTTP Server
FastAPI application serving stored records and controlling scrape runs.
"""

import math
import logging
from contextlib import asynccontextmanager
from html import escape
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse

from config import PAGE_SIZE, POSTS_VIEW_LIMIT, DATABASE_FILE
from database import (
    ensure_schema,
    fetch_latest,
    fetch_posts_page,
    fetch_places_page,
    count_posts,
    count_places,
)
from scheduler import ScrapeScheduler, ScrapeInProgress
from scrapers import FeedScraper, PlacesScraper

logger = logging.getLogger(__name__)


def parse_page(value: Optional[str]) -> int:
    """Parse a 1-indexed page number; missing or invalid values mean page 1."""
    try:
        page = int(value)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def paginate(page: int, page_size: int, total: int) -> dict:
    """Build the pagination block returned next to a page of data."""
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / page_size) if page_size else 0,
        "totalItems": total,
        "itemsPerPage": page_size,
    }


async def run_feed_scrape(stop_event):
    return await FeedScraper().run(stop_event)


async def run_places_scrape(stop_event):
    return await PlacesScraper().run(stop_event)


DEFAULT_JOBS = {
    "feed": run_feed_scrape,
    "places": run_places_scrape,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare the database on startup; stop any active scrape on shutdown."""
    # Store unavailable is fatal: let the error abort startup
    logger.info(f"Initializing database at {DATABASE_FILE}...")
    ensure_schema()

    yield

    logger.info("Shutting down, stopping any active scrape...")
    await app.state.scheduler.shutdown()


def _start(request: Request, name: str) -> JSONResponse:
    scheduler: ScrapeScheduler = request.app.state.scheduler
    job = request.app.state.jobs[name]
    try:
        run = scheduler.start(name, job)
    except ScrapeInProgress as e:
        logger.warning(f"Rejected start of '{name}': {e}")
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"Received request to start '{name}' scrape")
    return JSONResponse(
        status_code=202,
        content={
            "message": f"Scrape '{name}' initiated. Progress is logged; check /status.",
            "run": run.as_dict(),
        },
    )


def create_app(scheduler: Optional[ScrapeScheduler] = None, jobs: Optional[dict] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        scheduler: Scheduler owning the scrape run token (new one if omitted)
        jobs: Mapping of run name to job coroutine function

    Returns:
        FastAPI: Configured application
    """
    app = FastAPI(title="Harvester", lifespan=lifespan)
    app.state.scheduler = scheduler or ScrapeScheduler()
    app.state.jobs = dict(jobs if jobs is not None else DEFAULT_JOBS)

    @app.get("/", response_class=HTMLResponse)
    async def control_panel(request: Request):
        running = request.app.state.scheduler.active
        status = f"Scraping in progress ({escape(running.name)})..." if running else "Idle"
        return f"""
            <h1>Harvester Control</h1>
            <p>Status: {status}</p>
            <p>Stored posts: {count_posts()} | Stored places: {count_places()}</p>
            <ul>
                <li><a href="/start-scrape">Start feed scrape</a></li>
                <li><a href="/start-places-scrape">Start places scrape</a></li>
                <li><a href="/stop-scrape">Stop active scrape</a></li>
                <li><a href="/posts">View stored posts</a></li>
                <li><a href="/records?page=1">Posts API</a> | <a href="/places?page=1">Places API</a></li>
                <li><a href="/status">Run status</a></li>
            </ul>
        """

    @app.get("/start-scrape", status_code=202)
    async def start_scrape(request: Request):
        return _start(request, "feed")

    @app.get("/start-places-scrape", status_code=202)
    async def start_places_scrape(request: Request):
        return _start(request, "places")

    @app.get("/stop-scrape")
    async def stop_scrape(request: Request):
        if not request.app.state.scheduler.stop():
            raise HTTPException(status_code=409, detail="No scrape is running")
        return {"message": "Stop requested. The run ends after its current batch."}

    @app.get("/status")
    async def status(request: Request):
        return request.app.state.scheduler.status()

    @app.get("/records")
    async def records(page: Optional[str] = Query(None)):
        current = parse_page(page)
        posts, total = fetch_posts_page(current, PAGE_SIZE)
        return {
            "data": [post.to_dict() for post in posts],
            "pagination": paginate(current, PAGE_SIZE, total),
        }

    @app.get("/places")
    async def places(page: Optional[str] = Query(None)):
        current = parse_page(page)
        rows, total = fetch_places_page(current, PAGE_SIZE)
        return {
            "data": [place.to_dict() for place in rows],
            "pagination": paginate(current, PAGE_SIZE, total),
        }

    @app.get("/posts", response_class=HTMLResponse)
    async def posts_table():
        posts = fetch_latest(POSTS_VIEW_LIMIT)
        logger.info(f"Fetched {len(posts)} posts for /posts")
        return render_posts_table(posts)

    return app


def render_posts_table(posts) -> str:
    """Render posts as a plain HTML table with escaped values."""
    rows = []
    for post in posts:
        link = f'<a href="{escape(post.link)}" target="_blank" rel="noopener noreferrer">Link</a>' if post.link else "N/A"
        rows.append(
            "<tr>"
            f"<td>{post.id}</td>"
            f"<td>{escape(post.external_id)}</td>"
            f"<td>{escape(post.title)}</td>"
            f"<td>{post.score}</td>"
            f"<td>{post.comment_count}</td>"
            f"<td>{link}</td>"
            f"<td>{escape(post.scraped_at or 'N/A')}</td>"
            "</tr>"
        )

    if not rows:
        rows.append('<tr><td colspan="7">No posts found in the database yet. Try running the scraper first.</td></tr>')

    body = "\n".join(rows)
    return f"""<!DOCTYPE html>
<html>
<head><title>Stored Posts</title></head>
<body>
    <h1>Stored Posts</h1>
    <p><a href="/">Back to Control Panel</a> | Displaying latest {len(posts)} scraped posts</p>
    <table border="1">
        <thead>
            <tr><th>DB ID</th><th>Post ID</th><th>Title</th><th>Score</th><th>Comments</th><th>URL</th><th>Scraped At</th></tr>
        </thead>
        <tbody>
            {body}
        </tbody>
    </table>
</body>
</html>
"""
