"""
Harvester Database Module
SQLite operations for storing scraped posts and places.
"""

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from dataclasses import dataclass

from config import DATABASE_FILE


@dataclass
class Post:
    """Represents one scraped feed post."""
    external_id: str
    title: str
    score: int = 0
    comment_count: int = 0
    link: Optional[str] = None
    scraped_at: Optional[str] = None
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "title": self.title,
            "score": self.score,
            "comment_count": self.comment_count,
            "link": self.link,
            "scraped_at": self.scraped_at,
        }


@dataclass
class Place:
    """Represents the primary result of one map search."""
    search_term: str
    name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    country: Optional[str] = None
    category: Optional[str] = None
    phone: Optional[str] = None
    scraped_at: Optional[str] = None
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "search_term": self.search_term,
            "name": self.name,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "country": self.country,
            "category": self.category,
            "phone": self.phone,
            "scraped_at": self.scraped_at,
        }


POST_COLUMNS = "id, external_id, title, score, comment_count, link, scraped_at"
PLACE_COLUMNS = "id, search_term, name, address, latitude, longitude, country, category, phone, scraped_at"


def get_connection():
    """Get a database connection."""
    conn = sqlite3.connect(DATABASE_FILE)
    conn.row_factory = sqlite3.Row
    return conn


def ensure_schema():
    """Create the posts and places tables if they don't exist."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS posts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            external_id TEXT NOT NULL UNIQUE,
            title TEXT NOT NULL,
            score INTEGER NOT NULL DEFAULT 0,
            comment_count INTEGER NOT NULL DEFAULT 0,
            link TEXT,
            scraped_at TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS places (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            search_term TEXT NOT NULL,
            name TEXT,
            address TEXT,
            latitude REAL,
            longitude REAL,
            country TEXT,
            category TEXT,
            phone TEXT,
            scraped_at TEXT NOT NULL
        )
    """)

    # Both read paths order by scrape time
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_posts_scraped_at ON posts(scraped_at)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_places_scraped_at ON places(scraped_at)")

    conn.commit()
    conn.close()


def _row_to_post(row: sqlite3.Row) -> Post:
    return Post(
        id=row["id"],
        external_id=row["external_id"],
        title=row["title"],
        score=row["score"],
        comment_count=row["comment_count"],
        link=row["link"],
        scraped_at=row["scraped_at"],
    )


def _row_to_place(row: sqlite3.Row) -> Place:
    return Place(**{key: row[key] for key in row.keys()})


def store_post(post: Post) -> bool:
    """
    Insert a post unless its external ID is already stored.

    Args:
        post: Post to store (scraped_at is assigned here)

    Returns:
        True if a new row was written, False if the ID already existed
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute(
            """
            INSERT INTO posts (external_id, title, score, comment_count, link, scraped_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                post.external_id,
                post.title,
                post.score,
                post.comment_count,
                post.link,
                datetime.now(timezone.utc).isoformat(),
            )
        )
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        # Duplicate external ID, nothing to do
        return False
    finally:
        conn.close()


def fetch_latest(limit: int) -> List[Post]:
    """
    Get the most recently scraped posts.

    Args:
        limit: Maximum number of posts to return (positive integer)

    Returns:
        List of Post objects, newest first
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit!r}")

    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute(
        f"SELECT {POST_COLUMNS} FROM posts ORDER BY scraped_at DESC, id DESC LIMIT ?",
        (limit,)
    )
    rows = cursor.fetchall()
    conn.close()

    return [_row_to_post(row) for row in rows]


def count_posts() -> int:
    """Get the number of stored posts."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("SELECT COUNT(*) FROM posts")
    count = cursor.fetchone()[0]
    conn.close()
    return count


def fetch_posts_page(page: int, page_size: int) -> Tuple[List[Post], int]:
    """
    Get one page of posts, newest first.

    Args:
        page: 1-indexed page number
        page_size: Number of posts per page

    Returns:
        Tuple of (posts on the page, total number of posts)
    """
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("SELECT COUNT(*) FROM posts")
    total = cursor.fetchone()[0]

    cursor.execute(
        f"SELECT {POST_COLUMNS} FROM posts ORDER BY scraped_at DESC, id DESC LIMIT ? OFFSET ?",
        (page_size, (page - 1) * page_size)
    )
    rows = cursor.fetchall()
    conn.close()

    return [_row_to_post(row) for row in rows], total


def store_place(place: Place) -> int:
    """
    Append a place row.

    Returns:
        Row ID of the stored place
    """
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(
        """
        INSERT INTO places (search_term, name, address, latitude, longitude, country, category, phone, scraped_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            place.search_term,
            place.name,
            place.address,
            place.latitude,
            place.longitude,
            place.country,
            place.category,
            place.phone,
            datetime.now(timezone.utc).isoformat(),
        )
    )
    row_id = cursor.lastrowid

    conn.commit()
    conn.close()

    return row_id


def count_places() -> int:
    """Get the number of stored places."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("SELECT COUNT(*) FROM places")
    count = cursor.fetchone()[0]
    conn.close()
    return count


def fetch_places_page(page: int, page_size: int) -> Tuple[List[Place], int]:
    """Get one page of places, newest first, with the total count."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("SELECT COUNT(*) FROM places")
    total = cursor.fetchone()[0]

    cursor.execute(
        f"SELECT {PLACE_COLUMNS} FROM places ORDER BY scraped_at DESC, id DESC LIMIT ? OFFSET ?",
        (page_size, (page - 1) * page_size)
    )
    rows = cursor.fetchall()
    conn.close()

    return [_row_to_place(row) for row in rows], total
