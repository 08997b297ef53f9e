"""
Harvester Field Extraction
Pure parsing helpers that turn rendered markup into records.

Nothing in here touches the browser: the scrapers hand over an element's
outer HTML (or a URL / address string) and get back plain values, so the
parsing rules can be exercised against fixed HTML fixtures.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from database import Post

logger = logging.getLogger(__name__)

# Root attributes that carry the site's own post ID, in priority order
ID_ATTRIBUTES = ["id", "data-fullname", "data-mfe-id", "thingid"]

# Title fallbacks: attribute on the root first, then structural selectors
TITLE_ATTRIBUTES = ["post-title"]
TITLE_SELECTORS = ['[slot="title"]', "h1", "h2", "h3"]

SCORE_ATTRIBUTES = ["score"]
SCORE_SELECTORS = ['[data-testid="score"]', "faceplate-number[number]"]

COMMENT_ATTRIBUTES = ["comment-count"]
COMMENT_SELECTORS = ['[data-testid="comment-count"]', 'a[data-testid="comments-button"]']

LINK_SELECTORS = ['a[data-testid="post-title"]', 'a[slot="full-post-link"]']
LINK_ATTRIBUTES = ["content-href", "permalink"]

REJECT_MISSING_ID = "missing-id"
REJECT_MISSING_TITLE = "missing-title"
REJECT_UNPARSEABLE = "unparseable-markup"

_SCORE_RE = re.compile(r"(\d+(?:\.\d+)?)\s?([KM])?")
_LEADING_INT_RE = re.compile(r"\d+")
_COORDS_RE = re.compile(r"@(-?\d+\.\d+),(-?\d+\.\d+)")

_MULTIPLIERS = {"K": 1_000, "M": 1_000_000}


@dataclass(frozen=True)
class RejectedElement:
    """An element that did not yield a storable post."""
    reason: str


ExtractionResult = Union[Post, RejectedElement]


def _clean_text(text: Optional[str]) -> str:
    """Collapse whitespace (including non-breaking spaces)."""
    if not text:
        return ""
    normalized = text.replace("\xa0", " ").replace("\u202f", " ")
    return " ".join(normalized.split())


def parse_score(text: Optional[str]) -> int:
    """
    Parse a human-readable vote count.

    Examples: "1.2K" -> 1200, "53" -> 53, "Vote" -> 0.
    """
    if not text:
        return 0

    cleaned = str(text).replace(",", "").strip().upper()
    match = _SCORE_RE.search(cleaned)
    if not match:
        return 0

    value = float(match.group(1))
    marker = match.group(2)
    if marker:
        value *= _MULTIPLIERS[marker]

    return int(round(value)) if marker else int(value)


def parse_comment_count(text: Optional[str]) -> int:
    """
    Parse the leading number of a comment label.

    Examples: "53 comments" -> 53, "0 comments" -> 0, "comments" -> 0.
    """
    tokens = str(text or "").split()
    if not tokens:
        return 0

    match = _LEADING_INT_RE.match(tokens[0].replace(",", ""))
    return int(match.group()) if match else 0


def _first_attribute(tag, attributes) -> Optional[str]:
    for attribute in attributes:
        value = _clean_text(tag.get(attribute))
        if value:
            return value
    return None


def _first_text(tag, selectors) -> Optional[str]:
    for selector in selectors:
        found = tag.select_one(selector)
        if found:
            text = _clean_text(found.get_text(" "))
            if text:
                return text
    return None


def _extract_score_text(root) -> Optional[str]:
    text = _first_attribute(root, SCORE_ATTRIBUTES)
    if text:
        return text

    for selector in SCORE_SELECTORS:
        found = root.select_one(selector)
        if found:
            # faceplate-number keeps the exact value in its "number" attribute
            text = _clean_text(found.get("number")) or _clean_text(found.get_text(" "))
            if text:
                return text
    return None


def _extract_link(root, base_url: Optional[str]) -> Optional[str]:
    href = None
    for selector in LINK_SELECTORS:
        found = root.select_one(selector)
        if found and found.get("href"):
            href = found.get("href").strip()
            break

    if not href:
        href = _first_attribute(root, LINK_ATTRIBUTES)

    if not href:
        return None
    return urljoin(base_url, href) if base_url else href


def extract_post(html: str, base_url: Optional[str] = None) -> ExtractionResult:
    """
    Build a Post from one post element's outer HTML.

    Args:
        html: Outer HTML of the rendered post element
        base_url: Page URL used to resolve relative links

    Returns:
        Post on success, RejectedElement when the ID or title is missing
    """
    try:
        soup = BeautifulSoup(html or "", "html.parser")
        root = soup.find()
        if root is None:
            return RejectedElement(REJECT_UNPARSEABLE)

        external_id = _first_attribute(root, ID_ATTRIBUTES)
        if not external_id:
            return RejectedElement(REJECT_MISSING_ID)

        title = _first_attribute(root, TITLE_ATTRIBUTES) or _first_text(root, TITLE_SELECTORS)
        if not title:
            return RejectedElement(REJECT_MISSING_TITLE)

        comments_text = (
            _first_attribute(root, COMMENT_ATTRIBUTES)
            or _first_text(root, COMMENT_SELECTORS)
            or "0 comments"
        )

        return Post(
            external_id=external_id,
            title=title,
            score=parse_score(_extract_score_text(root)),
            comment_count=parse_comment_count(comments_text),
            link=_extract_link(root, base_url),
        )

    except Exception as e:
        logger.debug(f"Error parsing post element: {e}")
        return RejectedElement(REJECT_UNPARSEABLE)


def parse_coordinates(url: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """Extract (latitude, longitude) from the '@lat,lng' part of a map URL."""
    match = _COORDS_RE.search(url or "")
    if not match:
        return None, None
    return float(match.group(1)), float(match.group(2))


def guess_country(address: Optional[str]) -> Optional[str]:
    """Guess the country as the last comma-separated part of an address."""
    if not address or address == "N/A":
        return None
    parts = [part.strip() for part in address.split(",")]
    if len(parts) > 1 and parts[-1]:
        return parts[-1]
    return None
