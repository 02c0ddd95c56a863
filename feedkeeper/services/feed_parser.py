"""Feed parser service.

This module turns raw response bytes into a Source. Extraction is pattern
based rather than a strict XML parse, so feeds with broken markup still yield
whatever items can be recovered: an item missing its title is skipped and an
unparseable date or link falls back instead of failing the whole feed.
"""

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from feedkeeper.exceptions import (
    DecodingError,
    MissingTitleError,
    UnsupportedFormatError,
)
from feedkeeper.models.schemas import Article, Source, new_id
from feedkeeper.services.entities import decode_entities, strip_cdata

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description available"

# Single-line fields
_TITLE_RE = re.compile(r"<title>(.*?)</title>")
_CHANNEL_DESCRIPTION_RE = re.compile(r"<description>(.*?)</description>")
_LINK_RE = re.compile(r"<link>(.*?)</link>")
_ALT_LINK_RE = re.compile(r'<link [^>]*href="([^"]+)"')
_PUB_DATE_RE = re.compile(r"<pubDate>(.*?)</pubDate>")
_AUTHOR_RE = re.compile(r"<author>(.*?)</author>")
_CREATOR_RE = re.compile(r"<dc:creator>(.*?)</dc:creator>")
_THUMBNAIL_RE = re.compile(r'<media:thumbnail [^>]*url="([^"]+)"')

# Multi-line fields
_ITEM_RE = re.compile(r"<item(?:\s[^>]*)?>(.*?)</item>", re.DOTALL)
_DESCRIPTION_RE = re.compile(r"<description>(.*?)</description>", re.DOTALL)
_CONTENT_RE = re.compile(r"<content:encoded>(.*?)</content:encoded>", re.DOTALL)

# ISO 8601 offsets written without a colon, e.g. +0000
_COMPACT_OFFSET_RE = re.compile(r"([+-]\d{2})(\d{2})$")


def _first(pattern: "re.Pattern[str]", text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1) if match else None


def _parse_url(value: Optional[str]) -> Optional[str]:
    """Return ``value`` as a URL string, or None if it does not parse as one."""
    if value is None:
        return None
    value = value.strip()
    if not value or any(c.isspace() for c in value):
        return None
    try:
        urlsplit(value)
    except ValueError:
        return None
    return value


def _normalize_offset(date_str: str) -> str:
    date_str = date_str.replace("Z", "+00:00")
    if "T" in date_str:
        date_str = _COMPACT_OFFSET_RE.sub(r"\1:\2", date_str)
    return date_str


def _parse_date(date_str: Optional[str]) -> datetime:
    """Parse an item publication date.

    Tries RFC 822 (the RSS format) and then ISO 8601. Falls back to the
    current time so a bad date never blocks extraction.

    Args:
        date_str: Raw <pubDate> text, if any

    Returns:
        Timezone-aware datetime
    """
    if date_str:
        date_str = date_str.strip()

        # Try RFC 2822 format (common in RSS)
        try:
            parsed = parsedate_to_datetime(date_str)
        except (ValueError, TypeError, IndexError):
            parsed = None

        # Try ISO format
        if parsed is None:
            try:
                parsed = datetime.fromisoformat(_normalize_offset(date_str))
            except ValueError:
                parsed = None

        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed

        logger.debug(f"Unparseable publication date: {date_str!r}")

    return datetime.now(timezone.utc)


def _find_image(description_html: str) -> Optional[str]:
    """Return the src of the first <img> inside an item's description markup."""
    if "<img" not in description_html:
        return None
    soup = BeautifulSoup(description_html, "lxml")
    for img in soup.find_all("img"):
        src = img.get("src")
        if src:
            return _parse_url(src)
    return None


def _extract_item(block: str, source_id: str, source_title: str) -> Optional[Article]:
    """Build an Article from one <item> block, or None if it has no title."""
    title = _first(_TITLE_RE, block)
    if title is None:
        return None

    raw_description = _first(_DESCRIPTION_RE, block)
    description = strip_cdata(raw_description) if raw_description is not None else NO_DESCRIPTION

    content = _first(_CONTENT_RE, block)
    if content is None:
        content = description
    content = decode_entities(strip_cdata(content))

    link = _parse_url(_first(_LINK_RE, block))
    if link is None:
        link = _parse_url(_first(_ALT_LINK_RE, block))

    author = _first(_AUTHOR_RE, block) or _first(_CREATOR_RE, block)
    if author is not None:
        author = decode_entities(author).strip() or None

    return Article(
        source_id=source_id,
        source_title=source_title,
        title=decode_entities(title),
        description=decode_entities(description),
        content=content,
        link=link,
        author=author,
        published_at=_parse_date(_first(_PUB_DATE_RE, block)),
        thumbnail_url=_parse_url(_first(_THUMBNAIL_RE, block)),
        image_url=_find_image(description),
    )


def extract_rss(data: bytes, source_url: str) -> Source:
    """Extract an RSS 2.0 document into a Source.

    Args:
        data: Raw response body
        source_url: URL the body was fetched from

    Returns:
        Source with one Article per usable <item>

    Raises:
        DecodingError: If the body is not valid UTF-8
        MissingTitleError: If the document has no <title>
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodingError(f"Response from {source_url} is not valid UTF-8") from e

    channel_title = _first(_TITLE_RE, text)
    if channel_title is None:
        raise MissingTitleError(f"Could not find feed title in {source_url}")
    channel_title = decode_entities(channel_title)

    channel_description = _first(_CHANNEL_DESCRIPTION_RE, text)
    if channel_description is None:
        channel_description = NO_DESCRIPTION
    else:
        channel_description = decode_entities(channel_description)

    source_id = new_id()
    articles = []
    skipped = 0
    for match in _ITEM_RE.finditer(text):
        article = _extract_item(match.group(1), source_id, channel_title)
        if article is None:
            skipped += 1
            continue
        articles.append(article)

    if skipped:
        logger.debug(f"Skipped {skipped} items without a title in {source_url}")
    logger.info(f"Parsed {len(articles)} articles from {source_url}")

    return Source(
        id=source_id,
        url=source_url,
        title=channel_title,
        description=channel_description,
        articles=articles,
    )


def extract_atom(data: bytes, source_url: str) -> Source:
    raise UnsupportedFormatError("Atom feeds are not supported")


def extract_json_feed(data: bytes, source_url: str) -> Source:
    raise UnsupportedFormatError("JSON feeds are not supported")


def extract_web_page(data: bytes, source_url: str) -> Source:
    raise UnsupportedFormatError("HTML pages are not supported")


Extractor = Callable[[bytes, str], Source]

# Order used when the response carries no usable content-type hint.
FALLBACK_ORDER = [extract_rss, extract_atom, extract_json_feed, extract_web_page]
