"""Feed fetching service.

This module downloads a feed URL and hands the body to the matching
extraction strategy. A recognised Content-Type header selects one strategy
and its result is final; without a usable hint every strategy is tried in
turn.
"""

import logging
from typing import Optional

import httpx

from feedkeeper.config import ServerConfig, get_config
from feedkeeper.exceptions import MalformedFeedError, NetworkError, ParseError
from feedkeeper.models.schemas import Source
from feedkeeper.services.feed_parser import (
    FALLBACK_ORDER,
    Extractor,
    extract_atom,
    extract_json_feed,
    extract_rss,
)

logger = logging.getLogger(__name__)

# Content-type fragments, checked in order
CONTENT_TYPE_STRATEGIES = [
    ("application/rss+xml", extract_rss),
    ("application/xml", extract_rss),
    ("text/xml", extract_rss),
    ("application/atom+xml", extract_atom),
    ("application/feed+json", extract_json_feed),
    ("application/json", extract_json_feed),
]


def strategy_for_content_type(content_type: Optional[str]) -> Optional[Extractor]:
    """Map a Content-Type header to an extraction strategy.

    Args:
        content_type: Header value, possibly with parameters such as charset

    Returns:
        The matching extractor, or None when the header gives no usable hint
    """
    if not content_type:
        return None
    content_type = content_type.lower()
    for fragment, extractor in CONTENT_TYPE_STRATEGIES:
        if fragment in content_type:
            return extractor
    return None


def parse_response(body: bytes, content_type: Optional[str], url: str) -> Source:
    """Select a strategy for a response body and extract it.

    Args:
        body: Raw response body
        content_type: Declared Content-Type, if any
        url: URL the body was fetched from

    Returns:
        Extracted Source

    Raises:
        ParseError: If the hinted strategy fails, or every fallback strategy fails
    """
    if not body:
        raise MalformedFeedError("empty response body")

    extractor = strategy_for_content_type(content_type)
    if extractor is not None:
        logger.debug(f"Using {extractor.__name__} for content type {content_type!r}")
        return extractor(body, url)

    last_error: Optional[ParseError] = None
    for extractor in FALLBACK_ORDER:
        try:
            return extractor(body, url)
        except ParseError as e:
            logger.debug(f"{extractor.__name__} failed for {url}: {e}")
            last_error = e

    raise last_error


async def _get(client: httpx.AsyncClient, url: str) -> httpx.Response:
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise NetworkError(
            f"Failed to fetch {url}: HTTP {e.response.status_code}",
            status_code=e.response.status_code,
        ) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise NetworkError(f"Failed to fetch {url}: {e}") from e
    return response


async def fetch_source(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    config: Optional[ServerConfig] = None,
) -> Source:
    """Fetch a feed URL and extract it into a Source.

    Args:
        url: Feed URL
        client: Optional shared HTTP client (a new one is opened if omitted)
        config: Optional configuration for timeout and User-Agent

    Returns:
        Freshly extracted Source with default article flags

    Raises:
        NetworkError: On transport failure or a non-2xx status
        ParseError: If the content cannot be extracted
    """
    logger.info(f"Fetching feed: {url}")

    if client is not None:
        response = await _get(client, url)
    else:
        if config is None:
            config = get_config()
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=config.request_timeout,
            headers={"User-Agent": config.user_agent},
        ) as client:
            response = await _get(client, url)

    return parse_response(response.content, response.headers.get("content-type"), url)
