"""Services for feedkeeper."""

from .entities import decode_entities, strip_cdata
from .feed_parser import extract_rss, extract_atom, extract_json_feed, extract_web_page
from .feed_fetcher import fetch_source, parse_response, strategy_for_content_type
from .reconciler import merge_sources
from .feed_manager import FeedManager

__all__ = [
    "decode_entities",
    "strip_cdata",
    "extract_rss",
    "extract_atom",
    "extract_json_feed",
    "extract_web_page",
    "fetch_source",
    "parse_response",
    "strategy_for_content_type",
    "merge_sources",
    "FeedManager",
]
