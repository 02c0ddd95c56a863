"""feedkeeper

Feed acquisition and normalization core for a feed reader: fetch a URL,
detect its format, extract a normalized Source and reconcile refreshed
articles with stored read/starred status.
"""

from feedkeeper.exceptions import (
    FeedError,
    NetworkError,
    ParseError,
    MissingTitleError,
    DecodingError,
    UnsupportedFormatError,
    MalformedFeedError,
)
from feedkeeper.models.schemas import Article, Source
from feedkeeper.services import FeedManager, decode_entities, fetch_source, merge_sources

__all__ = [
    "Article",
    "Source",
    "FeedManager",
    "decode_entities",
    "fetch_source",
    "merge_sources",
    "FeedError",
    "NetworkError",
    "ParseError",
    "MissingTitleError",
    "DecodingError",
    "UnsupportedFormatError",
    "MalformedFeedError",
]
