"""Reconciliation of refreshed sources.

Article identifiers are regenerated on every fetch, so a refreshed article is
matched to its stored counterpart heuristically: by link first, then by title.
Each stored article can be claimed once, in feed order. When two fresh
articles share a title only the first one inherits the stored status.
"""

import logging
from typing import Dict, List, Optional

from feedkeeper.models.schemas import Article, Source

logger = logging.getLogger(__name__)


def _claim(
    candidates: List[Article], claimed: Dict[str, Article], fresh: Article
) -> Optional[Article]:
    if fresh.link is not None:
        for old in candidates:
            if old.id not in claimed and old.link == fresh.link:
                return old
    for old in candidates:
        if old.id not in claimed and old.title == fresh.title:
            return old
    return None


def merge_sources(previous: Source, fresh: Source) -> Source:
    """Merge a freshly fetched source into its stored version.

    Matched articles keep their stored id and read/starred flags and take
    every other field from the fresh fetch. The result keeps the stored
    source id and category.

    Args:
        previous: Source as currently stored
        fresh: Source just extracted from the network

    Returns:
        Merged Source
    """
    claimed: Dict[str, Article] = {}
    merged = []

    for article in fresh.articles:
        old = _claim(previous.articles, claimed, article)
        if old is not None:
            claimed[old.id] = article
            article.id = old.id
            article.is_read = old.is_read
            article.is_starred = old.is_starred
        article.source_id = previous.id
        merged.append(article)

    logger.debug(
        f"Reconciled '{previous.title}': {len(claimed)} matched, "
        f"{len(merged) - len(claimed)} new"
    )

    return Source(
        id=previous.id,
        url=fresh.url,
        title=fresh.title,
        description=fresh.description,
        category=previous.category,
        icon=fresh.icon if fresh.icon is not None else previous.icon,
        last_updated=fresh.last_updated,
        articles=merged,
    )
