"""Feed reader MCP tools.

This module provides MCP tools for managing subscribed sources and their
articles. All tools work on one shared FeedManager that is loaded from the
database on first use; every change is written back through the storage
layer.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional integers.
"""

import logging
from typing import Any, Dict, Optional

from mcp.server.fastmcp import Context

from feedkeeper.exceptions import FeedError
from feedkeeper.models.schemas import Article, Source
from feedkeeper.services.feed_manager import FeedManager
from feedkeeper.storage import database

logger = logging.getLogger(__name__)

_manager: Optional[FeedManager] = None


async def get_manager() -> FeedManager:
    """Get the shared FeedManager, loading stored sources on first use."""
    global _manager

    if _manager is None:
        sources = await database.load_sources()
        _manager = FeedManager(sources=sources)
        logger.info(f"Loaded {len(sources)} sources from storage")
    return _manager


def set_manager(manager: Optional[FeedManager]) -> None:
    global _manager
    _manager = manager


def _source_summary(source: Source) -> Dict[str, Any]:
    return {
        "id": source.id,
        "title": source.title,
        "url": source.url,
        "description": source.description,
        "category": source.category,
        "last_updated": source.last_updated.isoformat(),
        "total_articles": len(source.articles),
        "unread_articles": source.unread_count,
        "starred_articles": source.starred_count,
    }


def _article_summary(article: Article) -> Dict[str, Any]:
    return {
        "id": article.id,
        "source_id": article.source_id,
        "source_title": article.source_title,
        "title": article.title,
        "description": article.description,
        "link": article.link,
        "author": article.author,
        "published_at": article.published_at.isoformat(),
        "image_url": article.image_url,
        "is_read": article.is_read,
        "is_starred": article.is_starred,
    }


async def add_source(
    url: str,
    category: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Subscribe to a new RSS feed.

    Fetches the feed immediately; the subscription is only created if the
    feed can be downloaded and parsed.

    Args:
        url: Feed URL (will be normalized to https:// if no scheme)
        category: Category label for grouping sources (empty string for none)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - source: summary object with id, title, url, article counts
        - error: string if success is False
    """
    logger.info(f"add_source called: url={url}")

    # Normalize URL
    if not url.startswith(("http://", "https://")):
        url = "https://" + url

    manager = await get_manager()

    if manager.find_source_by_url(url) is not None:
        return {
            "success": False,
            "error": f"Source with URL '{url}' already exists",
        }

    try:
        source = await manager.add_source(url, category=category or None)
    except FeedError as e:
        return {
            "success": False,
            "error": str(e),
        }

    await database.save_source(source)

    return {
        "success": True,
        "source": _source_summary(source),
    }


async def remove_source(source_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Remove a source and all of its articles.

    This permanently deletes the subscription, including read and starred
    status. This action cannot be undone.

    Args:
        source_id: Id of the source (from list_sources response)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - message: confirmation string if successful
        - articles_deleted: count of articles removed
        - error: string if source not found
    """
    logger.info(f"remove_source called: source_id={source_id}")

    manager = await get_manager()
    source = manager.get_source(source_id)

    if source is None:
        return {
            "success": False,
            "error": f"Source '{source_id}' not found",
        }

    article_count = len(source.articles)
    manager.remove_source(source_id)
    await database.delete_source(source_id)

    return {
        "success": True,
        "message": f"Removed source '{source.title}' and {article_count} articles",
        "articles_deleted": article_count,
    }


async def list_sources(ctx: Context = None) -> Dict[str, Any]:
    """List all subscribed sources with article counts.

    Args:
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of sources
        - categories: sorted list of distinct category labels
        - sources: list of source summaries
    """
    logger.info("list_sources called")

    manager = await get_manager()

    return {
        "success": True,
        "count": len(manager.sources),
        "categories": manager.categories,
        "sources": [_source_summary(s) for s in manager.sources],
    }


async def refresh_sources(
    source_id: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Re-fetch sources and merge new articles, keeping read/starred status.

    Refreshes every source concurrently, or a single source. A source that
    fails to refresh is left unchanged and does not affect the others.

    Args:
        source_id: Refresh only this source (empty string refreshes all)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - sources_refreshed: number of sources processed
        - results: per-source id, title, total and unread article counts
    """
    logger.info(f"refresh_sources called: source_id={source_id}")

    manager = await get_manager()

    if source_id:
        source = manager.get_source(source_id)
        if source is None:
            return {
                "success": False,
                "error": f"Source '{source_id}' not found",
            }
        targets = [source]
    else:
        targets = list(manager.sources)

    await manager.refresh_all(targets)

    results = []
    for target in targets:
        current = manager.get_source(target.id)
        if current is None:
            continue
        await database.save_source(current)
        results.append({
            "id": current.id,
            "title": current.title,
            "total_articles": len(current.articles),
            "unread_articles": current.unread_count,
            "last_updated": current.last_updated.isoformat(),
        })

    return {
        "success": True,
        "sources_refreshed": len(targets),
        "results": results,
    }


async def list_articles(
    source_id: str = "",
    include_read: bool = False,
    starred_only: bool = False,
    limit: int = 50,
    ctx: Context = None,
) -> Dict[str, Any]:
    """List articles, newest first, with optional filters.

    Args:
        source_id: Only articles from this source (empty string for all sources)
        include_read: Include articles marked as read (default: False, only unread)
        starred_only: Only starred articles (default: False)
        limit: Maximum number of articles to return (default: 50)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of articles returned
        - articles: list of article objects
    """
    logger.info(
        f"list_articles called: source_id={source_id}, include_read={include_read}, "
        f"starred_only={starred_only}, limit={limit}"
    )

    manager = await get_manager()

    if source_id:
        source = manager.get_source(source_id)
        if source is None:
            return {
                "success": False,
                "error": f"Source '{source_id}' not found",
            }
        sources = [source]
    else:
        sources = manager.sources

    articles = [
        a
        for s in sources
        for a in s.articles
        if (include_read or not a.is_read) and (not starred_only or a.is_starred)
    ]
    articles.sort(key=lambda a: a.published_at, reverse=True)
    if limit > 0:
        articles = articles[:limit]

    return {
        "success": True,
        "count": len(articles),
        "articles": [_article_summary(a) for a in articles],
    }


async def _update_article(manager: FeedManager, article: Optional[Article], article_id: str) -> Dict[str, Any]:
    if article is None:
        return {
            "success": False,
            "error": f"Article with id {article_id} not found",
        }

    source = manager.get_source(article.source_id)
    if source is not None:
        await database.save_source(source)

    return {
        "success": True,
        "article": {
            "id": article.id,
            "title": article.title,
            "link": article.link,
            "is_read": article.is_read,
            "is_starred": article.is_starred,
        },
    }


async def mark_article_read(article_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Mark a specific article as read.

    Args:
        article_id: Id of the article (from list_articles response)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - article: object with id, title, link, is_read, is_starred (if found)
        - error: string if article not found
    """
    logger.info(f"mark_article_read called: article_id={article_id}")

    manager = await get_manager()
    return await _update_article(manager, manager.mark_read(article_id), article_id)


async def mark_article_unread(article_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Mark a specific article as unread.

    Args:
        article_id: Id of the article (from list_articles response)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - article: object with id, title, link, is_read, is_starred (if found)
        - error: string if article not found
    """
    logger.info(f"mark_article_unread called: article_id={article_id}")

    manager = await get_manager()
    return await _update_article(manager, manager.mark_unread(article_id), article_id)


async def toggle_article_starred(article_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Star an unstarred article, or unstar a starred one.

    Args:
        article_id: Id of the article (from list_articles response)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - article: object with id, title, link, is_read, is_starred (if found)
        - error: string if article not found
    """
    logger.info(f"toggle_article_starred called: article_id={article_id}")

    manager = await get_manager()
    return await _update_article(manager, manager.toggle_starred(article_id), article_id)


async def mark_all_read(
    source_id: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Mark all unread articles as read, optionally in one source only.

    Args:
        source_id: Only mark articles from this source (empty string marks all)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - articles_marked_read: count of articles updated
        - source_filter: the source_id filter if provided, null otherwise
        - error: string if specified source not found
    """
    logger.info(f"mark_all_read called: source_id={source_id}")

    manager = await get_manager()

    if source_id and manager.get_source(source_id) is None:
        return {
            "success": False,
            "error": f"Source '{source_id}' not found",
        }

    count = manager.mark_all_read(source_id or None)

    if count:
        targets = [manager.get_source(source_id)] if source_id else manager.sources
        for source in targets:
            await database.save_source(source)

    return {
        "success": True,
        "articles_marked_read": count,
        "source_filter": source_id or None,
    }


# List of feed tools for registration
feed_tools = [
    add_source,
    remove_source,
    list_sources,
    refresh_sources,
    list_articles,
    mark_article_read,
    mark_article_unread,
    toggle_article_starred,
    mark_all_read,
]
