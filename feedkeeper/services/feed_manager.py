"""Feed manager service.

``FeedManager`` owns the in-memory collection of sources and is the only
place their articles' read/starred flags change. Observers registered with
``subscribe`` are called after every mutation so a UI or a store can follow
along without the manager knowing about either.

Refreshing is concurrent: ``refresh_all`` starts one task per source and
waits for all of them. Each task replaces only its own source entry, and a
failure is logged and leaves that source as it was.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

from feedkeeper.config import ServerConfig, get_config
from feedkeeper.exceptions import FeedError
from feedkeeper.models.schemas import Article, Source
from feedkeeper.services.feed_fetcher import fetch_source
from feedkeeper.services.reconciler import merge_sources

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[Source]]
Observer = Callable[[str, Optional[Source]], None]

SOURCE_ADDED = "added"
SOURCE_REMOVED = "removed"
SOURCE_REFRESHED = "refreshed"
SOURCE_UPDATED = "updated"


class FeedManager:
    """State container for subscribed sources."""

    def __init__(
        self,
        sources: Optional[Iterable[Source]] = None,
        fetcher: Optional[Fetcher] = None,
        config: Optional[ServerConfig] = None,
    ):
        self.config = config or get_config()
        self.sources: List[Source] = list(sources or [])
        self.is_loading = False
        self.last_error: Optional[str] = None
        self._fetcher = fetcher or (lambda url: fetch_source(url, config=self.config))
        self._observers: List[Observer] = []

    # Observers

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register a change callback; returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, event: str, source: Optional[Source]) -> None:
        for observer in list(self._observers):
            try:
                observer(event, source)
            except Exception:
                logger.exception(f"Observer failed handling '{event}' event")

    # Lookups

    @property
    def categories(self) -> List[str]:
        return sorted({s.category for s in self.sources if s.category})

    @property
    def unread_count(self) -> int:
        return sum(s.unread_count for s in self.sources)

    def get_source(self, source_id: str) -> Optional[Source]:
        for source in self.sources:
            if source.id == source_id:
                return source
        return None

    def find_source_by_url(self, url: str) -> Optional[Source]:
        for source in self.sources:
            if source.url == url:
                return source
        return None

    def find_article(self, article_id: str) -> Optional[Tuple[Source, Article]]:
        for source in self.sources:
            for article in source.articles:
                if article.id == article_id:
                    return source, article
        return None

    def _index_of(self, source_id: str) -> Optional[int]:
        for index, source in enumerate(self.sources):
            if source.id == source_id:
                return index
        return None

    # Collection mutations

    async def add_source(self, url: str, category: Optional[str] = None) -> Source:
        """Fetch a URL for the first time and add it to the collection.

        Args:
            url: Feed URL
            category: Optional category label for the new source

        Returns:
            The new Source, all articles unread and unstarred

        Raises:
            NetworkError: If the feed cannot be fetched
            ParseError: If the content cannot be extracted
        """
        self.is_loading = True
        self.last_error = None
        try:
            source = await self._fetcher(url)
        except FeedError as e:
            self.last_error = f"Failed to add feed: {e}"
            logger.error(f"Failed to add feed {url}: {e}")
            raise
        finally:
            self.is_loading = False

        source.category = category
        self.sources.append(source)
        logger.info(f"Added source '{source.title}' with {len(source.articles)} articles")
        self._notify(SOURCE_ADDED, source)
        return source

    def remove_source(self, source_id: str) -> bool:
        """Remove a source and, with it, all of its articles."""
        index = self._index_of(source_id)
        if index is None:
            return False
        source = self.sources.pop(index)
        logger.info(f"Removed source '{source.title}' and {len(source.articles)} articles")
        self._notify(SOURCE_REMOVED, source)
        return True

    async def refresh_source(self, source: Source) -> Source:
        """Re-fetch a source and reconcile it with the stored version.

        Never raises for fetch or parse problems: they are logged and the
        input is returned unchanged.

        Args:
            source: Source to refresh

        Returns:
            The merged Source, or ``source`` itself if the refresh failed
        """
        try:
            fresh = await self._fetcher(source.url)
        except FeedError as e:
            logger.warning(f"Failed to refresh feed '{source.title}': {e}")
            return source
        except Exception:
            logger.exception(f"Unexpected error refreshing feed '{source.title}'")
            return source

        # Merge against the current entry so status changes made while the
        # request was in flight are kept.
        index = self._index_of(source.id)
        previous = self.sources[index] if index is not None else source
        merged = merge_sources(previous, fresh)

        if index is not None:
            self.sources[index] = merged
            self._notify(SOURCE_REFRESHED, merged)
        return merged

    async def refresh_all(self, sources: Optional[Iterable[Source]] = None) -> None:
        """Refresh sources concurrently and wait for all of them to finish.

        Args:
            sources: Sources to refresh (defaults to every subscribed source)
        """
        targets = list(self.sources if sources is None else sources)
        if not targets:
            return

        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrent_fetches))

        async def refresh_one(source: Source) -> Source:
            async with semaphore:
                return await self.refresh_source(source)

        self.is_loading = True
        try:
            await asyncio.gather(*(refresh_one(s) for s in targets))
        finally:
            self.is_loading = False
        logger.info(f"Refreshed {len(targets)} sources")

    # Status mutations

    def _set_read(self, article_id: str, value: bool) -> Optional[Article]:
        found = self.find_article(article_id)
        if found is None:
            return None
        source, article = found
        article.is_read = value
        self._notify(SOURCE_UPDATED, source)
        return article

    def mark_read(self, article_id: str) -> Optional[Article]:
        return self._set_read(article_id, True)

    def mark_unread(self, article_id: str) -> Optional[Article]:
        return self._set_read(article_id, False)

    def toggle_starred(self, article_id: str) -> Optional[Article]:
        """Flip an article's starred flag; returns the article or None if unknown."""
        found = self.find_article(article_id)
        if found is None:
            return None
        source, article = found
        article.is_starred = not article.is_starred
        self._notify(SOURCE_UPDATED, source)
        return article

    def mark_all_read(self, source_id: Optional[str] = None) -> int:
        """Mark every unread article as read, optionally in one source only.

        Returns:
            Number of articles that changed
        """
        if source_id is None:
            targets = self.sources
        else:
            source = self.get_source(source_id)
            targets = [source] if source is not None else []

        count = 0
        for source in targets:
            changed = 0
            for article in source.articles:
                if not article.is_read:
                    article.is_read = True
                    changed += 1
            if changed:
                self._notify(SOURCE_UPDATED, source)
            count += changed
        return count
