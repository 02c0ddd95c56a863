"""Unit tests for the FeedManager state container."""

import asyncio
from datetime import datetime, timezone

import pytest

from feedkeeper.config import ServerConfig
from feedkeeper.exceptions import MissingTitleError, NetworkError
from feedkeeper.models.schemas import Article, Source
from feedkeeper.services.feed_manager import FeedManager

pytestmark = pytest.mark.anyio

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _make_source(url: str, title: str, items) -> Source:
    source = Source(url=url, title=title, description=f"{title} feed")
    for item_title, link in items:
        source.articles.append(Article(
            source_id=source.id,
            source_title=title,
            title=item_title,
            description="Description",
            content="Content",
            link=link,
            published_at=NOW,
        ))
    return source


class FakeFetcher:
    """Serves freshly built sources per URL, or raises a configured error."""

    def __init__(self, feeds=None, errors=None):
        self.feeds = feeds or {}
        self.errors = errors or {}
        self.calls = []

    async def __call__(self, url: str) -> Source:
        self.calls.append(url)
        await asyncio.sleep(0)
        if url in self.errors:
            raise self.errors[url]
        title, items = self.feeds[url]
        return _make_source(url, title, items)


def _manager(fetcher, sources=None) -> FeedManager:
    return FeedManager(sources=sources, fetcher=fetcher, config=ServerConfig(max_concurrent_fetches=2))


class TestAddSource:
    """Tests for subscribing to a new source."""

    async def test_add_source(self):
        fetcher = FakeFetcher({"https://a.example/feed": ("Feed A", [("One", "https://a.example/1")])})
        manager = _manager(fetcher)

        source = await manager.add_source("https://a.example/feed", category="News")

        assert manager.sources == [source]
        assert source.category == "News"
        assert source.articles[0].is_read is False
        assert manager.is_loading is False
        assert manager.last_error is None

    async def test_add_source_surfaces_errors(self):
        fetcher = FakeFetcher(errors={"https://bad.example/feed": NetworkError("HTTP 500", 500)})
        manager = _manager(fetcher)

        with pytest.raises(NetworkError):
            await manager.add_source("https://bad.example/feed")

        assert manager.sources == []
        assert "HTTP 500" in manager.last_error
        assert manager.is_loading is False

    async def test_add_source_parse_error(self):
        fetcher = FakeFetcher(errors={"https://x.example/feed": MissingTitleError("no title")})
        manager = _manager(fetcher)

        with pytest.raises(MissingTitleError):
            await manager.add_source("https://x.example/feed")


class TestRefresh:
    """Tests for refreshing sources."""

    async def test_refresh_source_preserves_status(self):
        url = "https://a.example/feed"
        fetcher = FakeFetcher({url: ("Feed A", [("New", "https://a.example/2"), ("One", "https://a.example/1")])})
        stored = _make_source(url, "Feed A", [("One", "https://a.example/1")])
        stored.articles[0].is_starred = True
        manager = _manager(fetcher, [stored])

        merged = await manager.refresh_source(stored)

        assert merged.id == stored.id
        assert manager.sources[0] is merged
        assert [a.title for a in merged.articles] == ["New", "One"]
        assert merged.articles[1].is_starred is True
        assert merged.articles[0].is_starred is False

    async def test_refresh_source_failure_returns_input(self):
        url = "https://down.example/feed"
        stored = _make_source(url, "Down", [("One", None)])
        manager = _manager(FakeFetcher(errors={url: NetworkError("timeout")}), [stored])

        result = await manager.refresh_source(stored)

        assert result is stored
        assert manager.sources[0] is stored

    async def test_refresh_source_unexpected_error_is_contained(self):
        url = "https://buggy.example/feed"
        stored = _make_source(url, "Buggy", [])
        manager = _manager(FakeFetcher(errors={url: RuntimeError("boom")}), [stored])

        assert await manager.refresh_source(stored) is stored

    async def test_refresh_all_isolates_failures(self):
        """Test that one failing source does not affect the others."""
        urls = ["https://a.example/feed", "https://b.example/feed", "https://c.example/feed"]
        sources = [_make_source(u, f"Feed {i}", [("Old", f"{u}/old")]) for i, u in enumerate(urls)]
        fetcher = FakeFetcher(
            feeds={
                urls[0]: ("Feed 0", [("Fresh A", f"{urls[0]}/fresh")]),
                urls[2]: ("Feed 2", [("Fresh C", f"{urls[2]}/fresh")]),
            },
            errors={urls[1]: NetworkError("connection refused")},
        )
        manager = _manager(fetcher, sources)
        second = sources[1]

        await manager.refresh_all()

        assert sorted(fetcher.calls) == sorted(urls)
        assert [a.title for a in manager.sources[0].articles] == ["Fresh A"]
        assert manager.sources[1] is second
        assert [a.title for a in manager.sources[1].articles] == ["Old"]
        assert [a.title for a in manager.sources[2].articles] == ["Fresh C"]
        assert [s.id for s in manager.sources] == [s.id for s in sources]
        assert manager.is_loading is False

    async def test_refresh_all_empty(self):
        fetcher = FakeFetcher()
        manager = _manager(fetcher)

        await manager.refresh_all()

        assert fetcher.calls == []

    async def test_refresh_all_subset(self):
        urls = ["https://a.example/feed", "https://b.example/feed"]
        sources = [_make_source(u, "Feed", []) for u in urls]
        fetcher = FakeFetcher({u: ("Feed", [("Item", None)]) for u in urls})
        manager = _manager(fetcher, sources)

        await manager.refresh_all([sources[1]])

        assert fetcher.calls == [urls[1]]
        assert manager.sources[0].articles == []
        assert len(manager.sources[1].articles) == 1

    async def test_refresh_all_respects_concurrency_limit(self):
        urls = [f"https://{i}.example/feed" for i in range(5)]
        active = 0
        peak = 0

        async def fetcher(url):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return _make_source(url, "Feed", [])

        manager = _manager(fetcher, [_make_source(u, "Feed", []) for u in urls])

        await manager.refresh_all()

        assert peak == 2


class TestStatusMutations:
    """Tests for read/starred changes and removal."""

    def _populated(self):
        source = _make_source("https://a.example/feed", "Feed A", [("One", None), ("Two", None), ("Three", None)])
        other = _make_source("https://b.example/feed", "Feed B", [("Four", None)])
        source.category = "Tech"
        other.category = "Science"
        return _manager(FakeFetcher(), [source, other]), source, other

    def test_mark_read_and_unread(self):
        manager, source, _ = self._populated()
        article = source.articles[0]

        assert manager.mark_read(article.id) is article
        assert article.is_read is True
        assert manager.mark_unread(article.id).is_read is False

    def test_toggle_starred(self):
        manager, source, _ = self._populated()
        first, second = source.articles[0], source.articles[1]

        assert manager.toggle_starred(first.id).is_starred is True
        assert second.is_starred is False
        assert manager.toggle_starred(first.id).is_starred is False

    def test_unknown_article(self):
        manager, _, _ = self._populated()

        assert manager.mark_read("missing") is None
        assert manager.toggle_starred("missing") is None

    def test_mark_all_read_in_source(self):
        manager, source, other = self._populated()
        source.articles[2].is_read = True

        assert manager.mark_all_read(source.id) == 2
        assert source.unread_count == 0
        assert other.unread_count == 1

    def test_mark_all_read_everywhere(self):
        manager, _, _ = self._populated()

        assert manager.mark_all_read() == 4
        assert manager.unread_count == 0

    def test_remove_source(self):
        manager, source, other = self._populated()

        assert manager.remove_source(source.id) is True
        assert manager.sources == [other]
        assert manager.find_article(source.articles[0].id) is None
        assert manager.remove_source(source.id) is False

    def test_categories(self):
        manager, _, _ = self._populated()
        manager.sources.append(_make_source("https://c.example/feed", "Feed C", []))
        manager.sources[-1].category = "Tech"

        assert manager.categories == ["Science", "Tech"]


class TestObservers:
    """Tests for change notifications."""

    async def test_events(self):
        url = "https://a.example/feed"
        fetcher = FakeFetcher({url: ("Feed A", [("One", None)])})
        manager = _manager(fetcher)
        events = []
        manager.subscribe(lambda event, source: events.append((event, source.id)))

        source = await manager.add_source(url)
        manager.mark_read(source.articles[0].id)
        await manager.refresh_all()
        manager.remove_source(source.id)

        assert events == [
            ("added", source.id),
            ("updated", source.id),
            ("refreshed", source.id),
            ("removed", source.id),
        ]

    def test_unsubscribe(self):
        source = _make_source("https://a.example/feed", "Feed A", [("One", None)])
        manager = _manager(FakeFetcher(), [source])
        events = []
        unsubscribe = manager.subscribe(lambda event, src: events.append(event))

        unsubscribe()
        manager.mark_read(source.articles[0].id)

        assert events == []

    def test_failing_observer_does_not_break_mutation(self):
        source = _make_source("https://a.example/feed", "Feed A", [("One", None)])
        manager = _manager(FakeFetcher(), [source])
        seen = []

        def broken(event, src):
            raise ValueError("observer bug")

        manager.subscribe(broken)
        manager.subscribe(lambda event, src: seen.append(event))

        assert manager.mark_read(source.articles[0].id) is not None
        assert seen == ["updated"]
