"""Data models for feedkeeper.

This module defines the core data structures for sources and articles.

Sources and articles compare and hash by identifier only: two objects with the
same ``id`` are the same logical entity even when every other field differs.
"""

import base64
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from feedkeeper.exceptions import MalformedFeedError


def new_id() -> str:
    """Generate a fresh opaque identifier."""
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _require(data: Dict[str, Any], key: str, kind: str) -> Any:
    try:
        return data[key]
    except KeyError as e:
        raise MalformedFeedError(f"{kind} record is missing '{key}'") from e


def _parse_timestamp(value: str, key: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise MalformedFeedError(f"invalid timestamp in '{key}': {value!r}") from e


@dataclass(eq=False)
class Article:
    """Represents one entry belonging to a source."""

    source_id: str
    title: str
    description: str
    content: str
    published_at: datetime
    source_title: Optional[str] = None
    link: Optional[str] = None
    author: Optional[str] = None
    thumbnail_url: Optional[str] = None
    image_url: Optional[str] = None
    is_read: bool = False
    is_starred: bool = False
    id: str = field(default_factory=new_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Article):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "source_title": self.source_title,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "link": self.link,
            "author": self.author,
            "published_at": self.published_at.isoformat(),
            "thumbnail_url": self.thumbnail_url,
            "image_url": self.image_url,
            "is_read": self.is_read,
            "is_starred": self.is_starred,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Article":
        return cls(
            id=_require(data, "id", "Article"),
            source_id=_require(data, "source_id", "Article"),
            source_title=data.get("source_title"),
            title=_require(data, "title", "Article"),
            description=data.get("description", ""),
            content=data.get("content", ""),
            link=data.get("link"),
            author=data.get("author"),
            published_at=_parse_timestamp(
                _require(data, "published_at", "Article"), "published_at"
            ),
            thumbnail_url=data.get("thumbnail_url"),
            image_url=data.get("image_url"),
            is_read=bool(data.get("is_read", False)),
            is_starred=bool(data.get("is_starred", False)),
        )


@dataclass(eq=False)
class Source:
    """Represents a subscribed feed and its articles."""

    url: str
    title: str
    description: str
    articles: List[Article] = field(default_factory=list)
    category: Optional[str] = None
    icon: Optional[bytes] = None
    last_updated: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=new_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Source):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def unread_count(self) -> int:
        return sum(1 for a in self.articles if not a.is_read)

    @property
    def starred_count(self) -> int:
        return sum(1 for a in self.articles if a.is_starred)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "icon": base64.b64encode(self.icon).decode("ascii") if self.icon is not None else None,
            "last_updated": self.last_updated.isoformat(),
            "articles": [a.to_dict() for a in self.articles],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Source":
        icon = data.get("icon")
        return cls(
            id=_require(data, "id", "Source"),
            url=_require(data, "url", "Source"),
            title=_require(data, "title", "Source"),
            description=data.get("description", ""),
            category=data.get("category"),
            icon=base64.b64decode(icon) if icon is not None else None,
            last_updated=_parse_timestamp(
                _require(data, "last_updated", "Source"), "last_updated"
            ),
            articles=[Article.from_dict(a) for a in data.get("articles", [])],
        )
