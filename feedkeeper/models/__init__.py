"""Data models for feedkeeper."""

from .schemas import Article, Source

__all__ = ["Article", "Source"]
