"""Storage layer for feedkeeper."""

from .database import (
    get_database,
    init_database,
    save_source,
    get_source,
    load_sources,
    delete_source,
    serialize_source,
    deserialize_source,
    close_database,
)

__all__ = [
    "get_database",
    "init_database",
    "save_source",
    "get_source",
    "load_sources",
    "delete_source",
    "serialize_source",
    "deserialize_source",
    "close_database",
]
