"""Database storage for feedkeeper.

This module keeps a mapping from source id to the source's full serialized
state (``Source.to_dict`` as JSON) in SQLite, using aiosqlite.
Database location: ``db_path`` from the configuration, or the
FEEDKEEPER_DB_PATH env var.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import aiosqlite

from feedkeeper.config import get_config
from feedkeeper.models.schemas import Source


def _get_db_path() -> Path:
    """Get the database path, respecting FEEDKEEPER_DB_PATH env var for testing."""
    env_path = os.environ.get("FEEDKEEPER_DB_PATH")
    if env_path:
        return Path(env_path)
    return Path(get_config().db_path).expanduser()


# Singleton connection
_db_connection: Optional[aiosqlite.Connection] = None


async def get_database() -> aiosqlite.Connection:
    """Get or create a singleton database connection.

    Returns:
        Active database connection
    """
    global _db_connection

    if _db_connection is None:
        db_path = _get_db_path()
        # Ensure directory exists
        db_path.parent.mkdir(parents=True, exist_ok=True)

        _db_connection = await aiosqlite.connect(db_path)
        _db_connection.row_factory = aiosqlite.Row
        await init_database(_db_connection)

    return _db_connection


async def init_database(db: Optional[aiosqlite.Connection] = None) -> None:
    """Initialize database tables if they don't exist.

    Args:
        db: Optional database connection (uses singleton if not provided)
    """
    if db is None:
        db = await get_database()

    await db.execute("""
        CREATE TABLE IF NOT EXISTS sources (
            id TEXT PRIMARY KEY,
            url TEXT NOT NULL,
            state TEXT NOT NULL,
            saved_at TIMESTAMP
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_sources_url ON sources(url)
    """)

    await db.commit()


def serialize_source(source: Source) -> str:
    return json.dumps(source.to_dict(), ensure_ascii=False)


def deserialize_source(state: str) -> Source:
    return Source.from_dict(json.loads(state))


async def save_source(source: Source) -> None:
    """Insert or replace the stored state of a source.

    Args:
        source: Source to store
    """
    db = await get_database()

    await db.execute(
        """
        INSERT INTO sources (id, url, state, saved_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            url = excluded.url,
            state = excluded.state,
            saved_at = excluded.saved_at
        """,
        (
            source.id,
            source.url,
            serialize_source(source),
            datetime.now(timezone.utc).isoformat(),
        ),
    )
    await db.commit()


async def get_source(source_id: str) -> Optional[Source]:
    """Get a source by its id.

    Args:
        source_id: Id of the source

    Returns:
        Source if found, None otherwise
    """
    db = await get_database()

    cursor = await db.execute("SELECT state FROM sources WHERE id = ?", (source_id,))
    row = await cursor.fetchone()

    if row is None:
        return None

    return deserialize_source(row["state"])


async def load_sources() -> List[Source]:
    """Load every stored source in the order they were first saved.

    Returns:
        List of Source objects
    """
    db = await get_database()

    cursor = await db.execute("SELECT state FROM sources ORDER BY rowid")

    sources = []
    async for row in cursor:
        sources.append(deserialize_source(row["state"]))

    return sources


async def delete_source(source_id: str) -> bool:
    """Delete a source; its articles live in its state and go with it.

    Args:
        source_id: Id of the source to remove

    Returns:
        True if a row was deleted
    """
    db = await get_database()

    cursor = await db.execute("DELETE FROM sources WHERE id = ?", (source_id,))
    await db.commit()

    return cursor.rowcount > 0


async def close_database() -> None:
    """Close the database connection."""
    global _db_connection

    if _db_connection is not None:
        await _db_connection.close()
        _db_connection = None
