"""Persistent, URL-deduplicated collection of captured images."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import List, Optional

from .config import SCHEMA_VERSION
from .errors import DuplicateUrl, StorageUnavailable
from .models import ImageDescriptor, ImageRecord

logger = logging.getLogger("clipnest.store")

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    source_page TEXT NOT NULL DEFAULT ''
)
"""
_CREATE_URL_INDEX = "CREATE UNIQUE INDEX IF NOT EXISTS idx_images_url ON images(url)"
_CREATE_TIMESTAMP_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_images_timestamp ON images(timestamp)"
)

# Statements applied when upgrading from version N-1 to N. Each step must
# preserve existing rows.
_UPGRADES = {
    1: (_CREATE_TABLE, _CREATE_URL_INDEX, _CREATE_TIMESTAMP_INDEX),
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _row_to_record(row: sqlite3.Row) -> ImageRecord:
    return ImageRecord(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        timestamp=row["timestamp"],
        source_page=row["source_page"],
    )


class ImageRecordStore:
    """SQLite-backed store enforcing one record per resolved image URL.

    Every operation opens its own connection, so several store instances (or
    processes) may point at the same file. Inserts from one instance are
    serialized by a lock; across instances the ``UNIQUE`` index decides which
    insert of a given URL wins.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path).expanduser()
        self._write_lock = threading.Lock()
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), timeout=10.0)
        except (OSError, sqlite3.Error) as exc:
            raise StorageUnavailable(f"Cannot open {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        conn = self._connect()
        try:
            with conn:
                # Take the write lock before reading the version so two
                # openers cannot both run the same upgrade step.
                conn.execute("BEGIN IMMEDIATE")
                current = conn.execute("PRAGMA user_version").fetchone()[0]
                if current > SCHEMA_VERSION:
                    raise StorageUnavailable(
                        f"{self.db_path} has schema version {current}, "
                        f"newer than supported version {SCHEMA_VERSION}"
                    )
                for version in range(current + 1, SCHEMA_VERSION + 1):
                    logger.info(
                        "Upgrading image store %s to schema version %d",
                        self.db_path,
                        version,
                    )
                    for statement in _UPGRADES[version]:
                        conn.execute(statement)
                if current < SCHEMA_VERSION:
                    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        except sqlite3.Error as exc:
            raise StorageUnavailable(
                f"Cannot initialise image store {self.db_path}: {exc}"
            ) from exc
        finally:
            conn.close()

    def insert(self, descriptor: ImageDescriptor, source_page: str) -> ImageRecord:
        """Persist ``descriptor`` and return the stored record.

        Raises:
            DuplicateUrl: if a record with the same URL already exists. The
                existing record is left untouched.
            StorageUnavailable: if the database cannot be written.
        """
        timestamp = _now_ms()
        with self._write_lock:
            conn = self._connect()
            try:
                with conn:
                    cursor = conn.execute(
                        "INSERT INTO images (url, timestamp, title, source_page) "
                        "VALUES (?, ?, ?, ?)",
                        (descriptor.url, timestamp, descriptor.title or "", source_page),
                    )
                    record_id = cursor.lastrowid
            except sqlite3.IntegrityError as exc:
                logger.debug("Rejected duplicate image %s: %s", descriptor.url, exc)
                raise DuplicateUrl(descriptor.url) from exc
            except sqlite3.Error as exc:
                raise StorageUnavailable(
                    f"Failed to save {descriptor.url}: {exc}"
                ) from exc
            finally:
                conn.close()
        logger.info("Collected %s (id=%d)", descriptor.url, record_id)
        return ImageRecord(
            id=record_id,
            url=descriptor.url,
            title=descriptor.title or "",
            timestamp=timestamp,
            source_page=source_page,
        )

    def list(self) -> List[ImageRecord]:
        """Return every record ordered by capture time, then by id."""
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT id, url, timestamp, title, source_page FROM images "
                "ORDER BY timestamp ASC, id ASC"
            ).fetchall()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Failed to read {self.db_path}: {exc}") from exc
        finally:
            conn.close()
        return [_row_to_record(row) for row in rows]

    def get(self, url: str) -> Optional[ImageRecord]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, url, timestamp, title, source_page FROM images WHERE url = ?",
                (url,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Failed to read {self.db_path}: {exc}") from exc
        finally:
            conn.close()
        return _row_to_record(row) if row else None

    async def insert_async(
        self, descriptor: ImageDescriptor, source_page: str
    ) -> ImageRecord:
        return await asyncio.to_thread(self.insert, descriptor, source_page)

    async def list_async(self) -> List[ImageRecord]:
        return await asyncio.to_thread(self.list)
