"""Catalog schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from common.logging_config import get_logger
from vault.config import DATABASE_PATH
from vault.exceptions import CatalogError

logger = get_logger(__name__)


def configure_database(path: str) -> None:
    """
    Point the catalog at a different SQLite file.
    """
    global DATABASE_PATH
    DATABASE_PATH = str(path)


def _column_names(cursor: sqlite3.Cursor, table: str) -> set:
    cursor.execute(f"PRAGMA table_info({table})")
    return {row["name"] for row in cursor.fetchall()}


def _migrate_catalog_columns(cursor: sqlite3.Cursor) -> None:
    """
    Add columns missing from catalogs created before status and digests existed.
    """
    if "status" not in _column_names(cursor, "files"):
        logger.info("Migrating catalog: adding files.status")
        cursor.execute("ALTER TABLE files ADD COLUMN status TEXT NOT NULL DEFAULT 'complete'")

    chunk_columns = _column_names(cursor, "file_chunks")
    if "sha256" not in chunk_columns:
        logger.info("Migrating catalog: adding file_chunks.sha256")
        cursor.execute("ALTER TABLE file_chunks ADD COLUMN sha256 TEXT")
    if "size" not in chunk_columns:
        logger.info("Migrating catalog: adding file_chunks.size")
        cursor.execute("ALTER TABLE file_chunks ADD COLUMN size INTEGER")


def init_database() -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    db_path = Path(DATABASE_PATH)
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CatalogError(f"Cannot create catalog directory {db_path.parent}: {e}") from e

    with get_db_connection() as conn:
        try:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS files (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    filename TEXT NOT NULL,
                    filesize INTEGER NOT NULL,
                    chunk_size INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending'
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS file_chunks (
                    file_id INTEGER NOT NULL,
                    idx INTEGER NOT NULL,
                    url TEXT NOT NULL,
                    message_id TEXT NOT NULL,
                    sha256 TEXT,
                    size INTEGER,
                    PRIMARY KEY(file_id, idx),
                    FOREIGN KEY(file_id) REFERENCES files(id) ON DELETE CASCADE
                )
            """)

            _migrate_catalog_columns(cursor)

            conn.commit()
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to initialize catalog at {DATABASE_PATH}: {e}") from e

    logger.debug(f"Catalog ready at {DATABASE_PATH}")


@contextmanager
def get_db_connection(db_path: Optional[str] = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    path = db_path or DATABASE_PATH
    try:
        conn = sqlite3.connect(path)
    except sqlite3.Error as e:
        raise CatalogError(f"Cannot open catalog {path}: {e}") from e
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()
