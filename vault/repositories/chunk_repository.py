"""Chunk repository for catalog operations."""

import sqlite3
from dataclasses import dataclass
from typing import List, Optional

from common.logging_config import get_logger
from vault.database import get_db_connection
from vault.exceptions import CatalogError

logger = get_logger(__name__)


@dataclass
class Chunk:
    file_id: int
    idx: int
    url: str
    message_id: str
    sha256: Optional[str] = None
    size: Optional[int] = None


class ChunkRepository:
    @staticmethod
    def create_chunks(chunks: List[Chunk], conn=None) -> None:
        """
        Insert chunk rows in ascending index order.
        """
        if not chunks:
            return

        ordered = sorted(chunks, key=lambda c: c.idx)
        logger.debug(f"Creating {len(ordered)} chunks for file_id={ordered[0].file_id}")
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            for chunk in ordered:
                cursor.execute(
                    """
                    INSERT INTO file_chunks (file_id, idx, url, message_id, sha256, size)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (chunk.file_id, chunk.idx, chunk.url, chunk.message_id, chunk.sha256, chunk.size)
                )
            if should_close:
                conn.commit()
            logger.info(f"Created {len(ordered)} chunks successfully [file_id={ordered[0].file_id}]")
        except sqlite3.Error as e:
            logger.error(f"Failed to create chunks: {e}", exc_info=True)
            raise CatalogError(f"Failed to insert chunk records: {e}") from e
        finally:
            if should_close:
                conn.close()

    @staticmethod
    def get_chunks_by_file(file_id: int) -> List[Chunk]:
        try:
            with get_db_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    SELECT file_id, idx, url, message_id, sha256, size
                    FROM file_chunks
                    WHERE file_id = ?
                    ORDER BY idx ASC
                    """,
                    (file_id,)
                )
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to read chunks of file {file_id}: {e}") from e

        return [
            Chunk(
                file_id=row["file_id"],
                idx=row["idx"],
                url=row["url"],
                message_id=row["message_id"],
                sha256=row["sha256"],
                size=row["size"],
            )
            for row in rows
        ]
