"""File repository for catalog operations."""

import re
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from common.logging_config import get_logger
from vault.database import get_db_connection
from vault.exceptions import CatalogError

logger = get_logger(__name__)

STATUS_PENDING = "pending"
STATUS_COMPLETE = "complete"
STATUS_INCOMPLETE = "incomplete"


@dataclass
class File:
    id: int
    filename: str
    filesize: int
    chunk_size: int
    created_at: datetime
    status: str = STATUS_COMPLETE

    @property
    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETE


_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """
    Parse a stored created_at value.

    Catalogs written by other tools hold RFC 3339 strings with any number of
    fractional digits (often nine) or a trailing 'Z', neither of which
    datetime.fromisoformat accepts before Python 3.11.

    Raises:
        CatalogError: If the value is not a timestamp
    """
    normalized = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value.strip())
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(normalized)
    except ValueError as e:
        raise CatalogError(f"Unreadable created_at timestamp {value!r}: {e}") from e


def _row_to_file(row: sqlite3.Row) -> File:
    return File(
        id=row["id"],
        filename=row["filename"],
        filesize=row["filesize"],
        chunk_size=row["chunk_size"],
        created_at=parse_timestamp(row["created_at"]),
        status=row["status"],
    )


class FileRepository:
    @staticmethod
    def create_file(
        filename: str,
        filesize: int,
        chunk_size: int,
        created_at: datetime,
        status: str = STATUS_PENDING,
        conn=None
    ) -> File:
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO files (filename, filesize, chunk_size, created_at, status)
                VALUES (?, ?, ?, ?, ?)
                """,
                (filename, filesize, chunk_size, created_at.isoformat(), status)
            )
            file_id = cursor.lastrowid
            if should_close:
                conn.commit()

            logger.info(f"Created file record [file_id={file_id}, filename={filename}, size={filesize}]")
            return File(
                id=file_id,
                filename=filename,
                filesize=filesize,
                chunk_size=chunk_size,
                created_at=created_at,
                status=status,
            )
        except sqlite3.Error as e:
            logger.error(f"Failed to create file record [filename={filename}]: {e}", exc_info=True)
            raise CatalogError(f"Failed to insert file record for {filename}: {e}") from e
        finally:
            if should_close:
                conn.close()

    @staticmethod
    def get_by_id(file_id: int) -> Optional[File]:
        try:
            with get_db_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT id, filename, filesize, chunk_size, created_at, status FROM files WHERE id = ?",
                    (file_id,)
                )
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to look up file {file_id}: {e}") from e

        if row is None:
            return None
        return _row_to_file(row)

    @staticmethod
    def list_files() -> List[File]:
        try:
            with get_db_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT id, filename, filesize, chunk_size, created_at, status FROM files ORDER BY id"
                )
                rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to list files: {e}") from e

        return [_row_to_file(row) for row in rows]

    @staticmethod
    def set_status(file_id: int, status: str, conn=None) -> None:
        logger.debug(f"Setting file status [file_id={file_id}, status={status}]")
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.execute("UPDATE files SET status = ? WHERE id = ?", (status, file_id))
            if should_close:
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to update file status [file_id={file_id}]: {e}", exc_info=True)
            raise CatalogError(f"Failed to update status of file {file_id}: {e}") from e
        finally:
            if should_close:
                conn.close()
