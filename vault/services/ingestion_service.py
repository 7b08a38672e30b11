"""Ingestion pipeline: source file -> chunks -> webhook uploads -> catalog rows."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from vault.config import DEFAULT_CHUNK_SIZE
from vault.database import get_db_connection
from vault.exceptions import (
    CatalogError,
    IngestionCancelledError,
    IngestionError,
    VaultIOError,
)
from vault.repositories.chunk_repository import Chunk, ChunkRepository
from vault.repositories.file_repository import (
    STATUS_COMPLETE,
    STATUS_INCOMPLETE,
    FileRepository,
)
from vault.services.chunker import expected_chunk_count, iter_chunks, validate_chunk_size
from vault.services.upload_executor import UploadExecutor, UploadOutcome
from vault.staging import StagingArea

logger = get_logger(__name__)


class IngestionService:
    """
    Service for storing local files as catalogued remote chunks.

    A file is catalogued as complete only when every chunk uploaded. Any
    permanent chunk failure, cancellation or read error leaves the file
    record marked incomplete with no chunk rows and raises IngestionError.
    """

    def __init__(
        self,
        executor: UploadExecutor,
        staging: Optional[StagingArea] = None,
        keep_staging: bool = True,
    ):
        self.executor = executor
        self.staging = staging or executor.staging
        self.keep_staging = keep_staging

    def ingest(
        self,
        path: Path,
        webhook_url: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> int:
        """
        Ingest a local file.

        Args:
            path: Source file
            webhook_url: Upload destination
            chunk_size: Chunk size in bytes, recorded on the file record

        Returns:
            New catalog file identifier

        Raises:
            InvalidArgumentError: If chunk_size is not positive
            IngestionError: If the source cannot be read, the file record
                cannot be created, or not every chunk was catalogued
        """
        path = Path(path)
        validate_chunk_size(chunk_size)

        try:
            if not path.is_file():
                raise IngestionError(f"Not a readable file: {path}")
            source = open(path, 'rb')
        except OSError as e:
            raise IngestionError(f"Cannot open {path}: {e}") from e

        with source:
            try:
                filesize = path.stat().st_size
            except OSError as e:
                raise IngestionError(f"Cannot stat {path}: {e}") from e

            expected_chunks = expected_chunk_count(filesize, chunk_size)
            logger.info(
                f"Ingesting {path.name}: {filesize} bytes as {expected_chunks} chunk(s) of {chunk_size} bytes"
            )

            try:
                file = FileRepository.create_file(
                    filename=path.name,
                    filesize=filesize,
                    chunk_size=chunk_size,
                    created_at=datetime.now(timezone.utc),
                )
            except CatalogError as e:
                raise IngestionError(f"Cannot create file record for {path}: {e}") from e

            try:
                outcome = self.executor.upload_all(file.id, iter_chunks(source, chunk_size), webhook_url)
            except VaultIOError as e:
                self._mark_incomplete(file.id)
                raise IngestionError(f"Failed reading {path}: {e}", file_id=file.id) from e
            except KeyboardInterrupt:
                # workers are daemon threads; stop their retries before the client closes
                self.executor.cancel_event.set()
                self._mark_incomplete(file.id)
                logger.warning(f"Ingestion of file {file.id} aborted, marked {STATUS_INCOMPLETE}")
                raise

        self._check_outcome(file.id, outcome, filesize, expected_chunks)

        rows = [
            Chunk(
                file_id=file.id,
                idx=result.index,
                url=result.url,
                message_id=result.message_id,
                sha256=result.sha256,
                size=result.size,
            )
            for result in outcome.results
        ]

        try:
            with get_db_connection() as conn:
                ChunkRepository.create_chunks(rows, conn=conn)
                FileRepository.set_status(file.id, STATUS_COMPLETE, conn=conn)
                conn.commit()
        except CatalogError as e:
            self._mark_incomplete(file.id)
            raise IngestionError(f"Cannot catalogue chunks of file {file.id}: {e}", file_id=file.id) from e

        if not self.keep_staging:
            self.staging.remove_file(file.id)

        logger.info(f"Ingested '{path}' with file_id={file.id} ({len(rows)} chunks)")
        return file.id

    def _check_outcome(
        self,
        file_id: int,
        outcome: UploadOutcome,
        filesize: int,
        expected_chunks: int,
    ) -> None:
        if outcome.cancelled:
            self._mark_incomplete(file_id)
            raise IngestionCancelledError(
                f"Ingestion of file {file_id} cancelled: {len(outcome.results)} uploaded, "
                f"{len(outcome.skipped)} never sent",
                file_id=file_id,
                failed_indices=outcome.failed_indices + outcome.skipped,
            )

        if outcome.failures:
            self._mark_incomplete(file_id)
            raise IngestionError(
                f"File {file_id}: {len(outcome.failures)} chunk(s) failed permanently "
                f"(indices {outcome.failed_indices})",
                file_id=file_id,
                failed_indices=outcome.failed_indices,
            )

        indices = [r.index for r in outcome.results]
        uploaded_bytes = sum(r.size for r in outcome.results)
        if indices != list(range(expected_chunks)) or uploaded_bytes != filesize:
            self._mark_incomplete(file_id)
            raise IngestionError(
                f"File {file_id}: uploaded {len(indices)} chunk(s) / {uploaded_bytes} bytes, "
                f"expected {expected_chunks} chunk(s) / {filesize} bytes (source changed while reading?)",
                file_id=file_id,
            )

    @staticmethod
    def _mark_incomplete(file_id: int) -> None:
        try:
            FileRepository.set_status(file_id, STATUS_INCOMPLETE)
        except CatalogError as e:
            logger.error(f"Could not mark file {file_id} incomplete: {e}")
