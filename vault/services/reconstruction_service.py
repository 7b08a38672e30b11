"""Reconstruction pipeline: catalog lookup -> ordered proxy fetches -> output sink."""

import os
import sys
from pathlib import Path
from typing import BinaryIO, List, Optional

from common.checksum import compute_checksum
from common.logging_config import get_logger
from vault.exceptions import (
    CatalogError,
    IngestionError,
    IntegrityMismatchError,
    NotFoundError,
    VaultIOError,
)
from vault.repositories.chunk_repository import Chunk, ChunkRepository
from vault.repositories.file_repository import File, FileRepository
from vault.webhook_client import WebhookClient, proxied_url

logger = get_logger(__name__)

STDOUT_SENTINEL = "-"


class ReconstructionService:
    """Service for rebuilding catalogued files from their remote chunks."""

    def __init__(self, client: WebhookClient, proxy_base: str):
        self.client = client
        self.proxy_base = proxy_base

    def export(
        self,
        file_id: int,
        out: Optional[str] = None,
        allow_incomplete: bool = False,
    ) -> int:
        """
        Reassemble a file and write it to a sink.

        Args:
            file_id: Catalog identifier
            out: Output path; "-" for standard output; None for the
                catalogued filename in the current directory
            allow_incomplete: Export whatever chunks exist for a file whose
                ingestion did not complete

        Returns:
            Number of bytes written

        Raises:
            NotFoundError: Unknown file identifier
            IngestionError: File was never completely ingested
            CatalogError: Chunk index sequence has gaps
            NetworkError: A chunk could not be fetched
            IntegrityMismatchError: A fetched chunk does not match its digest
            VaultIOError: Output cannot be written
        """
        if out == STDOUT_SENTINEL:
            sink = sys.stdout.buffer
            written = self.write_to(file_id, sink, allow_incomplete)
            sink.flush()
            return written

        file, chunks = self._load(file_id, allow_incomplete)
        target = Path(out) if out else Path(file.filename)
        partial = target.with_name(target.name + ".part")
        try:
            with open(partial, 'wb') as sink:
                written = self._write_chunks(chunks, sink)
            os.replace(partial, target)
        except OSError as e:
            partial.unlink(missing_ok=True)
            raise VaultIOError(f"Cannot write {target}: {e}") from e
        except Exception:
            partial.unlink(missing_ok=True)
            raise

        logger.info(f"Exported file_id={file_id} to {target} ({written} bytes)")
        return written

    def stream(self, file_id: int) -> int:
        """Write a file's bytes to standard output."""
        return self.export(file_id, STDOUT_SENTINEL)

    def write_to(self, file_id: int, sink: BinaryIO, allow_incomplete: bool = False) -> int:
        """Write a file's bytes to an already-open binary sink."""
        _, chunks = self._load(file_id, allow_incomplete)
        return self._write_chunks(chunks, sink)

    def _load(self, file_id: int, allow_incomplete: bool) -> tuple:
        file = FileRepository.get_by_id(file_id)
        if file is None:
            raise NotFoundError(f"No file with id {file_id}")

        if not file.is_complete and not allow_incomplete:
            raise IngestionError(
                f"File {file_id} ({file.filename}) is {file.status}; re-ingest it",
                file_id=file_id,
            )

        chunks = ChunkRepository.get_chunks_by_file(file_id)
        self._check_sequence(file, chunks, allow_incomplete)
        return file, chunks

    @staticmethod
    def _check_sequence(file: File, chunks: List[Chunk], allow_incomplete: bool) -> None:
        indices = [c.idx for c in chunks]
        if indices != list(range(len(indices))) and not allow_incomplete:
            raise CatalogError(f"File {file.id} has a gap in its chunk sequence: {indices}")
        if file.filesize > 0 and not chunks and not allow_incomplete:
            raise CatalogError(f"File {file.id} has no catalogued chunks")

    def _write_chunks(self, chunks: List[Chunk], sink: BinaryIO) -> int:
        written = 0
        for chunk in chunks:
            url = proxied_url(self.proxy_base, chunk.url)
            logger.info(f"Downloading chunk {chunk.idx} via {url}")
            data = self.client.fetch_chunk(url, chunk.idx)

            if chunk.sha256 is not None:
                actual = compute_checksum(data)
                if actual != chunk.sha256:
                    raise IntegrityMismatchError(chunk.idx, chunk.sha256, actual)

            sink.write(data)
            written += len(data)
        return written
