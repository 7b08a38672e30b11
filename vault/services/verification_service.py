"""Integrity verification of catalogued chunks against their stored SHA-256 digests."""

from dataclasses import dataclass, field
from typing import List, Optional

from common.checksum import compute_checksum
from common.logging_config import get_logger
from vault.exceptions import ConfigurationError, NetworkError, NotFoundError
from vault.repositories.chunk_repository import ChunkRepository
from vault.repositories.file_repository import FileRepository
from vault.staging import StagingArea
from vault.webhook_client import WebhookClient, proxied_url

logger = get_logger(__name__)

CHUNK_OK = "ok"
CHUNK_MISMATCH = "mismatch"
CHUNK_MISSING = "missing"
CHUNK_UNVERIFIABLE = "unverifiable"


@dataclass
class ChunkVerification:
    idx: int
    status: str
    stored: Optional[str] = None
    calculated: Optional[str] = None
    detail: Optional[str] = None


@dataclass
class VerificationReport:
    file_id: int
    chunks: List[ChunkVerification] = field(default_factory=list)

    @property
    def mismatched(self) -> List[int]:
        return [c.idx for c in self.chunks if c.status == CHUNK_MISMATCH]

    @property
    def missing(self) -> List[int]:
        return [c.idx for c in self.chunks if c.status == CHUNK_MISSING]

    @property
    def unverifiable(self) -> List[int]:
        return [c.idx for c in self.chunks if c.status == CHUNK_UNVERIFIABLE]

    @property
    def ok(self) -> bool:
        return all(c.status == CHUNK_OK for c in self.chunks)


class VerificationService:
    """
    Recomputes chunk digests and compares them with the catalog.

    Payloads come from the local staging area; with remote=True, or when a
    staged copy is gone and a proxy is configured, they are re-downloaded.
    A mismatch is recorded and the scan continues.
    """

    def __init__(
        self,
        staging: StagingArea,
        client: Optional[WebhookClient] = None,
        proxy_base: Optional[str] = None,
    ):
        self.staging = staging
        self.client = client
        self.proxy_base = proxy_base

    def _can_fetch(self) -> bool:
        return self.client is not None and bool(self.proxy_base)

    def verify(self, file_id: int, remote: bool = False) -> VerificationReport:
        """
        Verify every chunk of a file.

        Args:
            file_id: Catalog identifier
            remote: Re-download payloads through the proxy instead of
                reading the staged copies

        Returns:
            VerificationReport with one entry per catalogued chunk

        Raises:
            NotFoundError: Unknown file identifier
            ConfigurationError: remote=True without a client and proxy base
        """
        file = FileRepository.get_by_id(file_id)
        if file is None:
            raise NotFoundError(f"No file with id {file_id}")
        if remote and not self._can_fetch():
            raise ConfigurationError("Remote verification needs a proxy base URL")

        report = VerificationReport(file_id=file_id)
        for chunk in ChunkRepository.get_chunks_by_file(file_id):
            if chunk.sha256 is None:
                report.chunks.append(ChunkVerification(
                    idx=chunk.idx, status=CHUNK_UNVERIFIABLE, detail="no stored digest"
                ))
                logger.warning(f"Chunk {chunk.idx}: no stored digest, skipped")
                continue

            data = self._load_payload(file_id, chunk, remote)
            if isinstance(data, ChunkVerification):
                report.chunks.append(data)
                continue

            calculated = compute_checksum(data)
            if calculated != chunk.sha256:
                logger.warning(
                    f"Chunk {chunk.idx}: MISMATCH (stored={chunk.sha256}, calc={calculated})"
                )
                report.chunks.append(ChunkVerification(
                    idx=chunk.idx, status=CHUNK_MISMATCH,
                    stored=chunk.sha256, calculated=calculated,
                ))
            else:
                logger.debug(f"Chunk {chunk.idx}: OK")
                report.chunks.append(ChunkVerification(
                    idx=chunk.idx, status=CHUNK_OK,
                    stored=chunk.sha256, calculated=calculated,
                ))

        if report.ok:
            logger.info(f"All chunks verified for file_id={file_id}")
        else:
            logger.warning(
                f"Verification failed for file_id={file_id}: mismatched={report.mismatched} "
                f"missing={report.missing} unverifiable={report.unverifiable}"
            )
        return report

    def _load_payload(self, file_id: int, chunk, remote: bool):
        """Return chunk bytes, or a ChunkVerification describing why none are available."""
        if not remote:
            try:
                return self.staging.read_chunk(file_id, chunk.idx)
            except FileNotFoundError:
                if not self._can_fetch():
                    logger.warning(f"Chunk {chunk.idx}: staged copy missing")
                    return ChunkVerification(
                        idx=chunk.idx, status=CHUNK_MISSING, stored=chunk.sha256,
                        detail="staged copy missing",
                    )
                logger.info(f"Chunk {chunk.idx}: staged copy missing, fetching remotely")

        try:
            return self.client.fetch_chunk(proxied_url(self.proxy_base, chunk.url), chunk.idx)
        except NetworkError as e:
            logger.warning(f"Chunk {chunk.idx}: download failed: {e}")
            return ChunkVerification(
                idx=chunk.idx, status=CHUNK_MISSING, stored=chunk.sha256, detail=str(e)
            )
