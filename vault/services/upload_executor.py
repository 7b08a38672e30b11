"""Bounded-concurrency chunk uploader with per-slot request spacing."""

import itertools
import queue
import random
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Union

from common.checksum import compute_checksum
from common.constants import (
    UPLOAD_BATCH_SIZE,
    UPLOAD_THROTTLE_MAX_SECONDS,
    UPLOAD_THROTTLE_MIN_SECONDS,
)
from common.logging_config import get_logger
from common.types import ChunkPayload, UploadFailure, UploadResult
from vault.exceptions import InvalidArgumentError, UploadExhaustedError, VaultIOError
from vault.staging import StagingArea
from vault.webhook_client import WebhookClient

logger = get_logger(__name__)


@dataclass
class UploadOutcome:
    """
    Aggregated result of uploading every chunk of one file.

    Attributes:
        results: Successful uploads, sorted by chunk index
        failures: Chunks that failed permanently, sorted by chunk index
        cancelled: True if the run stopped early because of cancellation
        skipped: Indices never dispatched because of cancellation
    """
    results: List[UploadResult] = field(default_factory=list)
    failures: List[UploadFailure] = field(default_factory=list)
    cancelled: bool = False
    skipped: List[int] = field(default_factory=list)

    @property
    def failed_indices(self) -> List[int]:
        return [f.index for f in self.failures]

    @property
    def ok(self) -> bool:
        return not self.failures and not self.cancelled


class UploadExecutor:
    """
    Uploads chunks in sequential batches; every chunk in a batch runs on its
    own worker thread, so at most batch_size uploads are in flight.

    Each worker stages its payload, uploads it, and then holds its slot for a
    random 2-6 second pause before finishing. Workers never share state: each
    one puts its own UploadResult or UploadFailure on a queue that the
    dispatching thread drains after the batch completes.
    """

    def __init__(
        self,
        client: WebhookClient,
        staging: StagingArea,
        batch_size: int = UPLOAD_BATCH_SIZE,
        throttle_range: tuple = (UPLOAD_THROTTLE_MIN_SECONDS, UPLOAD_THROTTLE_MAX_SECONDS),
        sleep: Optional[Callable[[float], None]] = None,
        rng: Optional[random.Random] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        if batch_size <= 0:
            raise InvalidArgumentError(f"Batch size must be positive, got {batch_size}")
        self.client = client
        self.staging = staging
        self.batch_size = batch_size
        self.throttle_range = throttle_range
        self.cancel_event = cancel_event or threading.Event()
        self._rng = rng or random.Random()
        self._sleep = sleep or self.cancel_event.wait

    def cancel(self) -> None:
        """Stop dispatching new batches; in-flight uploads finish."""
        logger.warning("Upload cancellation requested, draining in-flight chunks")
        self.cancel_event.set()

    def upload_all(
        self,
        file_id: int,
        chunks: Iterable[ChunkPayload],
        webhook_url: str,
    ) -> UploadOutcome:
        """
        Upload every chunk of a file.

        Args:
            file_id: Catalog identifier used for the staging directory
            chunks: Chunks in any order; may be a lazy iterator
            webhook_url: Destination endpoint

        Returns:
            UploadOutcome with results sorted by index
        """
        outcome = UploadOutcome()
        collected: "queue.Queue[Union[UploadResult, UploadFailure]]" = queue.Queue()
        iterator = iter(chunks)
        batch_number = 0

        while True:
            batch = list(itertools.islice(iterator, self.batch_size))
            if not batch:
                break

            if self.cancel_event.is_set():
                outcome.cancelled = True
                outcome.skipped.extend(c.index for c in batch)
                outcome.skipped.extend(c.index for c in iterator)
                break

            batch_number += 1
            logger.debug(
                f"Dispatching batch {batch_number}: chunks {[c.index for c in batch]} [file_id={file_id}]"
            )

            workers = [
                threading.Thread(
                    target=self._upload_one,
                    args=(file_id, chunk, webhook_url, collected),
                    name=f"upload-{file_id}-{chunk.index}",
                    daemon=True,
                )
                for chunk in batch
            ]
            for worker in workers:
                worker.start()
            for worker in workers:
                worker.join()

            self._drain(collected, outcome)

        self._drain(collected, outcome)
        if self.cancel_event.is_set():
            outcome.cancelled = True

        outcome.results.sort(key=lambda r: r.index)
        outcome.failures.sort(key=lambda f: f.index)
        outcome.skipped.sort()

        logger.info(
            f"Upload finished [file_id={file_id}]: {len(outcome.results)} succeeded, "
            f"{len(outcome.failures)} failed, {len(outcome.skipped)} skipped"
        )
        return outcome

    @staticmethod
    def _drain(collected: queue.Queue, outcome: UploadOutcome) -> None:
        while True:
            try:
                item = collected.get_nowait()
            except queue.Empty:
                return
            if isinstance(item, UploadResult):
                outcome.results.append(item)
            else:
                outcome.failures.append(item)

    def _upload_one(
        self,
        file_id: int,
        chunk: ChunkPayload,
        webhook_url: str,
        collected: queue.Queue,
    ) -> None:
        try:
            path = self.staging.write_chunk(file_id, chunk.index, chunk.data)
            message_id, url = self.client.upload_chunk(webhook_url, chunk.index, path)
            collected.put(UploadResult(
                index=chunk.index,
                message_id=message_id,
                url=url,
                sha256=compute_checksum(chunk.data),
                size=chunk.size,
            ))
            logger.info(f"[Chunk {chunk.index}] Uploaded {chunk.size} bytes")
        except (UploadExhaustedError, VaultIOError) as e:
            logger.error(f"[Chunk {chunk.index}] Failed permanently: {e}")
            collected.put(UploadFailure(index=chunk.index, error=str(e)))
        except Exception as e:
            # A worker thread has no caller to raise into
            logger.error(f"[Chunk {chunk.index}] Unexpected upload error: {e}", exc_info=True)
            collected.put(UploadFailure(index=chunk.index, error=f"{type(e).__name__}: {e}"))
        finally:
            delay = self._rng.uniform(*self.throttle_range)
            logger.debug(f"[Chunk {chunk.index}] Holding slot for {delay:.1f}s")
            self._sleep(delay)
