"""Command handler functions for CLI operations."""

import random
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional

import httpx

from common.logging_config import get_logger
from cli.config import Config
from cli.models import (
    CommandResult,
    ExportCommand,
    IngestCommand,
    InitCommand,
    ListCommand,
    StreamCommand,
    VerifyCommand,
)
from cli.utils import format_file_row, format_file_size
from vault.database import configure_database, init_database
from vault.exceptions import VaultException
from vault.repositories.file_repository import FileRepository
from vault.services.ingestion_service import IngestionService
from vault.services.reconstruction_service import STDOUT_SENTINEL, ReconstructionService
from vault.services.upload_executor import UploadExecutor
from vault.services.verification_service import CHUNK_MISMATCH, CHUNK_MISSING, CHUNK_OK, VerificationService
from vault.staging import StagingArea
from vault.webhook_client import WebhookClient

logger = get_logger(__name__)


class VaultContext:
    """
    Wires configuration into the catalog, staging area, HTTP client and services.

    Tests pass an httpx.Client built on a MockTransport plus a no-op sleep.
    """

    def __init__(
        self,
        config: Config,
        http: Optional[httpx.Client] = None,
        sleep: Optional[Callable[[float], None]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.cancel_event = threading.Event()
        self._http = http
        self._sleep = sleep
        self._rng = rng
        self._client: Optional[WebhookClient] = None

        configure_database(config.get_db_path())
        self.staging = StagingArea(config.get_storage_path())

    @property
    def client(self) -> WebhookClient:
        if self._client is None:
            logger.debug("Creating new WebhookClient instance")
            self._client = WebhookClient(
                http=self._http,
                timeout=self.config.get_timeout(),
                rate_limit_budget=self.config.get_rate_limit_budget(),
                sleep=self._sleep,
                rng=self._rng,
                cancel_event=self.cancel_event,
            )
        return self._client

    def ingestion_service(self) -> IngestionService:
        executor = UploadExecutor(
            client=self.client,
            staging=self.staging,
            batch_size=self.config.get_batch_size(),
            sleep=self._sleep,
            rng=self._rng,
            cancel_event=self.cancel_event,
        )
        return IngestionService(executor, keep_staging=self.config.keep_staging())

    def reconstruction_service(self) -> ReconstructionService:
        return ReconstructionService(self.client, self.config.get_proxy_base())

    def verification_service(self) -> VerificationService:
        return VerificationService(
            self.staging,
            client=self.client,
            proxy_base=self.config.get_proxy_base_or_none(),
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


_context: Optional[VaultContext] = None


def get_context() -> VaultContext:
    """
    Get or create global VaultContext instance.

    Returns:
        VaultContext instance
    """
    global _context
    if _context is None:
        _context = VaultContext(Config())
    return _context


def set_context(context: Optional[VaultContext]) -> None:
    global _context
    _context = context


@contextmanager
def _cancel_on_interrupt(cancel_event: threading.Event):
    """First Ctrl-C drains in-flight uploads; a second one aborts immediately."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.getsignal(signal.SIGINT)

    def _handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Interrupted: finishing in-flight uploads (Ctrl-C again to abort)")
        cancel_event.set()

    signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def handle_init(cmd: InitCommand, context: Optional[VaultContext] = None) -> CommandResult:
    """
    Handle 'init' command.

    Args:
        cmd: InitCommand
        context: Optional VaultContext for dependency injection (testing)

    Returns:
        CommandResult with the catalog location
    """
    if context is None:
        context = get_context()
    init_database()
    return CommandResult(True, f"Database initialized at {context.config.get_db_path()}")


def handle_ingest(cmd: IngestCommand, context: Optional[VaultContext] = None) -> CommandResult:
    """
    Handle 'ingest' command.

    Args:
        cmd: IngestCommand with path and optional chunk size
        context: Optional VaultContext for dependency injection (testing)

    Returns:
        CommandResult with the new file id
    """
    if context is None:
        context = get_context()
    logger.info(f"Executing ingest command: path={cmd.path} chunk_size={cmd.chunk_size}")

    init_database()
    webhook = context.config.get_webhook()
    chunk_size = cmd.chunk_size or context.config.get_chunk_size()

    context.cancel_event.clear()
    with _cancel_on_interrupt(context.cancel_event):
        file_id = context.ingestion_service().ingest(Path(cmd.path), webhook, chunk_size)

    return CommandResult(True, f"Ingested '{cmd.path}' with file_id={file_id}")


def handle_list(cmd: ListCommand, context: Optional[VaultContext] = None) -> CommandResult:
    """
    Handle 'list' command.

    Returns:
        CommandResult with one line per stored file
    """
    if context is None:
        context = get_context()
    init_database()
    files = FileRepository.list_files()
    if not files:
        return CommandResult(True, "No files stored.")
    return CommandResult(True, '\n'.join(format_file_row(f) for f in files))


def handle_export(cmd: ExportCommand, context: Optional[VaultContext] = None) -> CommandResult:
    """
    Handle 'export' command.

    Args:
        cmd: ExportCommand with file id and output path ('-' for stdout)
        context: Optional VaultContext for dependency injection (testing)

    Returns:
        CommandResult; empty message when the payload went to stdout
    """
    if context is None:
        context = get_context()
    init_database()
    logger.info(f"Executing export command: file_id={cmd.file_id} out={cmd.out}")
    written = context.reconstruction_service().export(cmd.file_id, cmd.out)
    if cmd.out == STDOUT_SENTINEL:
        logger.info(f"Streamed file_id={cmd.file_id} ({format_file_size(written)})")
        return CommandResult(True, "")
    target = cmd.out or "original filename"
    return CommandResult(True, f"Exported file_id={cmd.file_id} to {target} ({format_file_size(written)})")


def handle_stream(cmd: StreamCommand, context: Optional[VaultContext] = None) -> CommandResult:
    """
    Handle 'stream' command.
    """
    if context is None:
        context = get_context()
    init_database()
    written = context.reconstruction_service().stream(cmd.file_id)
    logger.info(f"Streamed file_id={cmd.file_id} ({format_file_size(written)})")
    return CommandResult(True, "")


def handle_verify(cmd: VerifyCommand, context: Optional[VaultContext] = None) -> CommandResult:
    """
    Handle 'verify' command.

    Returns:
        CommandResult listing every mismatched or missing chunk; success is
        False unless every chunk matched its stored digest
    """
    if context is None:
        context = get_context()
    init_database()
    report = context.verification_service().verify(cmd.file_id, remote=cmd.remote)

    lines = []
    for chunk in report.chunks:
        if chunk.status == CHUNK_MISMATCH:
            lines.append(f"Chunk {chunk.idx}: MISMATCH (stored={chunk.stored}, calc={chunk.calculated})")
        elif chunk.status == CHUNK_MISSING:
            lines.append(f"Chunk {chunk.idx}: MISSING ({chunk.detail})")
        elif chunk.status != CHUNK_OK:
            lines.append(f"Chunk {chunk.idx}: {chunk.status.upper()} ({chunk.detail})")

    if report.ok:
        lines.append(f"All chunks verified for file_id={cmd.file_id}")
    else:
        lines.append(
            f"Verification failed for file_id={cmd.file_id}: "
            f"{sum(c.status == CHUNK_OK for c in report.chunks)} of {len(report.chunks)} chunk(s) OK"
        )
    return CommandResult(report.ok, '\n'.join(lines))


HANDLERS = {
    InitCommand: handle_init,
    IngestCommand: handle_ingest,
    ListCommand: handle_list,
    ExportCommand: handle_export,
    VerifyCommand: handle_verify,
    StreamCommand: handle_stream,
}


def dispatch_command(cmd_obj, context: Optional[VaultContext] = None) -> CommandResult:
    """
    Dispatch parsed command to appropriate handler.

    Vault errors become a failed CommandResult; anything else propagates.
    """
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return CommandResult(False, f"Unknown command type: {type(cmd_obj)}")
    try:
        return handler(cmd_obj, context)
    except VaultException as e:
        logger.debug(f"{cmd_obj.command} failed: {e}", exc_info=True)
        return CommandResult(False, f"Error: {e}")
