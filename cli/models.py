"""Command request and response data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class GlobalOptions:
    """Options accepted before the command name."""

    db_path: Optional[str] = None
    webhook: Optional[str] = None
    proxy_base: Optional[str] = None
    debug: bool = False


@dataclass(frozen=True)
class InitCommand:
    """Create catalog tables if they don't exist."""

    command: Literal["init"] = "init"


@dataclass(frozen=True)
class IngestCommand:
    """Ingest a file as chunks."""

    path: str
    chunk_size: Optional[int] = None
    command: Literal["ingest"] = "ingest"


@dataclass(frozen=True)
class ListCommand:
    """List stored files."""

    command: Literal["list"] = "list"


@dataclass(frozen=True)
class ExportCommand:
    """Reconstruct a stored file by id."""

    file_id: int
    out: Optional[str] = None
    command: Literal["export"] = "export"


@dataclass(frozen=True)
class VerifyCommand:
    """Verify chunk digests of a stored file."""

    file_id: int
    remote: bool = False
    command: Literal["verify"] = "verify"


@dataclass(frozen=True)
class StreamCommand:
    """Write a stored file to standard output."""

    file_id: int
    command: Literal["stream"] = "stream"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a handled command."""

    success: bool
    message: str


CommandRequest = (
    InitCommand
    | IngestCommand
    | ListCommand
    | ExportCommand
    | VerifyCommand
    | StreamCommand
)
