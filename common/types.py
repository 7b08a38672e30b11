"""Shared in-memory data types (ChunkPayload, UploadResult, etc.)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ChunkPayload:
    """
    One ordered fragment of a source file, held in memory before upload.
    """
    index: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class UploadResult:
    """
    Locator produced by a successful chunk upload.
    """
    index: int
    message_id: str
    url: str
    sha256: str
    size: int


@dataclass(frozen=True)
class UploadFailure:
    """
    Chunk that exhausted its retry budget.
    """
    index: int
    error: str
