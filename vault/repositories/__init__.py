"""Repository layer for catalog access."""

from vault.repositories.file_repository import File, FileRepository
from vault.repositories.chunk_repository import Chunk, ChunkRepository

__all__ = [
    "File",
    "FileRepository",
    "Chunk",
    "ChunkRepository",
]
