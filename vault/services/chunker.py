"""
Splits a byte stream into fixed-size, ordered chunks.

Indices are assigned in read order starting at 0 with no gaps. Every payload
is exactly chunk_size bytes except possibly the last one.
"""

import math
from typing import BinaryIO, Iterator

from common.types import ChunkPayload
from vault.exceptions import InvalidArgumentError, VaultIOError


def validate_chunk_size(chunk_size: int) -> None:
    """Reject chunk sizes that are not positive integers."""
    if not isinstance(chunk_size, int) or chunk_size <= 0:
        raise InvalidArgumentError(f"Chunk size must be a positive integer, got {chunk_size!r}")


def expected_chunk_count(total_size: int, chunk_size: int) -> int:
    """Number of chunks a file of total_size bytes splits into."""
    validate_chunk_size(chunk_size)
    return math.ceil(total_size / chunk_size)


def iter_chunks(stream: BinaryIO, chunk_size: int) -> Iterator[ChunkPayload]:
    """
    Lazily split a readable binary stream into chunks.

    Args:
        stream: Source opened in binary mode
        chunk_size: Payload size in bytes

    Yields:
        ChunkPayload in strictly increasing index order

    Raises:
        InvalidArgumentError: If chunk_size is not positive
        VaultIOError: If the stream cannot be read to the end
    """
    validate_chunk_size(chunk_size)

    index = 0
    while True:
        buffer = bytearray()
        try:
            # read() may return short; keep reading until the chunk is full or EOF
            while len(buffer) < chunk_size:
                piece = stream.read(chunk_size - len(buffer))
                if not piece:
                    break
                buffer.extend(piece)
        except OSError as e:
            raise VaultIOError(f"Failed reading chunk {index} from source: {e}") from e

        if not buffer:
            return

        yield ChunkPayload(index=index, data=bytes(buffer))
        index += 1

        if len(buffer) < chunk_size:
            return
