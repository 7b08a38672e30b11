"""
Unit tests for chunk splitting.
"""

import io

import pytest

from vault.exceptions import InvalidArgumentError, VaultIOError
from vault.services.chunker import expected_chunk_count, iter_chunks


class _TrickleStream(io.RawIOBase):
    """Returns at most 3 bytes per read() call."""

    def __init__(self, data: bytes):
        self._data = io.BytesIO(data)

    def readable(self):
        return True

    def read(self, size=-1):
        return self._data.read(min(size, 3) if size and size > 0 else 3)


class _BrokenStream(io.RawIOBase):
    def readable(self):
        return True

    def read(self, size=-1):
        raise OSError("device not ready")


class TestIterChunks:
    """Tests for the lazy splitter."""

    @pytest.mark.parametrize("size", [1, 63, 64, 65, 10 * 64 + 7])
    def test_chunk_count_and_lengths(self, size):
        data = bytes(i % 251 for i in range(size))
        chunks = list(iter_chunks(io.BytesIO(data), 64))

        assert len(chunks) == expected_chunk_count(size, 64)
        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert all(c.size == 64 for c in chunks[:-1])
        assert chunks[-1].size == (size % 64 or 64)
        assert b"".join(c.data for c in chunks) == data

    def test_empty_stream_yields_nothing(self):
        assert list(iter_chunks(io.BytesIO(b""), 64)) == []

    def test_short_reads_still_fill_chunks(self):
        data = b"abcdefghij" * 5
        chunks = list(iter_chunks(_TrickleStream(data), 16))
        assert [c.size for c in chunks] == [16, 16, 16, 2]
        assert b"".join(c.data for c in chunks) == data

    @pytest.mark.parametrize("chunk_size", [0, -5])
    def test_invalid_chunk_size(self, chunk_size):
        with pytest.raises(InvalidArgumentError, match="positive integer"):
            list(iter_chunks(io.BytesIO(b"data"), chunk_size))

    def test_read_failure_raises_io_error(self):
        with pytest.raises(VaultIOError, match="device not ready"):
            list(iter_chunks(_BrokenStream(), 16))

    def test_is_lazy(self):
        stream = io.BytesIO(b"x" * 100)
        iterator = iter_chunks(stream, 10)
        first = next(iterator)
        assert first.index == 0
        assert stream.tell() == 10


class TestFileSources:
    """Splitting real files opened in binary mode."""

    def test_split_exact_multiple(self, tmp_path):
        path = tmp_path / "exact.bin"
        path.write_bytes(b"A" * 128)
        with open(path, 'rb') as f:
            chunks = list(iter_chunks(f, 64))
        assert [c.size for c in chunks] == [64, 64]

    def test_split_empty_file(self, tmp_path):
        path = tmp_path / "empty.bin"
        path.write_bytes(b"")
        with open(path, 'rb') as f:
            assert list(iter_chunks(f, 64)) == []

    def test_chunks_concatenate_to_source(self, sample_file):
        with open(sample_file, 'rb') as f:
            chunks = list(iter_chunks(f, 64))
        assert len(chunks) == 11
        assert b"".join(c.data for c in chunks) == sample_file.read_bytes()


def test_expected_chunk_count():
    assert expected_chunk_count(0, 10) == 0
    assert expected_chunk_count(10, 10) == 1
    assert expected_chunk_count(11, 10) == 2
    with pytest.raises(InvalidArgumentError):
        expected_chunk_count(10, 0)
