"""Manages staged chunk payloads on disk: write before upload, read for verify."""

import shutil
from pathlib import Path
from typing import Optional

from common.constants import STAGED_CHUNK_SUFFIX
from common.logging_config import get_logger
from vault.config import STORAGE_PATH
from vault.exceptions import VaultIOError

logger = get_logger(__name__)


class StagingArea:
    """
    Per-file directory of chunk payloads, laid out as <root>/<file_id>/<idx>.chunk.

    The staged file is the multipart body sent to the webhook and later the
    local source for integrity verification.
    """

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root if root is not None else STORAGE_PATH)

    def file_dir(self, file_id: int) -> Path:
        return self.root / str(file_id)

    def chunk_path(self, file_id: int, idx: int) -> Path:
        """
        Get file path for a staged chunk.

        Args:
            file_id: Catalog identifier of the owning file
            idx: Zero-based chunk index

        Returns:
            Path object for chunk file
        """
        return self.file_dir(file_id) / f"{idx}{STAGED_CHUNK_SUFFIX}"

    def write_chunk(self, file_id: int, idx: int, data: bytes) -> Path:
        """
        Write chunk payload to disk and confirm it landed whole.

        Args:
            file_id: Catalog identifier of the owning file
            idx: Zero-based chunk index
            data: Raw chunk payload

        Returns:
            Path to written file

        Raises:
            VaultIOError: If the write fails or the staged size differs from the payload
        """
        path = self.chunk_path(file_id, idx)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            staged_size = path.stat().st_size
        except OSError as e:
            raise VaultIOError(f"Cannot stage chunk {idx} of file {file_id} at {path}: {e}") from e

        if staged_size != len(data):
            raise VaultIOError(
                f"Staged chunk {idx} of file {file_id} is {staged_size} bytes, expected {len(data)}"
            )
        return path

    def read_chunk(self, file_id: int, idx: int) -> bytes:
        """
        Read a staged chunk payload.

        Raises:
            FileNotFoundError: If the chunk was never staged or has been removed
            VaultIOError: If the read fails for another reason
        """
        path = self.chunk_path(file_id, idx)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise
        except OSError as e:
            raise VaultIOError(f"Cannot read staged chunk {path}: {e}") from e

    def remove_file(self, file_id: int) -> bool:
        """
        Delete every staged chunk of a file.

        Returns:
            True if a staging directory was removed, False if none existed
        """
        directory = self.file_dir(file_id)
        if not directory.exists():
            return False
        shutil.rmtree(directory)
        logger.debug(f"Removed staging directory {directory}")
        return True
