"""Utility functions for CLI output."""

from vault.repositories.file_repository import File


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_file_row(file: File) -> str:
    """One line of 'list' output."""
    status = "" if file.is_complete else f" [{file.status}]"
    return (
        f"id={file.id:<3} size={file.filesize:<10} ({format_file_size(file.filesize)}) "
        f"chunk_size={file.chunk_size:<7} created_at={file.created_at.isoformat()} "
        f"file={file.filename}{status}"
    )
