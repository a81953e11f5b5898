"""
Filesystem utilities for rollkeeper.

This module provides safe helpers for reading, atomically writing and
removing the state and preference files rollkeeper manages, together with
path containment checks. All filesystem errors are normalized to
``FileOperationError``.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from rollkeeper.utils.logger import get_logger
from rollkeeper.exceptions import FileOperationError
from rollkeeper.constants import MAX_FILE_SIZE


logger = get_logger("filesystem")

PathLike = Union[str, Path]

#: Permission bits for files APT must be able to read.
PUBLIC_FILE_MODE = 0o644


def _atomic_write(target: Path, content: str, *, mode: int = PUBLIC_FILE_MODE) -> None:
    """Atomically write text to a file using a temporary file + replace."""
    temp_path: Optional[Path] = None

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(target.parent),
            delete=False,
            prefix=f".{target.name}.",
            suffix=".tmp",
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())

        os.chmod(temp_path, mode)
        temp_path.replace(target)

    except Exception as exc:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
                logger.debug("Cleaned up temporary file: %s", temp_path)
            except OSError as cleanup_exc:
                logger.warning(
                    "Failed to clean up temporary file %s: %s",
                    temp_path,
                    cleanup_exc,
                )

        raise FileOperationError(
            f"Atomic write failed: {exc}",
            file_path=str(target),
            operation="write",
            original_error=exc,
        ) from exc


def safe_read_file(
    file_path: PathLike,
    *,
    max_size: Optional[int] = MAX_FILE_SIZE,
    encoding: str = "utf-8",
) -> str:
    """Safely read a text file with optional size limits.

    Args:
        file_path: Path to the file.
        max_size: Maximum allowed file size in bytes (None disables limit).
        encoding: Text encoding.

    Returns:
        File contents as a string.
    """
    path = Path(file_path)
    if not path.is_file():
        raise FileOperationError(
            f"File not found: {path}",
            file_path=str(path),
            operation="read",
        )

    try:
        size = path.stat().st_size
        if max_size is not None and size > max_size:
            raise FileOperationError(
                f"File too large: {size} bytes (max {max_size})",
                file_path=str(path),
                operation="read",
            )
        return path.read_text(encoding=encoding)
    except FileOperationError:
        raise
    except (OSError, UnicodeDecodeError) as exc:
        raise FileOperationError(
            f"Failed to read file: {exc}",
            file_path=str(path),
            operation="read",
            original_error=exc,
        ) from exc


def read_lines(file_path: PathLike) -> List[str]:
    """Return the stripped, non-empty lines of a file.

    A missing file reads as empty, which is how a fresh installation looks
    before ``init`` has created the state files.
    """
    path = Path(file_path)
    if not path.exists():
        return []
    content = safe_read_file(path)
    return [line.strip() for line in content.splitlines() if line.strip()]


def safe_write_file(
    file_path: PathLike,
    content: str,
    *,
    mode: int = PUBLIC_FILE_MODE,
) -> None:
    """Safely write text to a file using atomic replacement.

    Readers never observe a partially written file: either the previous
    content or the new content is visible.

    Args:
        file_path: Destination path.
        content: Text content to write.
        mode: Permission bits of the resulting file.
    """
    _atomic_write(Path(file_path), content, mode=mode)


def write_lines(file_path: PathLike, lines: List[str]) -> None:
    """Atomically replace a file with one entry per line."""
    content = "".join(f"{line}\n" for line in lines)
    safe_write_file(file_path, content)


def safe_remove_file(file_path: PathLike) -> bool:
    """Remove a file if it exists.

    Returns:
        ``True`` if a file was removed, ``False`` if there was nothing to do.
    """
    path = Path(file_path)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise FileOperationError(
            f"Failed to remove file: {exc}",
            file_path=str(path),
            operation="delete",
            original_error=exc,
        ) from exc
    logger.debug("Removed %s", path)
    return True


def validate_path(
    path: PathLike,
    *,
    base_dir: Optional[PathLike] = None,
) -> Path:
    """Resolve and validate a filesystem path.

    If ``base_dir`` is provided, the resolved path must be within it.
    """
    resolved = Path(path).expanduser().resolve(strict=False)

    if base_dir:
        base = Path(base_dir).expanduser().resolve(strict=False)
        try:
            resolved.relative_to(base)
        except ValueError:
            raise FileOperationError(
                f"Path outside allowed base directory: {resolved}",
                file_path=str(path),
                operation="validate",
            )

    return resolved
