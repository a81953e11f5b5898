"""Process-wide lock for mutating rollkeeper operations.

Only one mutating rollkeeper process may run at a time because APT itself
is not safe for concurrent use. The lock is a PID file created with
``O_CREAT | O_EXCL``; a lock whose recorded process is no longer alive is
reclaimed automatically.

Typical usage::

    with ProcessLock(Path("/var/run/rollkeeper.lock")):
        engine.install("golang")
"""

from __future__ import annotations

import os
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

from rollkeeper.exceptions import FileOperationError, LockError
from rollkeeper.utils.logger import get_logger

logger = get_logger("lock")

__all__ = ["ProcessLock", "pid_is_alive"]


def pid_is_alive(pid: int) -> bool:
    """Return whether a process with *pid* exists.

    ``EPERM`` means the process exists but belongs to another user.
    """
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class ProcessLock:
    """PID-file lock acquired as a context manager.

    Args:
        path: Lock file location.
        pid: PID to record; defaults to the current process.

    Raises:
        LockError: From :meth:`acquire`, when another live process holds
            the lock or the lock file appeared concurrently.
    """

    def __init__(self, path: Path, *, pid: Optional[int] = None) -> None:
        self.path = Path(path)
        self.pid = pid if pid is not None else os.getpid()
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def read_holder(self) -> Optional[int]:
        """Return the PID recorded in the lock file, if any."""
        try:
            content = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise FileOperationError(
                f"Cannot read lock file: {exc}",
                file_path=str(self.path),
                operation="read",
                original_error=exc,
            ) from exc
        try:
            return int(content)
        except ValueError:
            return None

    def acquire(self) -> None:
        holder = self.read_holder()
        if self.path.exists():
            if holder is not None and holder != self.pid and pid_is_alive(holder):
                raise LockError(
                    f"Another instance of rollkeeper is already running (PID: {holder})",
                    lock_file=str(self.path),
                    holder_pid=holder,
                )
            logger.warning("Removing stale lock file %s", self.path)
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise LockError(
                    f"Cannot remove stale lock file: {exc}",
                    lock_file=str(self.path),
                ) from exc

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError as exc:
            raise LockError(
                "Failed to create lock file (another instance started concurrently)",
                lock_file=str(self.path),
            ) from exc
        except OSError as exc:
            raise LockError(
                f"Failed to create lock file: {exc}",
                lock_file=str(self.path),
            ) from exc

        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(f"{self.pid}\n")
        self._held = True
        logger.debug("Acquired process lock %s (PID %d)", self.path, self.pid)

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        # Never delete a lock another process reclaimed in the meantime
        if self.read_holder() not in (self.pid, None):
            logger.warning("Lock file %s no longer ours; leaving it", self.path)
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        logger.debug("Released process lock %s", self.path)

    def __enter__(self) -> "ProcessLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.release()
