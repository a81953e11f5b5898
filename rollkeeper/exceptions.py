"""
Custom exception hierarchy for rollkeeper.

This module defines structured exception types used across rollkeeper.
All exceptions inherit from :class:`RollKeeperError` and support optional
structured metadata via the ``details`` attribute to improve diagnostics
and logging.

Validation and precondition errors (:class:`ValidationError`,
:class:`AlreadyTrackedError`, :class:`NotTrackedError`,
:class:`NotInstalledError`) are always raised before any state is
mutated.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional


class RollKeeperError(Exception):
    """Base exception for all rollkeeper errors.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        # Internally normalize to a mutable dict
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = 200) -> str:
    """Truncate long text for safe logging or error reporting."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


class PackageError(RollKeeperError):
    """Base class for errors tied to a single package.

    Args:
        message: Error description.
        package_name: Name of the package involved.
        operation: Operation being performed (install, roll, unroll, ...).
    """

    __slots__ = ("package_name", "operation")

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package_name)
        _add_if(details, "operation", operation)

        super().__init__(message, details)

        self.package_name = package_name
        self.operation = operation


class ValidationError(PackageError):
    """Raised when a package name is malformed or unsafe.

    The offending name is truncated in ``details`` so that hostile input
    does not flood logs.
    """

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            package_name=_truncate(package_name, 100) if package_name else package_name,
            operation=operation,
        )


class AlreadyTrackedError(PackageError):
    """Raised when a package is already present in the registry."""


class NotTrackedError(PackageError):
    """Raised when a package is expected in the registry but is absent."""


class NotInstalledError(PackageError):
    """Raised when rolling a package that is not currently installed."""


class PackageNotFoundError(PackageError):
    """Raised when a package cannot be resolved in any repository."""


class BackendError(RollKeeperError):
    """Raised when a package backend call fails.

    Args:
        message: Error description.
        command: Command line that was executed, if any.
        returncode: Process exit status, if any.
        stderr: Captured standard error, truncated for safety.
        package_name: Name of the package involved.
    """

    __slots__ = ("command", "returncode", "stderr", "package_name")

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        package_name: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package_name)
        _add_if(details, "command", command)
        _add_if(details, "returncode", returncode)

        if stderr:
            details["stderr"] = _truncate(stderr.strip())

        super().__init__(message, details)

        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        self.package_name = package_name


class BackendLockedError(BackendError):
    """Raised when APT/dpkg locks are held by another process.

    Args:
        message: Error description.
        lock_file: The lock file found in use.
    """

    __slots__ = ("lock_file",)

    def __init__(self, message: str, *, lock_file: Optional[str] = None) -> None:
        super().__init__(message)
        self.lock_file = lock_file
        if lock_file is not None:
            self.details["lock"] = lock_file


class FileOperationError(RollKeeperError):
    """Raised when file system operations fail.

    Args:
        message: Error description.
        file_path: Path to the file involved.
        operation: Operation being performed (read/write/delete).
        original_error: Original exception that triggered this error.
    """

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", file_path)
        _add_if(details, "operation", operation)
        _add_if(
            details,
            "original_error",
            str(original_error) if original_error else None,
        )

        super().__init__(message, details)

        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error


class LockError(RollKeeperError):
    """Raised when the process lock is held by another live instance.

    Args:
        message: Error description.
        lock_file: Path of the lock file.
        holder_pid: PID recorded in the lock file, if readable.
    """

    __slots__ = ("lock_file", "holder_pid")

    def __init__(
        self,
        message: str,
        *,
        lock_file: Optional[str] = None,
        holder_pid: Optional[int] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "lock", lock_file)
        _add_if(details, "pid", holder_pid)

        super().__init__(message, details)

        self.lock_file = lock_file
        self.holder_pid = holder_pid


class ConfigError(RollKeeperError):
    """Raised when a configuration file is missing, unreadable or invalid.

    Args:
        message: Error description.
        config_path: Path of the configuration file.
        option: Offending option name, if applicable.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "config", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option
