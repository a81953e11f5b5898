"""APT package backend driven through subprocess.

This module provides the production :class:`PackageBackend`, calling
``apt-cache``, ``apt-get``, ``dpkg-query`` and ``fuser``. Query helpers
run with captured output and never raise for a missing package; install,
upgrade and refresh stream their output to the terminal and raise
:class:`BackendError` on a non-zero exit status.
"""

from __future__ import annotations

import os
import re
import fcntl
import subprocess
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from rollkeeper.backend.base import PackageBackend
from rollkeeper.constants import APT_LOCK_FILES
from rollkeeper.exceptions import BackendError
from rollkeeper.utils.logger import get_logger

logger = get_logger("backend.apt")

_VERSION_LINE_RE = re.compile(r"^\s+(?:\*\*\*\s+)?(\S+)\s+(-?\d+)\s*$")
_SOURCE_LINE_RE = re.compile(r"^\s+(-?\d+)\s+(\S+)(?:\s+(\S+))?")
_DEPENDS_RE = re.compile(r"^\s*Depends:\s+(\S+)")
# " foo : Depends: bar but it is not going to be installed"
_UNMET_RE = re.compile(r"^\s+(\S+)\s*:\s*(?:PreDepends|Depends|Breaks):")


@dataclass
class PolicyInfo:
    """Parsed ``apt-cache policy`` output for one package.

    Attributes:
        installed: Installed version, if any.
        candidate: Version apt would install by default.
        versions: ``(version, [archive, ...])`` pairs, newest first.
    """

    installed: Optional[str] = None
    candidate: Optional[str] = None
    versions: List[Tuple[str, List[str]]] = field(default_factory=list)

    def newest_in(self, channel: str) -> Optional[str]:
        """Return the newest version published in *channel*."""
        for version, archives in self.versions:
            if channel in archives:
                return version
        return None


def parse_policy(output: str) -> PolicyInfo:
    """Parse the output of ``apt-cache policy <name>``.

    Example input::

        python3:
          Installed: 3.11.2-1+b1
          Candidate: 3.11.2-1+b1
          Version table:
             3.12.6-1 200
                200 http://deb.debian.org/debian unstable/main amd64 Packages
         *** 3.11.2-1+b1 990
                990 http://deb.debian.org/debian bookworm/main amd64 Packages
                100 /var/lib/dpkg/status
    """
    info = PolicyInfo()
    in_table = False

    for line in output.splitlines():
        stripped = line.strip()
        if stripped.startswith("Installed:"):
            value = stripped.split(":", 1)[1].strip()
            info.installed = None if value in ("(none)", "") else value
        elif stripped.startswith("Candidate:"):
            value = stripped.split(":", 1)[1].strip()
            info.candidate = None if value in ("(none)", "") else value
        elif stripped.startswith("Version table:"):
            in_table = True
        elif in_table:
            version_match = _VERSION_LINE_RE.match(line)
            if version_match:
                info.versions.append((version_match.group(1), []))
                continue
            source_match = _SOURCE_LINE_RE.match(line)
            if source_match and info.versions and source_match.group(3):
                archive = source_match.group(3).split("/", 1)[0]
                info.versions[-1][1].append(archive)

    return info


class AptBackend(PackageBackend):
    """Package backend using the APT command-line tools.

    Args:
        lock_files: APT/dpkg lock files to inspect in :meth:`is_locked`.
        env: Extra environment for mutating commands; ``DEBIAN_FRONTEND``
            defaults to ``noninteractive``.
    """

    def __init__(
        self,
        *,
        lock_files: Sequence[str] = APT_LOCK_FILES,
        env: Optional[Dict[str, str]] = None,
    ) -> None:
        self.lock_files = tuple(lock_files)
        self._env = dict(os.environ)
        self._env.setdefault("DEBIAN_FRONTEND", "noninteractive")
        if env:
            self._env.update(env)

    # ------------------------------------------------------------------
    # Process helpers
    # ------------------------------------------------------------------

    def _query(self, args: List[str], *, timeout: Optional[float] = 60) -> subprocess.CompletedProcess:
        """Run a read-only command with captured output."""
        logger.debug("Running: %s", " ".join(args))
        try:
            return subprocess.run(
                args,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout,
                env=self._env,
            )
        except FileNotFoundError as exc:
            raise BackendError(
                f"Required tool not found: {args[0]}",
                command=" ".join(args),
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise BackendError(
                f"Command timed out after {timeout}s",
                command=" ".join(args),
            ) from exc

    def _execute(self, args: List[str], *, package_name: Optional[str] = None) -> None:
        """Run a mutating command, streaming output to the terminal."""
        command = " ".join(args)
        logger.info("Running: %s", command)
        try:
            result = subprocess.run(args, check=False, env=self._env)
        except FileNotFoundError as exc:
            raise BackendError(
                f"Required tool not found: {args[0]}",
                command=command,
                package_name=package_name,
            ) from exc

        if result.returncode != 0:
            raise BackendError(
                f"{args[0]} exited with status {result.returncode}",
                command=command,
                returncode=result.returncode,
                package_name=package_name,
            )

    def policy(self, name: str) -> PolicyInfo:
        """Return parsed ``apt-cache policy`` information for *name*."""
        result = self._query(["apt-cache", "policy", name])
        if result.returncode != 0:
            return PolicyInfo()
        return parse_policy(result.stdout)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, name: str, channel: Optional[str] = None) -> bool:
        if channel is not None:
            return self.policy(name).newest_in(channel) is not None
        result = self._query(["apt-cache", "show", name])
        return result.returncode == 0 and bool(result.stdout.strip())

    def is_virtual(self, name: str) -> bool:
        show = self._query(["apt-cache", "show", name])
        if show.returncode == 0 and re.search(
            rf"^Package: {re.escape(name)}$", show.stdout, re.MULTILINE
        ):
            return False

        showpkg = self._query(["apt-cache", "showpkg", name])
        if showpkg.returncode != 0:
            return False

        # Entries follow the "Reverse Provides:" header, one per line
        _, header, providers = showpkg.stdout.partition("Reverse Provides:")
        return bool(header) and any(line.strip() for line in providers.splitlines())

    def direct_dependencies(self, name: str) -> List[str]:
        result = self._query(["apt-cache", "depends", name])
        if result.returncode != 0:
            logger.debug("apt-cache depends %s failed: %s", name, result.stderr.strip())
            return []

        deps: List[str] = []
        for line in result.stdout.splitlines():
            match = _DEPENDS_RE.match(line)
            if not match:
                continue
            dep = match.group(1)
            # "<name>" marks a virtual package without a concrete provider choice
            if dep.startswith("<") and dep.endswith(">"):
                continue
            dep = dep.split(":", 1)[0]
            if dep not in deps:
                deps.append(dep)
        return deps

    def installed_version(self, name: str) -> Optional[str]:
        result = self._query(
            ["dpkg-query", "-W", "-f=${Status}\t${Version}", name]
        )
        if result.returncode != 0:
            return None
        status, _, version = result.stdout.partition("\t")
        if "install ok installed" not in status or not version.strip():
            return None
        return version.strip()

    def candidate_version(self, name: str, channel: str) -> Optional[str]:
        return self.policy(name).newest_in(channel)

    def broken_packages(self) -> List[str]:
        result = self._query(["apt-get", "check"])
        if result.returncode == 0:
            return []

        broken: List[str] = []
        for line in result.stdout.splitlines():
            match = _UNMET_RE.match(line)
            if match and match.group(1) not in broken:
                broken.append(match.group(1))
        if not broken:
            raise BackendError(
                f"apt-get check exited with status {result.returncode}: "
                f"{result.stderr.strip()}",
                command="apt-get check",
                returncode=result.returncode,
            )
        return broken

    def search(self, query: str, channel: Optional[str] = None) -> List[Tuple[str, str]]:
        args = ["apt-cache", "search"]
        if channel is not None:
            args.append("--names-only")
        result = self._query(args + [query])
        if result.returncode != 0:
            return []

        matches: List[Tuple[str, str]] = []
        for line in result.stdout.splitlines():
            name, sep, description = line.partition(" - ")
            if not sep:
                continue
            name = name.strip()
            if channel is not None and self.policy(name).newest_in(channel) is None:
                continue
            matches.append((name, description.strip()))
        return matches

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    def held_lock(self) -> Optional[str]:
        """Return the first APT/dpkg lock file held by another process."""
        for lock_file in self.lock_files:
            if self._lock_in_use(lock_file):
                return lock_file
        return None

    def is_locked(self) -> bool:
        lock_file = self.held_lock()
        if lock_file is not None:
            logger.debug("APT lock held: %s", lock_file)
        return lock_file is not None

    def _lock_in_use(self, lock_file: str) -> bool:
        try:
            result = subprocess.run(
                ["fuser", lock_file],
                capture_output=True,
                check=False,
                timeout=10,
            )
            return result.returncode == 0
        except FileNotFoundError:
            return self._fcntl_lock_in_use(lock_file)
        except subprocess.TimeoutExpired:
            logger.warning("fuser timed out on %s; assuming locked", lock_file)
            return True

    @staticmethod
    def _fcntl_lock_in_use(lock_file: str) -> bool:
        """Probe a dpkg-style fcntl lock without fuser."""
        try:
            fd = os.open(lock_file, os.O_RDWR)
        except OSError:
            return False
        try:
            fcntl.lockf(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            return True
        else:
            fcntl.lockf(fd, fcntl.LOCK_UN)
            return False
        finally:
            os.close(fd)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def install(
        self,
        name: str,
        channel: Optional[str] = None,
        non_interactive: bool = False,
    ) -> None:
        args = ["apt-get", "install"]
        if channel is not None:
            args += ["-t", channel]
        if non_interactive:
            args.append("-y")
        args.append(name)
        self._execute(args, package_name=name)

    def refresh_metadata(self) -> None:
        self._execute(["apt-get", "update"])

    def upgrade_system(self, non_interactive: bool = False) -> None:
        args = ["apt-get", "upgrade"]
        if non_interactive:
            args.append("-y")
        self._execute(args)

    def autoremove(self, non_interactive: bool = False) -> None:
        args = ["apt-get", "autoremove"]
        if non_interactive:
            args.append("-y")
        self._execute(args)
