"""First-run initialisation of the host.

``rollkeeper init`` creates three things once and never regenerates them:

- the state files (registry and dependency file),
- the unstable channel source declaration, with the mirror taken from
  the first ``deb`` line of ``/etc/apt/sources.list``,
- the global preferences file holding stable's baseline priorities.

Files that already exist are left untouched so manual edits survive a
second ``init``.
"""

from __future__ import annotations

import re
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from rollkeeper.__version__ import __version__
from rollkeeper.constants import (
    BASE_COMPONENTS,
    DEBIAN_VERSION_CODENAMES,
    DEFAULT_CODENAME,
    DEFAULT_MIRROR,
    DEFAULT_SOURCES_LIST,
    DEPENDENCIES_FILENAME,
    EXPERIMENTAL_PRIORITY,
    FIRMWARE_CODENAMES,
    GLOBAL_PREFERENCES_FILENAME,
    PROGRAM_NAME,
    REGISTRY_FILENAME,
    STABLE_CODENAME_PRIORITY,
    STABLE_SUITE_PRIORITY,
    UNSTABLE_CHANNEL,
    UNSTABLE_DEFAULT_PRIORITY,
    UNSTABLE_SOURCES_FILENAME,
)
from rollkeeper.utils.filesystem import safe_read_file, safe_write_file
from rollkeeper.utils.logger import get_logger

logger = get_logger("bootstrap")

__all__ = [
    "Bootstrapper",
    "InitResult",
    "detect_codename",
    "detect_mirror",
    "components_for",
]

_DEB_LINE_RE = re.compile(r"^deb\s+(?:\[[^\]]*\]\s+)?(\S+)")


# ---------------------------------------------------------------------------
# Host detection
# ---------------------------------------------------------------------------


def _codename_from_os_release(path: Path) -> Optional[str]:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return None
    for line in lines:
        if line.startswith("VERSION_CODENAME="):
            value = line.split("=", 1)[1].strip().strip('"').strip("'")
            return value or None
    return None


def _codename_from_lsb_release() -> Optional[str]:
    if shutil.which("lsb_release") is None:
        return None
    try:
        result = subprocess.run(
            ["lsb_release", "-cs"],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    value = result.stdout.strip()
    return value if result.returncode == 0 and value else None


def _codename_from_debian_version(path: Path) -> Optional[str]:
    try:
        version = path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    major = version.split(".", 1)[0]
    return DEBIAN_VERSION_CODENAMES.get(major, DEFAULT_CODENAME)


def detect_codename(
    *,
    os_release: Path = Path("/etc/os-release"),
    debian_version: Path = Path("/etc/debian_version"),
    use_lsb_release: bool = True,
) -> str:
    """Return the stable release codename of the host.

    Tries ``os-release``, then ``lsb_release -cs``, then the major number
    in ``debian_version``, and finally falls back to ``bookworm``.
    """
    codename = _codename_from_os_release(os_release)
    if not codename and use_lsb_release:
        codename = _codename_from_lsb_release()
    if not codename:
        codename = _codename_from_debian_version(debian_version)
    return codename or DEFAULT_CODENAME


def detect_mirror(sources_list: Path = Path(DEFAULT_SOURCES_LIST)) -> Optional[str]:
    """Return the mirror of the first ``deb`` line in *sources_list*.

    ``cdrom:`` entries are ignored. Returns ``None`` when nothing usable
    is found.
    """
    try:
        lines = sources_list.read_text(encoding="utf-8").splitlines()
    except OSError:
        return None
    for line in lines:
        match = _DEB_LINE_RE.match(line.strip())
        if match:
            mirror = match.group(1)
            return None if mirror.startswith("cdrom:") else mirror
    return None


def components_for(codename: str) -> List[str]:
    """Return the archive components to enable for *codename*."""
    components = list(BASE_COMPONENTS)
    if codename in FIRMWARE_CODENAMES:
        components.append("non-free-firmware")
    return components


# ---------------------------------------------------------------------------
# File rendering
# ---------------------------------------------------------------------------


def render_sources(mirror: str, components: List[str]) -> str:
    joined = " ".join(components)
    return (
        "# APT Rolling Package Manager - Unstable Sources\n"
        f"# Auto-generated by {PROGRAM_NAME} v{__version__}\n"
        f"# Do not edit manually - managed by {PROGRAM_NAME}\n"
        "\n"
        f"deb {mirror} {UNSTABLE_CHANNEL} {joined}\n"
        f"deb-src {mirror} {UNSTABLE_CHANNEL} {joined}\n"
    )


def render_global_preferences(codename: str) -> str:
    stanzas = [
        ("Default: strongly prefer stable packages", f"a={codename}", STABLE_CODENAME_PRIORITY),
        ("Secondary preference for stable", "a=stable", STABLE_SUITE_PRIORITY),
        (
            "Unstable packages have very low priority by default",
            f"a={UNSTABLE_CHANNEL}",
            UNSTABLE_DEFAULT_PRIORITY,
        ),
        ("Prevent accidental installation from experimental", "a=experimental", EXPERIMENTAL_PRIORITY),
    ]
    parts = [
        "# APT Rolling Package Manager - Preferences\n"
        f"# Auto-generated by {PROGRAM_NAME} v{__version__}\n"
        f"# Do not edit manually - managed by {PROGRAM_NAME}\n"
    ]
    for comment, release, priority in stanzas:
        parts.append(
            f"# {comment}\n"
            "Package: *\n"
            f"Pin: release {release}\n"
            f"Pin-Priority: {priority}\n"
        )
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Bootstrapper
# ---------------------------------------------------------------------------


@dataclass
class InitResult:
    """Files created (or, on a dry run, that would be created) by ``init``."""

    created: List[Path] = field(default_factory=list)
    existing: List[Path] = field(default_factory=list)
    mirror: Optional[str] = None
    codename: Optional[str] = None
    dry_run: bool = False


class Bootstrapper:
    """Creates rollkeeper's one-time host configuration.

    Args:
        state_dir: Directory for the registry and dependency files.
        preferences_dir: APT preferences directory.
        sources_dir: APT sources directory.
        sources_list: Main sources list used for mirror detection.
        mirror: Mirror override; skips detection when given.
        codename: Codename override; skips detection when given.
    """

    def __init__(
        self,
        *,
        state_dir: Path,
        preferences_dir: Path,
        sources_dir: Path,
        sources_list: Path = Path(DEFAULT_SOURCES_LIST),
        mirror: Optional[str] = None,
        codename: Optional[str] = None,
    ) -> None:
        self.state_dir = Path(state_dir)
        self.preferences_dir = Path(preferences_dir)
        self.sources_dir = Path(sources_dir)
        self.sources_list = Path(sources_list)
        self._mirror = mirror
        self._codename = codename

    @property
    def registry_file(self) -> Path:
        return self.state_dir / REGISTRY_FILENAME

    @property
    def dependencies_file(self) -> Path:
        return self.state_dir / DEPENDENCIES_FILENAME

    @property
    def sources_file(self) -> Path:
        return self.sources_dir / UNSTABLE_SOURCES_FILENAME

    @property
    def global_preferences_file(self) -> Path:
        return self.preferences_dir / GLOBAL_PREFERENCES_FILENAME

    def is_initialized(self) -> bool:
        """Return whether both the sources and global preferences files exist."""
        return self.sources_file.is_file() and self.global_preferences_file.is_file()

    def missing_files(self) -> List[Path]:
        return [p for p in (self.sources_file, self.global_preferences_file) if not p.is_file()]

    def codename(self) -> str:
        if self._codename is None:
            self._codename = detect_codename()
            logger.debug("Detected stable codename: %s", self._codename)
        return self._codename

    def mirror(self) -> str:
        """Return the mirror for the unstable declaration (override, detected or default)."""
        if self._mirror:
            return self._mirror
        detected = detect_mirror(self.sources_list)
        if detected is None:
            logger.warning("Could not detect mirror, using default: %s", DEFAULT_MIRROR)
            return DEFAULT_MIRROR
        return detected

    def configured_mirror(self) -> Optional[str]:
        """Return the mirror recorded in the existing unstable declaration."""
        if not self.sources_file.is_file():
            return None
        for line in safe_read_file(self.sources_file).splitlines():
            match = _DEB_LINE_RE.match(line.strip())
            if match:
                return match.group(1)
        return None

    # ------------------------------------------------------------------
    # Setup steps
    # ------------------------------------------------------------------

    def _create_once(self, path: Path, content: str, result: InitResult) -> None:
        if path.exists():
            logger.info("%s already exists; leaving it unchanged", path)
            result.existing.append(path)
            return
        if not result.dry_run:
            safe_write_file(path, content)
            logger.info("Created %s", path)
        result.created.append(path)

    def initialize(self, *, dry_run: bool = False) -> InitResult:
        """Create every missing piece of host configuration.

        Raises:
            FileOperationError: A file could not be written.
        """
        result = InitResult(dry_run=dry_run)
        result.codename = self.codename()
        result.mirror = self.mirror()

        for state_file in (self.registry_file, self.dependencies_file):
            self._create_once(state_file, "", result)

        components = components_for(result.codename)
        logger.debug("Using components %s for %s", " ".join(components), result.codename)
        self._create_once(self.sources_file, render_sources(result.mirror, components), result)
        self._create_once(
            self.global_preferences_file,
            render_global_preferences(result.codename),
            result,
        )
        return result
