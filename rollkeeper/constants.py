"""
Centralized constants for rollkeeper.

This module defines immutable configuration values used across rollkeeper,
including default filesystem locations, pin priorities, the package-name
policy, APT lock files, and logging formats. All values are intended to be
treated as read-only.
"""

from typing import Final, Mapping, Sequence

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: Program name used in generated file headers and log messages.
PROGRAM_NAME: Final[str] = "rollkeeper"

#: HTTP User-Agent template used for repository probes.
USER_AGENT_TEMPLATE: Final[str] = "rollkeeper/{version}"

# ---------------------------------------------------------------------------
# Default filesystem locations
# ---------------------------------------------------------------------------

#: Directory holding the registry and dependency files.
DEFAULT_STATE_DIR: Final[str] = "/var/lib/rollkeeper"

#: APT preferences directory where pin files are written.
DEFAULT_PREFERENCES_DIR: Final[str] = "/etc/apt/preferences.d"

#: APT sources directory where the unstable channel declaration lives.
DEFAULT_SOURCES_DIR: Final[str] = "/etc/apt/sources.list.d"

#: Main APT sources list, used for mirror detection.
DEFAULT_SOURCES_LIST: Final[str] = "/etc/apt/sources.list"

#: Process lock file (contains the holder's PID).
DEFAULT_LOCK_FILE: Final[str] = "/var/run/rollkeeper.lock"

#: Persistent log file.
DEFAULT_LOG_FILE: Final[str] = "/var/log/rollkeeper.log"

#: Candidate locations for the system-wide configuration file.
SYSTEM_CONFIG_PATHS: Final[Sequence[str]] = ("/etc/rollkeeper/rollkeeper.toml",)

#: Registry file name (one package name per line).
REGISTRY_FILENAME: Final[str] = "rolling-packages"

#: Dependency file name (one ``dependency:parent`` pair per line).
DEPENDENCIES_FILENAME: Final[str] = "rolling-dependencies"

#: Primary-class file (packages the user promoted, one name per line).
PRIMARY_FILENAME: Final[str] = "rolling-primary"

#: Prefix shared by every preference file rollkeeper manages.
PREFERENCE_PREFIX: Final[str] = "rollkeeper-"

#: Global preferences file name (baseline channel priorities).
GLOBAL_PREFERENCES_FILENAME: Final[str] = "rollkeeper-preferences"

#: Channel source declaration file name.
UNSTABLE_SOURCES_FILENAME: Final[str] = "rollkeeper-unstable.list"

# ---------------------------------------------------------------------------
# Channels and pin priorities
# ---------------------------------------------------------------------------

#: Release name of the unstable channel.
UNSTABLE_CHANNEL: Final[str] = "unstable"

#: Pin priority for packages the user explicitly rolled.
PRIMARY_PRIORITY: Final[int] = 990

#: Pin priority for dependencies pulled in on behalf of a primary package.
DEPENDENCY_PRIORITY: Final[int] = 500

#: Baseline priorities written to the global preferences file.
STABLE_CODENAME_PRIORITY: Final[int] = 990
STABLE_SUITE_PRIORITY: Final[int] = 900
UNSTABLE_DEFAULT_PRIORITY: Final[int] = 200
EXPERIMENTAL_PRIORITY: Final[int] = 50

#: Fields every pin file must contain.
REQUIRED_PIN_FIELDS: Final[Sequence[str]] = ("Package:", "Pin:", "Pin-Priority:")

# ---------------------------------------------------------------------------
# Package name policy
# ---------------------------------------------------------------------------

#: Maximum accepted package name length.
MAX_PACKAGE_NAME_LENGTH: Final[int] = 80

#: Full-match pattern for acceptable package names.
PACKAGE_NAME_PATTERN: Final[str] = r"[a-zA-Z0-9][a-zA-Z0-9+._-]*"

#: Characters kept when deriving a pin file identifier.
SAFE_FILENAME_PATTERN: Final[str] = r"[^a-zA-Z0-9+._-]"

#: Substrings that are rejected outright.
FORBIDDEN_NAME_SEQUENCES: Final[Sequence[str]] = ("..", "/", ";", "|")

# ---------------------------------------------------------------------------
# Debian defaults
# ---------------------------------------------------------------------------

#: Fallback mirror when none can be detected.
DEFAULT_MIRROR: Final[str] = "https://deb.debian.org/debian"

#: Fallback stable codename.
DEFAULT_CODENAME: Final[str] = "bookworm"

#: Components of the unstable channel declaration.
BASE_COMPONENTS: Final[Sequence[str]] = ("main", "contrib", "non-free")

#: Codenames that ship the non-free-firmware component.
FIRMWARE_CODENAMES: Final[Sequence[str]] = ("bookworm", "trixie", "forky", "sid")

#: /etc/debian_version major number to codename.
DEBIAN_VERSION_CODENAMES: Final[Mapping[str, str]] = {
    "12": "bookworm",
    "11": "bullseye",
    "10": "buster",
    "9": "stretch",
    "8": "jessie",
}

#: Lock files held by apt/dpkg while they run.
APT_LOCK_FILES: Final[Sequence[str]] = (
    "/var/lib/apt/lists/lock",
    "/var/cache/apt/archives/lock",
    "/var/lib/dpkg/lock",
    "/var/lib/dpkg/lock-frontend",
)

# ---------------------------------------------------------------------------
# Network configuration
# ---------------------------------------------------------------------------

#: Default repository probe timeout in seconds.
DEFAULT_PROBE_TIMEOUT: Final[int] = 10

#: Maximum number of retries for a failed probe.
DEFAULT_MAX_RETRIES: Final[int] = 2

# ---------------------------------------------------------------------------
# Security constraints
# ---------------------------------------------------------------------------

#: Maximum allowed size (in bytes) of a state or preference file.
MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose and file logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

#: Format of the persistent log file.
LOG_FILE_FORMAT: Final[str] = "[%(asctime)s] %(levelname)s: %(message)s"
