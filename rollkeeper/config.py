"""Configuration file loader for rollkeeper.

Handles discovery, loading, parsing, and validation of the configuration
file. Settings live under a ``[rollkeeper]`` table.

Discovery order:

1. Explicit path from ``--config`` or ``ROLLKEEPER_CONFIG``
2. ``rollkeeper.toml`` in current directory
3. ``/etc/rollkeeper/rollkeeper.toml``

Configuration precedence: defaults < config file < CLI args.

Typical usage::

    config = load_config()  # Auto-discover
    config = load_config(Path("custom.toml"))  # Explicit path

Example (``rollkeeper.toml``)::

    [rollkeeper]
    state_dir = "/var/lib/rollkeeper"
    mirror = "https://deb.debian.org/debian"
    probe_timeout = 5
"""

from __future__ import annotations


import tomli as tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Sequence
from dataclasses import dataclass, field

from rollkeeper.exceptions import ConfigError
from rollkeeper.utils.logger import get_logger
from rollkeeper.constants import (
    DEFAULT_LOCK_FILE,
    DEFAULT_LOG_FILE,
    DEFAULT_PREFERENCES_DIR,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_SOURCES_DIR,
    DEFAULT_STATE_DIR,
    DEPENDENCIES_FILENAME,
    PRIMARY_FILENAME,
    REGISTRY_FILENAME,
    SYSTEM_CONFIG_PATHS,
)

logger = get_logger("config")

_PATH_OPTIONS = ("state_dir", "preferences_dir", "sources_dir", "lock_file", "log_file")


@dataclass
class RollKeeperConfig:
    """Parsed and validated rollkeeper configuration.

    All fields have defaults, so an empty or missing config file is valid.

    Attributes:
        state_dir: Directory holding the registry and dependency files.
        preferences_dir: APT preferences directory for pin files.
        sources_dir: APT sources directory for the unstable declaration.
        lock_file: Process lock file.
        log_file: Persistent log file; ``None`` disables file logging.
        mirror: Mirror override for ``init``; detected when ``None``.
        probe_timeout: Seconds the reachability probe may take.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    state_dir: Path = Path(DEFAULT_STATE_DIR)
    preferences_dir: Path = Path(DEFAULT_PREFERENCES_DIR)
    sources_dir: Path = Path(DEFAULT_SOURCES_DIR)
    lock_file: Path = Path(DEFAULT_LOCK_FILE)
    log_file: Optional[Path] = Path(DEFAULT_LOG_FILE)
    mirror: Optional[str] = None
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    @property
    def registry_file(self) -> Path:
        return self.state_dir / REGISTRY_FILENAME

    @property
    def dependencies_file(self) -> Path:
        return self.state_dir / DEPENDENCIES_FILENAME

    @property
    def primary_file(self) -> Path:
        return self.state_dir / PRIMARY_FILENAME

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging.

        Excludes ``source_path`` metadata.
        """
        return {
            "state_dir": str(self.state_dir),
            "preferences_dir": str(self.preferences_dir),
            "sources_dir": str(self.sources_dir),
            "lock_file": str(self.lock_file),
            "log_file": str(self.log_file) if self.log_file else None,
            "mirror": self.mirror,
            "probe_timeout": self.probe_timeout,
        }


def discover_config_file(
    explicit_path: Optional[Path] = None,
    *,
    system_paths: Sequence[str] = SYSTEM_CONFIG_PATHS,
) -> Optional[Path]:
    """Find the configuration file to load.

    Search order:

    1. ``explicit_path`` (from ``--config`` or ``ROLLKEEPER_CONFIG``)
    2. ``rollkeeper.toml`` in current directory
    3. the system-wide locations in *system_paths*

    Args:
        explicit_path: Explicit config path. If provided, must exist.
        system_paths: System-wide candidate locations.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    # 1. Explicit path takes priority
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    # 2. rollkeeper.toml in current directory
    local_toml = Path.cwd() / "rollkeeper.toml"
    if local_toml.is_file():
        logger.debug("Found rollkeeper.toml: %s", local_toml)
        return local_toml

    # 3. System-wide configuration
    for candidate in system_paths:
        system_toml = Path(candidate)
        if system_toml.is_file():
            logger.debug("Found system config: %s", system_toml)
            return system_toml

    logger.debug("No configuration file found")
    return None


def load_config(
    config_path: Optional[Path] = None,
    *,
    system_paths: Sequence[str] = SYSTEM_CONFIG_PATHS,
) -> RollKeeperConfig:
    """Load and validate rollkeeper configuration.

    Discovers config file (or uses provided path), parses and validates it.
    Returns config with defaults if no file found.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).
        system_paths: System-wide candidate locations.

    Returns:
        Validated :class:`RollKeeperConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path, system_paths=system_paths)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return RollKeeperConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)
    section = raw.get("rollkeeper", {})

    if not section:
        logger.debug("Config file found but no rollkeeper section; using defaults")
        return RollKeeperConfig(source_path=resolved)

    if not isinstance(section, dict):
        raise ConfigError(
            "[rollkeeper] must be a table",
            config_path=str(resolved),
        )

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> RollKeeperConfig:
    """Parse and validate the ``[rollkeeper]`` table.

    Rejects unknown keys and type mismatches.

    Raises:
        ConfigError: Unknown keys or incorrect types.
    """
    config = RollKeeperConfig()

    known_top = set(_PATH_OPTIONS) | {"mirror", "probe_timeout"}

    # Validate that no unknown keys are present
    unknown_top = set(section.keys()) - known_top
    if unknown_top:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown_top))}",
            config_path=config_path,
        )

    for option in _PATH_OPTIONS:
        if option not in section:
            continue
        val = section[option]
        if not isinstance(val, str) or not val.strip():
            raise ConfigError(
                f"{option} must be a non-empty string, got {type(val).__name__}",
                config_path=config_path,
                option=option,
            )
        setattr(config, option, Path(val).expanduser())

    if "mirror" in section:
        val = section["mirror"]
        if not isinstance(val, str) or not val.startswith(("http://", "https://", "file:")):
            raise ConfigError(
                "mirror must be an http(s) or file: URL string",
                config_path=config_path,
                option="mirror",
            )
        config.mirror = val.rstrip("/")

    if "probe_timeout" in section:
        val = section["probe_timeout"]
        # bool is an int subclass
        if isinstance(val, bool) or not isinstance(val, (int, float)) or val <= 0:
            raise ConfigError(
                f"probe_timeout must be a positive number, got {val!r}",
                config_path=config_path,
                option="probe_timeout",
            )
        config.probe_timeout = float(val)

    return config
