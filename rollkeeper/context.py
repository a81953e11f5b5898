"""
Shared context object for rollkeeper CLI commands.

This module defines the global Click context used to share configuration,
runtime options and the package backend across CLI subcommands, along
with the factories commands use to open the stores.
"""

from __future__ import annotations

import os
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import click

from rollkeeper.backend import AptBackend, PackageBackend
from rollkeeper.config import RollKeeperConfig
from rollkeeper.constants import DEFAULT_MIRROR
from rollkeeper.core import (
    Bootstrapper,
    ConsistencyChecker,
    DependencyGraph,
    PreferenceSynthesizer,
    ProcessLock,
    RegistryStore,
    RollingEngine,
)
from rollkeeper.exceptions import RollKeeperError
from rollkeeper.utils.http import probe_channel
from rollkeeper.utils.logger import get_logger, setup_logging

logger = get_logger("context")


class RollKeeperContext:
    """Global context object for rollkeeper CLI commands.

    An instance of this class is created once per CLI invocation and
    passed to commands using Click's context mechanism.

    Attributes:
        config_path: Path to the rollkeeper configuration file, if provided.
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        config: Loaded configuration.
        backend: Package backend; an :class:`AptBackend` is created on
            first use when none was injected.
    """

    __slots__ = ("config_path", "verbose", "color", "config", "backend")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.verbose: int = 0
        self.color: bool = True
        self.config: RollKeeperConfig = RollKeeperConfig()
        self.backend: Optional[PackageBackend] = None

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    def get_backend(self) -> PackageBackend:
        if self.backend is None:
            self.backend = AptBackend()
        return self.backend

    def registry(self) -> RegistryStore:
        return RegistryStore(self.config.registry_file, self.config.primary_file)

    def graph(self) -> DependencyGraph:
        return DependencyGraph(self.config.dependencies_file)

    def preferences(self) -> PreferenceSynthesizer:
        return PreferenceSynthesizer(self.config.preferences_dir)

    def bootstrapper(self) -> Bootstrapper:
        return Bootstrapper(
            state_dir=self.config.state_dir,
            preferences_dir=self.config.preferences_dir,
            sources_dir=self.config.sources_dir,
            mirror=self.config.mirror,
        )

    def engine(self, *, non_interactive: bool = False) -> RollingEngine:
        return RollingEngine(
            self.registry(),
            self.graph(),
            self.preferences(),
            self.get_backend(),
            non_interactive=non_interactive,
        )

    def checker(self, *, probe: bool = True) -> ConsistencyChecker:
        bootstrap = self.bootstrapper()
        mirror = bootstrap.configured_mirror() or self.config.mirror or DEFAULT_MIRROR
        timeout = self.config.probe_timeout

        def _probe() -> bool:
            return probe_channel(mirror, timeout=timeout)

        return ConsistencyChecker(
            self.registry(),
            self.graph(),
            self.preferences(),
            self.get_backend(),
            bootstrap=bootstrap,
            probe=_probe if probe else None,
        )

    # ------------------------------------------------------------------
    # Mutating sessions
    # ------------------------------------------------------------------

    @contextmanager
    def mutating(self) -> Iterator[None]:
        """Run a state-changing command: require root, log to file, hold the lock.

        Raises:
            RollKeeperError: Not running as root.
            LockError: Another instance holds the process lock.
        """
        if os.geteuid() != 0:
            raise RollKeeperError("This command must be run as root (use sudo)")

        if self.config.log_file is not None:
            level = verbosity_level(self.verbose)
            setup_logging(level=level, verbose=self.verbose > 1, log_file=self.config.log_file)

        with ProcessLock(self.config.lock_file):
            yield


def verbosity_level(verbose: int) -> int:
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


#: Click decorator for injecting :class:`RollKeeperContext` into commands.
pass_context = click.make_pass_decorator(RollKeeperContext, ensure=True)
