"""
Version comparison utilities for rollkeeper.

This module classifies the change between an installed Debian package
version and a candidate version. Debian versions have the shape
``[epoch:]upstream[-revision]``; the upstream part is compared with
PEP 440 parsing, which understands the common dotted forms. Debian's
``~`` ("sorts before") suffix becomes a PEP 440 pre-release, so
``2.0~rc1`` is older than ``2.0``. Anything that still cannot be parsed
is reported as ``"unknown"`` rather than guessed at.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from packaging.version import InvalidVersion, Version, parse

_EPOCH_RE = re.compile(r"^(\d+):")
_REVISION_RE = re.compile(r"-[^-]*$")
# Debian suffixes such as "+dfsg" or "+really2.0" are not PEP 440
_UPSTREAM_NOISE_RE = re.compile(r"\+.*$")
_TILDE_PRERELEASE_RE = re.compile(r"~(alpha|beta|preview|pre|rc|a|b|c)\.?(\d*)$", re.IGNORECASE)
_TILDE_RE = re.compile(r"~.*$")


def split_debian_version(value: str) -> Tuple[int, str, str]:
    """Split a Debian version into ``(epoch, upstream, revision)``.

    Examples:
        >>> split_debian_version("1:2.3.4-5")
        (1, '2.3.4', '5')
        >>> split_debian_version("2.3")
        (0, '2.3', '')
    """
    epoch = 0
    rest = value.strip()

    match = _EPOCH_RE.match(rest)
    if match:
        epoch = int(match.group(1))
        rest = rest[match.end() :]

    revision = ""
    rev_match = _REVISION_RE.search(rest)
    if rev_match:
        revision = rev_match.group(0)[1:]
        rest = rest[: rev_match.start()]

    return epoch, rest, revision


def get_update_type(
    current_version: Optional[str],
    target_version: Optional[str],
) -> str:
    """Determine the update type between two Debian versions.

    Args:
        current_version: Currently installed version, or ``None`` if not installed.
        target_version: Candidate version to compare against.

    Returns:
        One of:
            - ``"new"``       : No current version exists
            - ``"same"``      : Versions are identical
            - ``"downgrade"`` : Target version is lower than current
            - ``"major"``     : Major upstream version change
            - ``"minor"``     : Minor upstream version change
            - ``"patch"``     : Patch-level upstream change
            - ``"update"``    : Revision-only or unclassifiable upgrade
            - ``"unknown"``   : Invalid or unsupported version comparison

    Examples:
        >>> get_update_type("1.0.0-1", "2.0.0-1")
        'major'
        >>> get_update_type(None, "1.0.0-1")
        'new'
        >>> get_update_type("1.2.3-1", "1.2.3-1")
        'same'
    """
    if current_version is None and target_version is None:
        return "unknown"

    if current_version is None:
        return "new"

    if target_version is None:
        return "unknown"

    if current_version.strip() == target_version.strip():
        return "same"

    current_epoch, current_upstream, current_rev = split_debian_version(current_version)
    target_epoch, target_upstream, target_rev = split_debian_version(target_version)

    if current_epoch != target_epoch:
        return "major" if target_epoch > current_epoch else "downgrade"

    try:
        current = _parse_version(current_upstream)
        target = _parse_version(target_upstream)
    except InvalidVersion:
        return "unknown"

    if target < current:
        return "downgrade"

    if target == current:
        # Same upstream release; only the Debian packaging changed
        return "update" if target_rev != current_rev else "same"

    return _classify_upgrade(current, target)


def _parse_version(value: str) -> Version:
    """Parse the upstream part of a Debian version into a PEP 440 Version.

    Examples:
        >>> _parse_version("2.0~rc1")
        <Version('2.0rc1')>
        >>> _parse_version("1.22~3")
        <Version('1.22.dev0')>
    """
    upstream = _UPSTREAM_NOISE_RE.sub("", value)
    upstream = _TILDE_PRERELEASE_RE.sub(r"\1\2", upstream)
    # Any other "~" suffix still sorts before the bare release
    upstream = _TILDE_RE.sub(".dev0", upstream)
    parsed = parse(upstream)
    if not isinstance(parsed, Version):
        raise InvalidVersion(value)
    return parsed


def _classify_upgrade(current: Version, target: Version) -> str:
    """Classify an upgrade between two valid versions."""
    current_major, current_minor, current_patch = _normalize_release(current)
    target_major, target_minor, target_patch = _normalize_release(target)

    if current_major != target_major:
        return "major"

    if current_minor != target_minor:
        return "minor"

    if current_patch != target_patch:
        return "patch"

    return "update"


def _normalize_release(version: Version) -> Tuple[int, int, int]:
    """Normalize a version's release segment to (major, minor, patch)."""
    release = version.release
    major = release[0] if len(release) > 0 else 0
    minor = release[1] if len(release) > 1 else 0
    patch = release[2] if len(release) > 2 else 0
    return major, minor, patch
