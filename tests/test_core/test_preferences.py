"""Unit tests for rollkeeper.core.preferences.

Test Coverage:
- Pin file naming and path containment
- Creating, reading and removing pins
- Enumeration of managed files and format validation
"""

from __future__ import annotations

from pathlib import Path

import pytest

from rollkeeper.core.preferences import PreferenceSynthesizer, sanitize_identifier
from rollkeeper.exceptions import ValidationError
from rollkeeper.models.pin import PinPriority


@pytest.mark.unit
class TestSanitizeIdentifier:
    """Tests for sanitize_identifier."""

    def test_keeps_safe_characters(self) -> None:
        """Test package name characters survive unchanged."""
        assert sanitize_identifier("libstdc++6.dev_x-1") == "libstdc++6.dev_x-1"

    def test_strips_unsafe_characters(self) -> None:
        """Test anything outside the safe set is dropped."""
        assert sanitize_identifier("a/b c$d") == "abcd"


@pytest.mark.unit
class TestPathFor:
    """Tests for pin file path derivation."""

    def test_path_inside_directory(
        self, preferences: PreferenceSynthesizer, preferences_dir: Path
    ) -> None:
        """Test the pin file is the prefixed name inside the directory."""
        assert preferences.path_for("golang") == preferences_dir / "rollkeeper-golang"

    @pytest.mark.parametrize("name", ["../../etc/shadow", "foo/bar", "a;b", ""])
    def test_unsafe_names_rejected(self, preferences: PreferenceSynthesizer, name: str) -> None:
        """Test names that could escape the directory are refused."""
        with pytest.raises(ValidationError):
            preferences.path_for(name)

    def test_global_file_collision_rejected(self, preferences: PreferenceSynthesizer) -> None:
        """Test a package cannot overwrite the global preferences file."""
        with pytest.raises(ValidationError):
            preferences.path_for("preferences")

    def test_package_for(self, preferences: PreferenceSynthesizer, preferences_dir: Path) -> None:
        """Test mapping a file back to its package."""
        assert preferences.package_for(preferences_dir / "rollkeeper-golang") == "golang"
        assert preferences.package_for(preferences_dir / "rollkeeper-preferences") is None
        assert preferences.package_for(preferences_dir / "other-file") is None


@pytest.mark.unit
class TestCreateRemove:
    """Tests for writing and deleting pins."""

    def test_create_writes_two_stanzas(self, preferences: PreferenceSynthesizer) -> None:
        """Test the file pins both the name and its wildcard."""
        path = preferences.create("golang", PinPriority.PRIMARY)
        content = path.read_text()

        assert "Package: golang\n" in content
        assert "Package: golang*\n" in content
        assert content.count("Pin-Priority: 990") == 2

    def test_regeneration_is_byte_identical(self, preferences: PreferenceSynthesizer) -> None:
        """Test rewriting a pin reproduces the same bytes."""
        path = preferences.create("golang-src", PinPriority.DEPENDENCY)
        first = path.read_bytes()

        preferences.create("golang-src", PinPriority.DEPENDENCY)

        assert path.read_bytes() == first

    def test_file_is_world_readable(self, preferences: PreferenceSynthesizer) -> None:
        """Test APT can read the pin."""
        path = preferences.create("golang", PinPriority.PRIMARY)

        assert path.stat().st_mode & 0o777 == 0o644

    def test_read_and_priority(self, preferences: PreferenceSynthesizer) -> None:
        """Test the priority is recovered from the file."""
        preferences.create("golang-go", PinPriority.DEPENDENCY)

        pin = preferences.read("golang-go")
        assert pin is not None
        assert pin.package == "golang-go"
        assert preferences.priority_of("golang-go") == 500
        assert preferences.priority_of("hugo") is None

    def test_remove(self, preferences: PreferenceSynthesizer) -> None:
        """Test removal, and that a missing file is not an error."""
        preferences.create("golang", PinPriority.PRIMARY)

        assert preferences.remove("golang") is True
        assert preferences.exists("golang") is False
        assert preferences.remove("golang") is False

    def test_remove_file_refuses_unmanaged(
        self, preferences: PreferenceSynthesizer, preferences_dir: Path
    ) -> None:
        """Test only managed pin files can be deleted by path."""
        foreign = preferences_dir / "other"
        foreign.write_text("x")

        with pytest.raises(ValidationError):
            preferences.remove_file(foreign)
        assert foreign.exists()


@pytest.mark.unit
class TestManagedFiles:
    """Tests for enumeration and format validation."""

    def test_excludes_global_and_foreign_files(
        self, preferences: PreferenceSynthesizer, preferences_dir: Path
    ) -> None:
        """Test only per-package pins are listed."""
        preferences.create("hugo", PinPriority.PRIMARY)
        preferences.create("golang", PinPriority.PRIMARY)
        (preferences_dir / "rollkeeper-preferences").write_text("global")
        (preferences_dir / "other").write_text("foreign")

        names = [p.name for p in preferences.managed_files()]

        assert names == ["rollkeeper-golang", "rollkeeper-hugo"]

    def test_missing_directory(self, tmp_path: Path) -> None:
        """Test a missing directory has no managed files."""
        assert PreferenceSynthesizer(tmp_path / "nope").managed_files() == []

    def test_missing_fields(
        self, preferences: PreferenceSynthesizer, preferences_dir: Path
    ) -> None:
        """Test malformed pins report their absent fields."""
        good = preferences.create("golang", PinPriority.PRIMARY)
        bad = preferences_dir / "rollkeeper-hugo"
        bad.write_text("Package: hugo\n")

        assert preferences.is_well_formed(good) is True
        assert preferences.missing_fields(bad) == ["Pin:", "Pin-Priority:"]
