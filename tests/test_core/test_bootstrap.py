"""Unit tests for rollkeeper.core.bootstrap.

Test Coverage:
- Codename and mirror detection from host files
- Rendering of the unstable declaration and global preferences
- Create-once initialisation and dry runs
"""

from __future__ import annotations

from pathlib import Path

import pytest

from rollkeeper.core.bootstrap import (
    Bootstrapper,
    components_for,
    detect_codename,
    detect_mirror,
    render_global_preferences,
    render_sources,
)


@pytest.fixture
def bootstrapper(tmp_path: Path) -> Bootstrapper:
    sources_list = tmp_path / "sources.list"
    sources_list.write_text("deb http://ftp.de.debian.org/debian bookworm main\n")
    return Bootstrapper(
        state_dir=tmp_path / "state",
        preferences_dir=tmp_path / "preferences.d",
        sources_dir=tmp_path / "sources.list.d",
        sources_list=sources_list,
        codename="bookworm",
    )


@pytest.mark.unit
class TestDetectCodename:
    """Tests for detect_codename."""

    def test_from_os_release(self, tmp_path: Path) -> None:
        """Test VERSION_CODENAME is preferred."""
        os_release = tmp_path / "os-release"
        os_release.write_text('NAME="Debian GNU/Linux"\nVERSION_CODENAME="trixie"\n')

        assert detect_codename(os_release=os_release, use_lsb_release=False) == "trixie"

    def test_from_debian_version(self, tmp_path: Path) -> None:
        """Test the major number maps to a codename."""
        debian_version = tmp_path / "debian_version"
        debian_version.write_text("11.9\n")

        codename = detect_codename(
            os_release=tmp_path / "missing",
            debian_version=debian_version,
            use_lsb_release=False,
        )

        assert codename == "bullseye"

    def test_fallback(self, tmp_path: Path) -> None:
        """Test bookworm is assumed when nothing is known."""
        codename = detect_codename(
            os_release=tmp_path / "missing",
            debian_version=tmp_path / "missing-too",
            use_lsb_release=False,
        )

        assert codename == "bookworm"


@pytest.mark.unit
class TestDetectMirror:
    """Tests for detect_mirror."""

    def test_first_deb_line(self, tmp_path: Path) -> None:
        """Test comments and deb-src lines are skipped."""
        sources = tmp_path / "sources.list"
        sources.write_text(
            "# main mirror\n"
            "deb-src http://src.example/debian bookworm main\n"
            "deb [arch=amd64] http://ftp.de.debian.org/debian bookworm main\n"
            "deb http://security.debian.org/ bookworm-security main\n"
        )

        assert detect_mirror(sources) == "http://ftp.de.debian.org/debian"

    def test_cdrom_ignored(self, tmp_path: Path) -> None:
        """Test a cdrom entry yields no mirror."""
        sources = tmp_path / "sources.list"
        sources.write_text("deb cdrom:[Debian 12]/ bookworm main\n")

        assert detect_mirror(sources) is None

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test an unreadable sources list yields no mirror."""
        assert detect_mirror(tmp_path / "missing") is None


@pytest.mark.unit
class TestRendering:
    """Tests for generated file content."""

    @pytest.mark.parametrize("codename", ["bookworm", "trixie", "forky", "sid"])
    def test_firmware_component(self, codename: str) -> None:
        """Test recent releases get non-free-firmware."""
        assert components_for(codename)[-1] == "non-free-firmware"

    def test_no_firmware_for_old_releases(self) -> None:
        """Test bullseye keeps the base components only."""
        assert components_for("bullseye") == ["main", "contrib", "non-free"]

    def test_render_sources(self) -> None:
        """Test binary and source lines point at unstable."""
        text = render_sources("http://deb.example/debian", ["main", "contrib"])

        assert "deb http://deb.example/debian unstable main contrib\n" in text
        assert "deb-src http://deb.example/debian unstable main contrib\n" in text

    def test_render_global_preferences(self) -> None:
        """Test the four baseline priorities."""
        text = render_global_preferences("bookworm")

        assert "Pin: release a=bookworm\nPin-Priority: 990\n" in text
        assert "Pin: release a=stable\nPin-Priority: 900\n" in text
        assert "Pin: release a=unstable\nPin-Priority: 200\n" in text
        assert "Pin: release a=experimental\nPin-Priority: 50\n" in text
        assert text.count("Package: *\n") == 4


@pytest.mark.unit
class TestBootstrapper:
    """Tests for Bootstrapper.initialize and status queries."""

    def test_initialize_creates_everything(self, bootstrapper: Bootstrapper) -> None:
        """Test a fresh host gets state files, sources and preferences."""
        result = bootstrapper.initialize()

        assert len(result.created) == 4
        assert result.existing == []
        assert result.mirror == "http://ftp.de.debian.org/debian"
        assert bootstrapper.registry_file.read_text() == ""
        assert bootstrapper.is_initialized() is True
        assert bootstrapper.missing_files() == []
        assert "non-free-firmware" in bootstrapper.sources_file.read_text()
        assert bootstrapper.configured_mirror() == "http://ftp.de.debian.org/debian"

    def test_initialize_is_create_once(self, bootstrapper: Bootstrapper) -> None:
        """Test a second run leaves manual edits alone."""
        bootstrapper.initialize()
        bootstrapper.global_preferences_file.write_text("# edited\n")

        result = bootstrapper.initialize()

        assert result.created == []
        assert len(result.existing) == 4
        assert bootstrapper.global_preferences_file.read_text() == "# edited\n"

    def test_dry_run_writes_nothing(self, bootstrapper: Bootstrapper) -> None:
        """Test a dry run only reports what it would create."""
        result = bootstrapper.initialize(dry_run=True)

        assert len(result.created) == 4
        assert bootstrapper.is_initialized() is False
        assert not bootstrapper.registry_file.exists()

    def test_mirror_override(self, tmp_path: Path) -> None:
        """Test an explicit mirror skips detection."""
        boot = Bootstrapper(
            state_dir=tmp_path / "s",
            preferences_dir=tmp_path / "p",
            sources_dir=tmp_path / "d",
            sources_list=tmp_path / "missing",
            mirror="https://mirror.example/debian",
            codename="bookworm",
        )

        assert boot.mirror() == "https://mirror.example/debian"

    def test_default_mirror(self, tmp_path: Path) -> None:
        """Test the Debian CDN is used when nothing is detected."""
        boot = Bootstrapper(
            state_dir=tmp_path / "s",
            preferences_dir=tmp_path / "p",
            sources_dir=tmp_path / "d",
            sources_list=tmp_path / "missing",
            codename="bookworm",
        )

        assert boot.mirror() == "https://deb.debian.org/debian"
        assert boot.configured_mirror() is None
        assert len(boot.missing_files()) == 2
