"""
Tests for the platform oracle.
"""

import pytest

from boxpm.core.services import platform
from boxpm.core.services.platform import HostOS


class TestDetect:
    @pytest.mark.parametrize(
        "system, expected",
        [
            ("Linux", HostOS.LINUX),
            ("Windows", HostOS.WINDOWS),
            ("Darwin", HostOS.MACOS),
            ("MINGW64_NT-10.0", HostOS.WINDOWS),
            ("CYGWIN_NT-10.0", HostOS.WINDOWS),
            ("FreeBSD", HostOS.UNKNOWN),
            ("", HostOS.UNKNOWN),
        ],
    )
    def test_system_names(self, system, expected):
        assert platform.detect(system) is expected

    def test_detects_running_host(self):
        assert isinstance(platform.detect(), HostOS)


class TestDerived:
    def test_library_extensions(self):
        assert platform.library_extension(HostOS.LINUX) == ".so"
        assert platform.library_extension(HostOS.WINDOWS) == ".dll"
        assert platform.library_extension(HostOS.MACOS) == ".dylib"

    def test_platform_keys(self):
        assert platform.platform_key(HostOS.LINUX) == "entry-linux"
        assert platform.platform_key(HostOS.WINDOWS) == "entry-win"
        assert platform.platform_key(HostOS.MACOS) == "entry-mac"

    def test_unknown_degrades_to_linux(self):
        assert platform.library_extension(HostOS.UNKNOWN) == ".so"
        assert platform.platform_key(HostOS.UNKNOWN) == "entry-linux"
        assert platform.os_label(HostOS.UNKNOWN) == "Unknown"

    def test_labels(self):
        assert platform.os_label(HostOS.MACOS) == "macOS"
        assert platform.os_label(HostOS.LINUX) == "Linux"

    def test_predicates(self):
        assert platform.is_windows(HostOS.WINDOWS)
        assert not platform.is_linux(HostOS.WINDOWS)
        assert platform.is_macos(HostOS.MACOS)
        assert platform.is_linux(HostOS.LINUX)
