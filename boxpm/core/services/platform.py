"""
Platform oracle — host OS, shared-library suffix and registry entry key.

Unknown hosts degrade to Linux-like defaults instead of failing, so
modules that build from source can still be installed there.
"""

from __future__ import annotations

import platform as _platform
from enum import Enum


class HostOS(str, Enum):
    LINUX = "linux"
    WINDOWS = "windows"
    MACOS = "macos"
    UNKNOWN = "unknown"


_LIBRARY_EXTENSIONS = {
    HostOS.LINUX: ".so",
    HostOS.WINDOWS: ".dll",
    HostOS.MACOS: ".dylib",
}

_PLATFORM_KEYS = {
    HostOS.LINUX: "entry-linux",
    HostOS.WINDOWS: "entry-win",
    HostOS.MACOS: "entry-mac",
}

_LABELS = {
    HostOS.LINUX: "Linux",
    HostOS.WINDOWS: "Windows",
    HostOS.MACOS: "macOS",
    HostOS.UNKNOWN: "Unknown",
}


def detect(system: str | None = None) -> HostOS:
    """Map ``platform.system()`` (or an explicit value) onto a HostOS."""
    name = (system if system is not None else _platform.system()).lower()
    if name == "linux":
        return HostOS.LINUX
    if name == "windows" or name.startswith(("cygwin", "msys", "mingw")):
        return HostOS.WINDOWS
    if name == "darwin":
        return HostOS.MACOS
    return HostOS.UNKNOWN


def library_extension(host: HostOS | None = None) -> str:
    """``.so`` / ``.dll`` / ``.dylib``; ``.so`` when unknown."""
    return _LIBRARY_EXTENSIONS.get(host or detect(), ".so")


def platform_key(host: HostOS | None = None) -> str:
    """Registry key of the per-platform binary URL; ``entry-linux`` when unknown."""
    return _PLATFORM_KEYS.get(host or detect(), "entry-linux")


def os_label(host: HostOS | None = None) -> str:
    """Display name recorded in installed-module descriptors."""
    return _LABELS[host or detect()]


def is_linux(host: HostOS | None = None) -> bool:
    return (host or detect()) is HostOS.LINUX


def is_windows(host: HostOS | None = None) -> bool:
    return (host or detect()) is HostOS.WINDOWS


def is_macos(host: HostOS | None = None) -> bool:
    return (host or detect()) is HostOS.MACOS
