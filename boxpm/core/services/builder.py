"""
Build command synthesizer — compile a module source tree into a shared library.

Two command grammars are supported:

    GCC-compatible (g++ / clang++, including MSYS2/MinGW on Windows)::

        g++ -std=c++17 -shared -fPIC -I"inc" "native.cpp" "native_shim.cpp" -o "out.so"
            [-L"<root>/build" -Wl,-rpath,"<root>/build" -lneutron_runtime]

    MSVC::

        cl /std:c++17 /I"inc" "native.cpp" "native_shim.cpp" /LD /MD /Fe:"out.dll"
            [/link /LIBPATH:"<root>/build" neutron_runtime.lib]

Every build compiles ``native_shim.cpp`` next to the module source. The
shim resolves the Neutron C API at load time (dlsym/GetProcAddress), so a
module links without an import library; without the shim there is no
build at all.

Per build the state moves
``IDLE → COMPILER_SELECTED → SOURCE_LOCATED → COMMAND_RENDERED → SUCCEEDED | FAILED``.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from boxpm.adapters.registry import AdapterRegistry, default_registry
from boxpm.core.config.loader import BoxConfig
from boxpm.core.models.action import Action
from boxpm.core.models.module import InstalledModule
from boxpm.core.services import platform
from boxpm.core.services.platform import HostOS

logger = logging.getLogger(__name__)

CXX_STANDARD = "c++17"
RUNTIME_LIBRARY = "neutron_runtime"
RUNTIME_HOME_ENV = "NEUTRON_HOME"
RUNTIME_HEADERS = ("include/neutron.h", "include/core/neutron.h")

SHIM_SOURCE = "native_shim.cpp"

# First hit wins.
ENTRY_SOURCES = (
    "native.cpp",
    "src/native.cpp",
    "native/native.cpp",
    "src/module.cpp",
)

_VS_ROOTS = (
    r"C:\Program Files\Microsoft Visual Studio",
    r"C:\Program Files (x86)\Microsoft Visual Studio",
)
_VS_YEARS = ("2022", "2019", "2017")
_VS_EDITIONS = ("Community", "Professional", "Enterprise", "BuildTools")
VCVARS_SCRIPT = "VC/Auxiliary/Build/vcvars64.bat"


def default_toolchain_dirs() -> list[str]:
    """Conventional Visual Studio installation directories, newest first."""
    return [
        f"{root}\\{year}\\{edition}"
        for year in _VS_YEARS
        for root in _VS_ROOTS
        for edition in _VS_EDITIONS
    ]


class BuildState(str, Enum):
    IDLE = "idle"
    COMPILER_SELECTED = "compiler_selected"
    SOURCE_LOCATED = "source_located"
    COMMAND_RENDERED = "command_rendered"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class BuildResult:
    """Outcome of one build."""

    state: BuildState = BuildState.IDLE
    compiler: str = ""
    command: str = ""
    output_path: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is BuildState.SUCCEEDED

    def fail(self, error: str) -> BuildResult:
        self.state = BuildState.FAILED
        self.error = error
        logger.error("%s", error)
        return self

    def to_dict(self) -> dict:
        result: dict = {
            "ok": self.ok,
            "state": self.state.value,
            "compiler": self.compiler,
            "command": self.command,
            "output_path": self.output_path,
        }
        if self.error:
            result["error"] = self.error
        return result


class BuildSynthesizer:
    """Pick a toolchain, render its build command and run it.

    Args:
        config: Box configuration (runtime hint, shim path, timeouts).
        adapters: Adapter registry providing ``shell`` and ``filesystem``.
        host: Host OS (default: detected).
        environ: Environment mapping (default: ``os.environ``).
        which: PATH lookup (default: ``shutil.which``).
        toolchain_dirs: Visual Studio roots probed for ``vcvars64.bat``.
    """

    def __init__(
        self,
        config: BoxConfig | None = None,
        adapters: AdapterRegistry | None = None,
        host: HostOS | None = None,
        environ: Mapping[str, str] | None = None,
        which: Callable[[str], str | None] = shutil.which,
        toolchain_dirs: list[str] | None = None,
    ):
        self.config = config or BoxConfig()
        self._adapters = adapters or default_registry(self.config.fetch_timeout)
        self.host = host or platform.detect()
        self._environ = os.environ if environ is None else environ
        self._which = which
        self._toolchain_dirs = (
            default_toolchain_dirs() if toolchain_dirs is None else toolchain_dirs
        )

    # ── Toolchain ───────────────────────────────────────────────

    def _in_msys(self) -> bool:
        msystem = self._environ.get("MSYSTEM", "")
        return "MINGW" in msystem or "MSYS" in msystem

    def select_compiler(self) -> str:
        """``g++`` under MSYS2/MinGW, ``cl`` on plain Windows, else clang++ or g++."""
        if self.host is HostOS.WINDOWS:
            return "g++" if self._in_msys() else "cl"
        if self._which("clang++"):
            return "clang++"
        return "g++"

    def uses_msvc(self, compiler: str | None = None) -> bool:
        return self.host is HostOS.WINDOWS and (compiler or self.select_compiler()) == "cl"

    def linker_flags(self) -> list[str]:
        if self.host is HostOS.WINDOWS and not self._in_msys():
            return ["/LD", "/MD"]
        if self.host is HostOS.MACOS:
            return ["-shared", "-fPIC", "-dynamiclib"]
        return ["-shared", "-fPIC"]

    # ── Runtime discovery ───────────────────────────────────────

    def _runtime_candidates(self) -> list[str]:
        candidates: list[str] = []
        if self.config.runtime_home:
            candidates.append(str(Path(self.config.runtime_home).expanduser()))

        if self.host is HostOS.WINDOWS:
            candidates += [r"C:\Program Files\Neutron", r"C:\Neutron"]
            if self._environ.get("MSYSTEM"):
                candidates += ["/mingw64/neutron", "/usr/local/neutron", "/opt/neutron"]
        else:
            candidates += ["/usr/local/neutron", "/opt/neutron"]
            home = self._environ.get("HOME")
            if home:
                candidates.append(f"{home}/.neutron")

        root = self.config.root()
        candidates += [str(root), str(root.parent)]
        return candidates

    def locate_runtime_root(self) -> str:
        """Neutron install root, or ``""`` when none is found.

        ``NEUTRON_HOME`` wins unconditionally; other candidates must
        contain the runtime header.
        """
        override = self._environ.get(RUNTIME_HOME_ENV)
        if override:
            return override

        for candidate in self._runtime_candidates():
            if any((Path(candidate) / header).is_file() for header in RUNTIME_HEADERS):
                logger.debug("Neutron runtime found at %s", candidate)
                return candidate
        logger.debug("No Neutron runtime found; using fallback include paths")
        return ""

    def include_paths(self, runtime_root: str | None = None) -> list[str]:
        root = self.locate_runtime_root() if runtime_root is None else runtime_root
        paths = [f"{root}/include"] if root else []
        paths += ["../include", "../../include"]
        return paths

    # ── Sources ─────────────────────────────────────────────────

    def locate_entry_source(self, source_dir: str | Path) -> Path | None:
        for relative in ENTRY_SOURCES:
            candidate = Path(source_dir) / relative
            if candidate.is_file():
                return candidate
        return None

    def locate_shim_source(self, source_dir: str | Path, runtime_root: str = "") -> Path | None:
        candidates: list[Path] = []
        if self.config.shim_source:
            candidates.append(Path(self.config.shim_source).expanduser())
        candidates += [Path(source_dir) / SHIM_SOURCE, Path(source_dir) / "src" / SHIM_SOURCE]
        if runtime_root:
            candidates += [
                Path(runtime_root) / "src" / SHIM_SOURCE,
                Path(runtime_root) / "box" / "src" / SHIM_SOURCE,
            ]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    # ── Rendering ───────────────────────────────────────────────

    def render_command(self, source_dir: str | Path, output_path: str | Path) -> str:
        """Render the build command, or ``""`` if a required source is missing."""
        return self._render(BuildResult(), source_dir, output_path).command

    def _render(
        self,
        result: BuildResult,
        source_dir: str | Path,
        output_path: str | Path,
    ) -> BuildResult:
        # The compiler runs in source_dir, so every path in the command is absolute
        source_dir = Path(source_dir).resolve()
        output_path = Path(output_path).resolve()
        result.compiler = self.select_compiler()
        result.output_path = str(output_path)
        result.state = BuildState.COMPILER_SELECTED

        entry = self.locate_entry_source(source_dir)
        if entry is None:
            return result.fail(
                f"No module source found in {source_dir} (looked for {', '.join(ENTRY_SOURCES)})"
            )

        runtime_root = self.locate_runtime_root()
        shim = self.locate_shim_source(source_dir, runtime_root)
        if shim is None:
            return result.fail(f"Platform shim {SHIM_SOURCE} not found; cannot build {source_dir}")
        result.state = BuildState.SOURCE_LOCATED

        includes = self.include_paths(runtime_root)
        if self.uses_msvc(result.compiler):
            parts = [result.compiler, f"/std:{CXX_STANDARD}"]
            parts += [f'/I"{path}"' for path in includes]
            parts += [f'"{entry}"', f'"{shim}"']
            parts += self.linker_flags()
            parts.append(f'/Fe:"{output_path}"')
            if runtime_root:
                parts += ["/link", f'/LIBPATH:"{runtime_root}/build"', f"{RUNTIME_LIBRARY}.lib"]
        else:
            parts = [result.compiler, f"-std={CXX_STANDARD}"]
            parts += self.linker_flags()
            parts += [f'-I"{path}"' for path in includes]
            parts += [f'"{entry}"', f'"{shim}"']
            parts.append(f'-o "{output_path}"')
            if runtime_root:
                parts.append(f'-L"{runtime_root}/build"')
                # MinGW has no rpath
                if self.host is not HostOS.WINDOWS:
                    parts.append(f'-Wl,-rpath,"{runtime_root}/build"')
                parts.append(f"-l{RUNTIME_LIBRARY}")

        result.command = " ".join(parts)
        result.state = BuildState.COMMAND_RENDERED
        return result

    # ── Execution ───────────────────────────────────────────────

    def find_vcvars(self) -> str:
        """First ``vcvars64.bat`` under the known Visual Studio roots, or ``""``."""
        for directory in self._toolchain_dirs:
            script = Path(directory) / VCVARS_SCRIPT
            if script.is_file():
                return str(script)
        return ""

    def build(self, source_dir: str | Path, output_path: str | Path) -> BuildResult:
        """Render and run the build command for ``source_dir``."""
        source_dir = Path(source_dir).resolve()
        output_path = Path(output_path).resolve()
        result = self._render(BuildResult(), source_dir, output_path)
        if result.state is BuildState.FAILED:
            return result

        command = result.command
        if self.uses_msvc(result.compiler) and not self._which("cl"):
            script = self.find_vcvars()
            if not script:
                return result.fail(
                    "MSVC toolchain not found: cl.exe is not on PATH and no vcvars64.bat "
                    "was found in any Visual Studio installation"
                )
            logger.info("cl.exe not on PATH; initializing MSVC environment from %s", script)
            command = f'call "{script}" >nul && {command}'
            result.command = command

        receipt = self._adapters.execute_action(
            Action(
                id="build:compile",
                adapter="shell",
                name=f"compile {Path(output_path).name}",
                params={
                    "command": command,
                    "cwd": str(source_dir),
                    "timeout": self.config.build_timeout,
                },
            )
        )
        if not receipt.ok:
            return result.fail(f"Build failed: {receipt.error}")

        if not Path(output_path).is_file():
            return result.fail(f"Build finished but produced no artifact at {output_path}")

        result.state = BuildState.SUCCEEDED
        logger.info("Built %s", output_path)
        return result

    def build_native(
        self,
        module_name: str,
        source_dir: str | Path,
        output_dir: str | Path,
        version: str,
    ) -> BuildResult:
        """Build a local source tree into ``<output_dir>/<name>/<name><ext>``.

        Writes a ``metadata.json`` descriptor next to the artifact.
        """
        base_name = Path(module_name).name
        module_dir = Path(output_dir) / base_name
        ext = platform.library_extension(self.host)
        output_path = module_dir / f"{base_name}{ext}"

        logger.info("Building native module %s %s for %s", base_name, version,
                    platform.os_label(self.host))

        receipt = self._adapters.execute_action(
            Action(
                id="fs:mkdir",
                adapter="filesystem",
                params={"operation": "mkdir", "path": str(module_dir)},
            )
        )
        if not receipt.ok:
            return BuildResult(output_path=str(output_path)).fail(
                f"Cannot create {module_dir}: {receipt.error}"
            )

        result = self.build(source_dir, output_path)
        if not result.ok:
            return result

        record = InstalledModule(
            name=base_name,
            version=version,
            description=f"{base_name} native module for Neutron",
            platform=platform.os_label(self.host),
            library=output_path.name,
        )
        receipt = self._adapters.execute_action(
            Action(
                id="fs:write",
                adapter="filesystem",
                params={
                    "operation": "write",
                    "path": str(module_dir / "metadata.json"),
                    "data": record.to_json(),
                },
            )
        )
        if not receipt.ok:
            logger.warning("Could not write metadata.json: %s", receipt.error)
        return result
