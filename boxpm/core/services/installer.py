"""
Installer — resolve, acquire, build and record Neutron native modules.

``install("name[@version]")`` runs a fixed sequence of gates; the first
failing gate aborts the install:

    1. fetch the registry index
    2. fetch the module metadata ("module not found")
    3. pick the version: explicit or ``latest`` ("version not found")
    4. acquire: git clone + build when the version has a git locator,
       otherwise download the platform binary ("no binary available")
    5. write ``metadata.json`` next to the artifact
    6. local installs: declare ``name=version`` in the project's .quark

Installed layout::

    <modules root>/<name>/
        <name>.so | .dll | .dylib
        metadata.json

Builds happen in ``<modules root>/.build/<name>.tmpN`` scratch
directories, removed whether the build succeeds or not. A module
directory created by a failed install is removed again, so a failure
never leaves something that looks installed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from boxpm.adapters.registry import AdapterRegistry, default_registry
from boxpm.core.config.loader import BoxConfig
from boxpm.core.models.action import Action, Receipt
from boxpm.core.models.module import InstalledModule, VersionMetadata
from boxpm.core.services import platform
from boxpm.core.services.builder import BuildSynthesizer
from boxpm.core.services.manifest import update_manifest
from boxpm.core.services.platform import HostOS
from boxpm.core.services.registry.client import RegistryClient

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"
SCRATCH_DIR = ".build"
MAX_SCRATCH_ATTEMPTS = 10


@dataclass
class InstallResult:
    """Outcome of ``install`` / ``update``."""

    module: str
    version: str = ""
    ok: bool = False
    strategy: str = ""              # "binary" or "source"
    path: str = ""
    manifest: str = ""              # "added", "updated", "unchanged" or ""
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        result: dict = {
            "ok": self.ok,
            "module": self.module,
            "version": self.version,
            "strategy": self.strategy,
            "path": self.path,
        }
        if self.manifest:
            result["manifest"] = self.manifest
        if self.error:
            result["error"] = self.error
        if self.warnings:
            result["warnings"] = self.warnings
        return result


@dataclass
class UninstallResult:
    """Outcome of ``uninstall``."""

    module: str
    ok: bool = False
    path: str = ""
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {"ok": self.ok, "module": self.module, "path": self.path}
        if self.error:
            result["error"] = self.error
        return result


def parse_spec(spec: str) -> tuple[str, str]:
    """Split ``name@version`` into ``(name, version)``; version may be ``""``."""
    name, _, version = spec.strip().partition("@")
    return name.strip(), version.strip()


def _valid_module_name(name: str) -> bool:
    return bool(name) and not name.startswith(".") and not any(c in name for c in "/\\")


class Installer:
    """Install, uninstall and update modules in the local or global scope.

    Args:
        config: Paths, registry URL and timeouts.
        adapters: Adapter registry (default: real shell/filesystem/git/fetch).
        registry: Registry client (default: built from ``config``).
        builder: Build synthesizer (default: built from ``config``).
        host: Host OS (default: detected).
    """

    def __init__(
        self,
        config: BoxConfig | None = None,
        adapters: AdapterRegistry | None = None,
        registry: RegistryClient | None = None,
        builder: BuildSynthesizer | None = None,
        host: HostOS | None = None,
    ):
        self.config = config or BoxConfig()
        self._adapters = adapters or default_registry(self.config.fetch_timeout)
        self.host = host or platform.detect()
        self.registry = registry or RegistryClient(
            self.config.registry_url,
            adapters=self._adapters,
            index_file=self.config.index_file,
        )
        self.builder = builder or BuildSynthesizer(
            self.config, adapters=self._adapters, host=self.host
        )

    # ── Layout ──────────────────────────────────────────────────

    def install_dir(self, global_: bool = False) -> Path:
        """Modules root for the scope."""
        return self.config.modules_dir(global_)

    def module_dir(self, name: str, global_: bool = False) -> Path:
        return self.install_dir(global_) / name

    def artifact_name(self, name: str) -> str:
        return f"{name}{platform.library_extension(self.host)}"

    def is_installed(self, name: str, global_: bool = False) -> bool:
        """Whether the module directory exists (the artifact is not checked)."""
        return _valid_module_name(name) and self.module_dir(name, global_).is_dir()

    def list_installed(self, global_: bool = False) -> list[InstalledModule]:
        """Installed modules of a scope, from their ``metadata.json``."""
        root = self.install_dir(global_)
        if not root.is_dir():
            return []

        modules: list[InstalledModule] = []
        for entry in sorted(root.iterdir()):
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            descriptor = entry / METADATA_FILE
            try:
                modules.append(InstalledModule.model_validate_json(descriptor.read_text("utf-8")))
            except (OSError, ValueError):
                logger.debug("No readable %s in %s", METADATA_FILE, entry)
                modules.append(InstalledModule(name=entry.name))
        return modules

    # ── Adapter plumbing ────────────────────────────────────────

    def _fs(self, operation: str, path: Path, **params) -> Receipt:
        return self._adapters.execute_action(
            Action(
                id=f"fs:{operation}",
                adapter="filesystem",
                params={"operation": operation, "path": str(path), **params},
            )
        )

    def _remove(self, path: Path) -> None:
        receipt = self._fs("remove", path)
        if not receipt.ok:
            logger.warning("Could not remove %s: %s", path, receipt.error)

    # ── Install ─────────────────────────────────────────────────

    def install(self, spec: str, global_: bool = False) -> InstallResult:
        """Install ``name`` or ``name@version`` into the scope."""
        name, requested = parse_spec(spec)
        result = InstallResult(module=name, version=requested)

        if not _valid_module_name(name):
            return self._fail(result, f"Invalid module name: {spec!r}")

        logger.info("Installing %s%s...", name, f"@{requested}" if requested else "")

        if not self.registry.fetch_index():
            return self._fail(result, f"Failed to fetch registry index: {self.registry.last_error}")

        metadata = self.registry.fetch_metadata(name)
        if not metadata.found:
            if self.registry.resolve(name):
                return self._fail(result, self.registry.last_error)
            return self._fail(result, f"Module not found: {name}")

        version = requested or metadata.latest
        result.version = version
        if not version:
            return self._fail(result, f"Module {name} declares no latest version")

        version_meta = metadata.get_version(version)
        if version_meta is None:
            return self._fail(result, f"Version not found: {name}@{version}")

        module_dir = self.module_dir(name, global_)
        artifact = module_dir / self.artifact_name(name)
        existed = module_dir.exists()
        result.path = str(module_dir)

        if version_meta.git.present:
            result.strategy = "source"
            error = self._acquire_from_source(name, version_meta, module_dir, artifact, global_)
        else:
            result.strategy = "binary"
            error = self._acquire_binary(name, version, version_meta, module_dir, artifact)

        if error is None and not artifact.is_file():
            error = f"Artifact missing after install: {artifact}"

        if error is None:
            error = self._write_descriptor(name, version, version_meta, module_dir, artifact)

        if error is not None:
            if not existed and module_dir.exists():
                self._remove(module_dir)
            return self._fail(result, error)

        logger.info("Installed %s@%s to %s", name, version, module_dir)
        result.ok = True

        if not global_:
            self._record_dependency(result)
        return result

    def _fail(self, result: InstallResult, error: str) -> InstallResult:
        result.ok = False
        result.error = error
        logger.error("%s", error)
        return result

    def _acquire_binary(
        self,
        name: str,
        version: str,
        version_meta: VersionMetadata,
        module_dir: Path,
        artifact: Path,
    ) -> str | None:
        url = version_meta.binary_url(platform.platform_key(self.host))
        if not url:
            return (
                f"No binary available for {platform.os_label(self.host)} "
                f"and no git repository for {name}@{version}"
            )

        logger.info("Downloading from %s...", url)
        data = self.registry.download(url)
        if not data:
            return f"Failed to download {name}: {self.registry.last_error}"

        receipt = self._fs("mkdir", module_dir)
        if not receipt.ok:
            return f"Failed to create directory {module_dir}: {receipt.error}"

        receipt = self._fs("write", artifact, data=data)
        if not receipt.ok:
            return f"Failed to write {artifact}: {receipt.error}"

        if self.host is not HostOS.WINDOWS:
            receipt = self._fs("chmod", artifact)
            if receipt.failed:
                return f"Failed to mark {artifact} executable: {receipt.error}"
        return None

    def _make_scratch_dir(self, name: str, global_: bool) -> Path | None:
        """Create a fresh ``.build/<name>.tmpN`` directory, counting N upward."""
        scratch_root = self.install_dir(global_) / SCRATCH_DIR
        for attempt in range(MAX_SCRATCH_ATTEMPTS):
            candidate = scratch_root / f"{name}.tmp{attempt}"
            if candidate.exists():
                continue
            receipt = self._fs("mkdir", candidate, exclusive=True)
            if receipt.ok:
                return candidate
            logger.debug("Scratch candidate %s unavailable: %s", candidate, receipt.error)
        return None

    def _acquire_from_source(
        self,
        name: str,
        version_meta: VersionMetadata,
        module_dir: Path,
        artifact: Path,
        global_: bool,
    ) -> str | None:
        scratch = self._make_scratch_dir(name, global_)
        if scratch is None:
            return f"Failed to create a unique build directory for {name}"

        try:
            git = version_meta.git
            logger.info("Cloning from %s...", git.url)
            receipt = self._adapters.execute_action(
                Action(
                    id="git:clone",
                    adapter="git",
                    params={"operation": "clone", "url": git.url, "dest": "repo", "cwd": str(scratch)},
                )
            )
            if not receipt.ok:
                return f"Failed to clone {git.url}: {receipt.error}"

            repo = scratch / "repo"
            if git.ref:
                receipt = self._adapters.execute_action(
                    Action(
                        id="git:checkout",
                        adapter="git",
                        params={"operation": "checkout", "ref": git.ref, "cwd": str(repo)},
                    )
                )
                if not receipt.ok:
                    return f"Failed to checkout {git.ref}: {receipt.error}"

            # Built in scratch, then renamed over the installed artifact
            built = scratch / artifact.name
            build = self.builder.build(repo, built)
            if not build.ok:
                return f"Failed to build {name} from source: {build.error}"

            receipt = self._fs("mkdir", module_dir)
            if not receipt.ok:
                return f"Failed to create directory {module_dir}: {receipt.error}"

            receipt = self._fs("move", built, dest=str(artifact))
            if not receipt.ok:
                return f"Failed to install {artifact}: {receipt.error}"
            return None
        finally:
            self._remove(scratch)

    def _write_descriptor(
        self,
        name: str,
        version: str,
        version_meta: VersionMetadata,
        module_dir: Path,
        artifact: Path,
    ) -> str | None:
        record = InstalledModule(
            name=name,
            version=version,
            description=version_meta.description,
            platform=platform.os_label(self.host),
            library=artifact.name,
        )
        receipt = self._fs("write", module_dir / METADATA_FILE, data=record.to_json())
        if not receipt.ok:
            return f"Failed to write {METADATA_FILE}: {receipt.error}"
        return None

    def _record_dependency(self, result: InstallResult) -> None:
        manifest = self.config.manifest_path()
        if not manifest.is_file():
            return

        logger.info("Updating %s configuration...", manifest.name)
        try:
            change = update_manifest(manifest, result.module, result.version)
        except OSError as e:
            result.ok = False
            result.error = (
                f"Installed {result.module}@{result.version} but could not update "
                f"{manifest.name}: {e}"
            )
            logger.error("%s", result.error)
            return
        result.manifest = change.action

    # ── Uninstall / update ──────────────────────────────────────

    def uninstall(self, name: str, global_: bool = False) -> UninstallResult:
        """Remove an installed module directory."""
        result = UninstallResult(module=name)
        if not self.is_installed(name, global_):
            result.error = f"Module not installed: {name}"
            logger.error("%s", result.error)
            return result

        module_dir = self.module_dir(name, global_)
        result.path = str(module_dir)
        logger.info("Uninstalling %s...", name)

        receipt = self._fs("remove", module_dir)
        if not receipt.ok:
            result.error = f"Failed to uninstall {name}: {receipt.error}"
            logger.error("%s", result.error)
            return result

        result.ok = True
        logger.info("Uninstalled %s", name)
        return result

    def update(self, spec: str, global_: bool = False) -> InstallResult:
        """Uninstall (if present) then install again.

        Not atomic: an install failure after the uninstall leaves the
        module absent.
        """
        name, _ = parse_spec(spec)
        logger.info("Updating %s...", name)
        if self.is_installed(name, global_):
            removed = self.uninstall(name, global_)
            if not removed.ok:
                logger.warning("Continuing update despite: %s", removed.error)
        return self.install(spec, global_)
