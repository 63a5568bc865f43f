"""
Registry client — NUR index, module metadata and search.

The index (``<registry>/nur.json``) maps module names to metadata
document locators::

    {"version": "1.0", "modules": {"base64": "./modules/base64.json"}}

Locators starting with ``.`` are relative to the registry base. Each
metadata document lists the versions of one module::

    {"name": "base64", "latest": "1.0.1",
     "versions": {"1.0.1": {"entry-linux": "https://...",
                            "git": {"url": "https://...", "ref": "v1.0.1"}}}}

Failures never raise: ``fetch_index`` returns False, ``fetch_metadata``
returns the empty-name sentinel, and the reason is logged and kept in
``last_error``.
"""

from __future__ import annotations

import logging
from typing import Any

from boxpm.adapters.registry import AdapterRegistry, default_registry
from boxpm.core.models.action import Action
from boxpm.core.models.module import GitSource, ModuleMetadata, VersionMetadata
from boxpm.core.services.registry.document import DocumentError, decode_document

logger = logging.getLogger(__name__)

DEFAULT_INDEX_FILE = "nur.json"


class RegistryClient:
    """Resolve module names against a NUR registry.

    Args:
        registry_url: Registry base (``https://...`` or ``file://...``).
        adapters: Adapter registry providing the ``fetch`` adapter.
        index_file: Index document name under the base.
    """

    def __init__(
        self,
        registry_url: str,
        adapters: AdapterRegistry | None = None,
        index_file: str = DEFAULT_INDEX_FILE,
    ):
        self.registry_url = registry_url.rstrip("/")
        self.index_file = index_file
        self._adapters = adapters or default_registry()
        self._index: dict[str, str] = {}
        self.last_error = ""

    @property
    def index_url(self) -> str:
        return f"{self.registry_url}/{self.index_file}"

    # ── Transport ───────────────────────────────────────────────

    def download(self, url: str) -> bytes:
        """Fetch ``url``; empty bytes mean failure (reason in ``last_error``)."""
        receipt = self._adapters.execute_action(
            Action(id=f"fetch:{url}", adapter="fetch", params={"url": url})
        )
        if not receipt.ok or not receipt.payload:
            self.last_error = receipt.error or f"Empty response from {url}"
            logger.error("%s", self.last_error)
            return b""
        return receipt.payload

    # ── Index ───────────────────────────────────────────────────

    def fetch_index(self) -> bool:
        """Fetch and parse the registry index, replacing any previous one."""
        self._index = {}
        self.last_error = ""
        logger.info("Fetching NUR index from %s...", self.index_url)

        content = self.download(self.index_url)
        if not content:
            self.last_error = f"Failed to fetch NUR index from {self.index_url}"
            logger.error("%s", self.last_error)
            return False

        try:
            document = decode_document(content)
        except DocumentError as e:
            return self._index_failure(f"Invalid NUR index format: {e}")

        modules = document.get("modules")
        if modules is None:
            return self._index_failure("Invalid NUR index format: 'modules' not found")
        if not isinstance(modules, dict):
            return self._index_failure("Invalid NUR index format: 'modules' is not an object")

        index: dict[str, str] = {}
        for name, locator in modules.items():
            if not isinstance(locator, str) or not locator:
                logger.warning("Skipping index entry %r: locator is not a string", name)
                continue
            index[name] = self._absolute(locator)

        if not index:
            return self._index_failure("NUR index lists no modules")

        self._index = index
        logger.info("Loaded %d modules from NUR", len(index))
        return True

    def _index_failure(self, message: str) -> bool:
        self.last_error = message
        logger.error("%s", message)
        return False

    def _absolute(self, locator: str) -> str:
        if locator.startswith("."):
            return self.registry_url + locator[1:]
        return locator

    def resolve(self, name: str) -> str:
        """Metadata URL registered for ``name``, or ``""`` if not indexed."""
        return self._index.get(name, "")

    def list_modules(self) -> list[str]:
        """All indexed module names."""
        return list(self._index)

    def search(self, query: str) -> list[str]:
        """Indexed names containing ``query``, case-insensitively."""
        needle = query.lower()
        return [name for name in self._index if needle in name.lower()]

    # ── Metadata ────────────────────────────────────────────────

    def fetch_metadata(self, name: str) -> ModuleMetadata:
        """Fetch and parse the metadata document of ``name``.

        Returns ``ModuleMetadata()`` (empty name) when the module is not
        indexed or its document cannot be fetched or parsed.
        """
        self.last_error = ""
        url = self.resolve(name)
        if not url:
            self.last_error = f"Module not found in registry: {name}"
            logger.error("%s", self.last_error)
            return ModuleMetadata()

        logger.info("Fetching metadata for %s...", name)
        content = self.download(url)
        if not content:
            self.last_error = f"Failed to fetch metadata for {name} from {url}"
            logger.error("%s", self.last_error)
            return ModuleMetadata()

        try:
            document = decode_document(content)
        except DocumentError as e:
            self.last_error = f"Invalid metadata document for {name}: {e}"
            logger.error("%s", self.last_error)
            return ModuleMetadata()

        return metadata_from_document(name, document)


def metadata_from_document(name: str, document: dict[str, Any]) -> ModuleMetadata:
    """Build ModuleMetadata from a parsed module document.

    The module is named after the requested ``name``, not the document's
    own ``name`` field. Version entries that are not objects are skipped.
    """
    versions: dict[str, VersionMetadata] = {}
    raw_versions = document.get("versions")
    if isinstance(raw_versions, dict):
        for version_id, body in raw_versions.items():
            if not isinstance(body, dict):
                logger.warning("Skipping version %s of %s: not an object", version_id, name)
                continue
            versions[version_id] = _version_from_body(body)

    return ModuleMetadata(
        name=name,
        description=_text(document.get("description")),
        author=_text(document.get("author")),
        license=_text(document.get("license")),
        repository=_text(document.get("repository")),
        latest=_text(document.get("latest")),
        versions=versions,
    )


def _version_from_body(body: dict[str, Any]) -> VersionMetadata:
    git = GitSource()
    raw_git = body.get("git")
    if isinstance(raw_git, dict):
        git = GitSource(url=_text(raw_git.get("url")), ref=_text(raw_git.get("ref")))

    dependencies: dict[str, str] = {}
    raw_deps = body.get("dependencies")
    if isinstance(raw_deps, dict):
        dependencies = {dep: _text(constraint) for dep, constraint in raw_deps.items()}

    return VersionMetadata(
        description=_text(body.get("description")),
        entry_linux=_text(body.get("entry-linux")),
        entry_win=_text(body.get("entry-win")),
        entry_mac=_text(body.get("entry-mac")),
        git=git,
        dependencies=dependencies,
    )


def _text(value: Any) -> str:
    """Scalar document value as a string; objects, arrays and null become ``""``."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
