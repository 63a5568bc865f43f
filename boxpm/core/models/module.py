"""
Module models — registry metadata and installed-module records.

``ModuleMetadata`` / ``VersionMetadata`` mirror the per-module NUR
document. Hyphenated document keys (``entry-linux``...) map onto
attribute names through aliases, so a parsed document validates
straight into these models.

``InstalledModule`` is the ``metadata.json`` descriptor written next to
an installed artifact.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GitSource(BaseModel):
    """Source-control locator for a build-from-source version."""

    url: str = ""
    ref: str = ""

    @property
    def present(self) -> bool:
        return bool(self.url)


class VersionMetadata(BaseModel):
    """One entry of a module's ``versions`` object."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    description: str = ""
    entry_linux: str = Field(default="", alias="entry-linux")
    entry_win: str = Field(default="", alias="entry-win")
    entry_mac: str = Field(default="", alias="entry-mac")
    git: GitSource = Field(default_factory=GitSource)
    # Stored for display only, never resolved.
    dependencies: dict[str, str] = Field(default_factory=dict)

    def binary_url(self, platform_key: str) -> str:
        """Binary URL for a platform key (``entry-linux``...), or ``""``."""
        return {
            "entry-linux": self.entry_linux,
            "entry-win": self.entry_win,
            "entry-mac": self.entry_mac,
        }.get(platform_key, "")

    def is_acquirable(self, platform_key: str) -> bool:
        """A version can be installed from git or from a platform binary."""
        return self.git.present or bool(self.binary_url(platform_key))


class ModuleMetadata(BaseModel):
    """Per-module registry document.

    An empty ``name`` is the "not found" sentinel returned by the
    registry client.
    """

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    description: str = ""
    author: str = ""
    license: str = ""
    repository: str = ""
    latest: str = ""
    versions: dict[str, VersionMetadata] = Field(default_factory=dict)

    @property
    def found(self) -> bool:
        return bool(self.name)

    def get_version(self, version: str) -> VersionMetadata | None:
        """Look up a version entry by id."""
        return self.versions.get(version)


class InstalledModule(BaseModel):
    """The ``metadata.json`` descriptor of an installed module."""

    name: str
    version: str = ""
    description: str = ""
    platform: str = ""
    library: str = ""

    def to_json(self) -> str:
        return self.model_dump_json(indent=2) + "\n"
