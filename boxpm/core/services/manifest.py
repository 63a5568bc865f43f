"""
Dependency manifest (``.quark``) reconciliation.

The manifest is a sectioned ``key=value`` text file; installs record
themselves in its ``[dependencies]`` section::

    [project]
    name=demo

    [dependencies]
    base64=1.0.1

Lines are compared whitespace-trimmed and ``#`` comment lines are
ignored. A module has at most one entry: re-installing rewrites its
line in place, otherwise the entry goes after the last line of the
section (or into a new section appended after a blank line). Every
other line is kept verbatim and the file is rewritten once, atomically.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

logger = logging.getLogger(__name__)

DEPENDENCIES_HEADER = "[dependencies]"


@dataclass
class ManifestChange:
    """Result of reconciling one dependency entry."""

    action: Literal["added", "updated", "unchanged"]
    lines: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.action != "unchanged"


def _entry_key(trimmed: str) -> str | None:
    if not trimmed or trimmed.startswith("#"):
        return None
    key, sep, _ = trimmed.partition("=")
    return key.strip() if sep else None


def reconcile_dependency(lines: list[str], name: str, version: str) -> ManifestChange:
    """Return ``lines`` with ``name=version`` declared exactly once."""
    entry = f"{name}={version}"
    out: list[str] = []

    in_section = False
    first_open = False              # inside the first [dependencies] section
    insert_at: int | None = None    # after its last non-blank line
    replaced = False
    modified = False

    for line in lines:
        trimmed = line.strip()

        if trimmed.startswith("["):
            in_section = trimmed == DEPENDENCIES_HEADER
            first_open = in_section and insert_at is None
            out.append(line)
            if first_open:
                insert_at = len(out)
            continue

        if in_section and _entry_key(trimmed) == name:
            if replaced:
                # Duplicate declaration: keep only the first.
                modified = True
                continue
            replaced = True
            if trimmed != entry:
                modified = True
            out.append(entry)
        else:
            out.append(line)

        if first_open and trimmed:
            insert_at = len(out)

    if replaced:
        return ManifestChange("updated" if modified else "unchanged", out)

    if insert_at is None:
        out += ["", DEPENDENCIES_HEADER, entry]
    else:
        out.insert(insert_at, entry)
    return ManifestChange("added", out)


def read_manifest(path: Path) -> tuple[list[str], str]:
    """Lines of the manifest and its newline style (``\\r\\n`` or ``\\n``)."""
    with path.open(encoding="utf-8", newline="") as handle:
        text = handle.read()
    newline = "\r\n" if "\r\n" in text else "\n"
    return text.splitlines(), newline


def write_manifest(path: Path, lines: list[str], newline: str = "\n") -> None:
    """Replace ``path`` with ``lines`` (write to temp file, then rename)."""
    content = "".join(f"{line}{newline}" for line in lines)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".quark_", suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        tmp.write_text(content, encoding="utf-8", newline="")
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def update_manifest(path: Path, name: str, version: str) -> ManifestChange:
    """Declare ``name=version`` in the manifest at ``path``.

    Raises:
        OSError: If the manifest cannot be read or replaced. The original
            file is untouched in that case.
    """
    lines, newline = read_manifest(path)
    change = reconcile_dependency(lines, name, version)
    if change.changed:
        write_manifest(path, change.lines, newline)
        logger.info("%s dependency: %s -> %s", change.action.capitalize(), name, version)
    return change
