"""
Tests for .quark dependency reconciliation.
"""

from pathlib import Path

import pytest

from boxpm.core.services.manifest import (
    reconcile_dependency,
    update_manifest,
)


class TestReconcile:
    def test_adds_to_existing_section(self):
        lines = ["[project]", "name=demo", "", "[dependencies]", "json=2.0"]
        change = reconcile_dependency(lines, "base64", "1.0.1")
        assert change.action == "added"
        assert change.lines == ["[project]", "name=demo", "", "[dependencies]", "json=2.0", "base64=1.0.1"]

    def test_inserts_before_next_section(self):
        lines = ["[dependencies]", "json=2.0", "", "[build]", "opt=2"]
        change = reconcile_dependency(lines, "base64", "1.0.1")
        assert change.lines == ["[dependencies]", "json=2.0", "base64=1.0.1", "", "[build]", "opt=2"]

    def test_empty_section(self):
        change = reconcile_dependency(["[dependencies]", "", "[build]"], "base64", "1.0")
        assert change.lines == ["[dependencies]", "base64=1.0", "", "[build]"]

    def test_creates_missing_section(self):
        change = reconcile_dependency(["[project]", "name=demo"], "base64", "1.0.1")
        assert change.action == "added"
        assert change.lines == ["[project]", "name=demo", "", "[dependencies]", "base64=1.0.1"]

    def test_updates_in_place(self):
        lines = ["[dependencies]", "base64=1.0.0", "json=2.0"]
        change = reconcile_dependency(lines, "base64", "1.0.1")
        assert change.action == "updated"
        assert change.lines == ["[dependencies]", "base64=1.0.1", "json=2.0"]

    def test_unchanged_when_already_declared(self):
        lines = ["[dependencies]", "  base64 = 1.0.1  "]
        change = reconcile_dependency(lines, "base64", "1.0.1")
        assert change.action == "updated"
        assert change.lines == ["[dependencies]", "base64=1.0.1"]

        again = reconcile_dependency(change.lines, "base64", "1.0.1")
        assert again.action == "unchanged"
        assert not again.changed
        assert again.lines == change.lines

    def test_collapses_duplicates(self):
        lines = ["[dependencies]", "base64=1.0.0", "json=2.0", "base64=0.9"]
        change = reconcile_dependency(lines, "base64", "1.0.1")
        assert change.lines == ["[dependencies]", "base64=1.0.1", "json=2.0"]

    def test_ignores_comments(self):
        lines = ["[dependencies]", "# base64=0.1", "json=2.0"]
        change = reconcile_dependency(lines, "base64", "1.0.1")
        assert change.action == "added"
        assert change.lines == ["[dependencies]", "# base64=0.1", "json=2.0", "base64=1.0.1"]

    def test_keys_outside_section_are_untouched(self):
        lines = ["[project]", "base64=old", "[dependencies]"]
        change = reconcile_dependency(lines, "base64", "1.0")
        assert change.lines == ["[project]", "base64=old", "[dependencies]", "base64=1.0"]

    def test_prefix_names_do_not_match(self):
        lines = ["[dependencies]", "base64x=3.0"]
        change = reconcile_dependency(lines, "base64", "1.0")
        assert change.lines == ["[dependencies]", "base64x=3.0", "base64=1.0"]

    def test_empty_manifest(self):
        change = reconcile_dependency([], "base64", "1.0")
        assert change.lines == ["", "[dependencies]", "base64=1.0"]


class TestUpdateManifest:
    def test_writes_file(self, tmp_path: Path):
        manifest = tmp_path / ".quark"
        manifest.write_text("[project]\nname=demo\n")

        change = update_manifest(manifest, "base64", "1.0.1")

        assert change.action == "added"
        assert manifest.read_text() == "[project]\nname=demo\n\n[dependencies]\nbase64=1.0.1\n"
        assert [p.name for p in tmp_path.iterdir()] == [".quark"]

    def test_idempotent(self, tmp_path: Path):
        manifest = tmp_path / ".quark"
        manifest.write_text("[dependencies]\n")
        update_manifest(manifest, "base64", "1.0.1")
        first = manifest.read_text()

        change = update_manifest(manifest, "base64", "1.0.1")

        assert change.action == "unchanged"
        assert manifest.read_text() == first

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(OSError):
            update_manifest(tmp_path / ".quark", "base64", "1.0")

    def test_keeps_crlf_line_endings(self, tmp_path: Path):
        manifest = tmp_path / ".quark"
        manifest.write_bytes(b"[project]\r\nname=demo\r\n\r\n[dependencies]\r\njson=2.0\r\n")

        update_manifest(manifest, "base64", "1.0.1")

        assert manifest.read_bytes() == (
            b"[project]\r\nname=demo\r\n\r\n[dependencies]\r\njson=2.0\r\nbase64=1.0.1\r\n"
        )
