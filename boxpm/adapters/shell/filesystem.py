"""
Filesystem adapter — directory and file primitives.

Recursive create and remove, byte-exact write, rename-into-place and
the POSIX executable bit, behind the same receipt-returning interface as every
other side effect.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from pathlib import Path

from boxpm.adapters.base import Adapter, ExecutionContext
from boxpm.core.models.action import Receipt

logger = logging.getLogger(__name__)

_OPERATIONS = {"exists", "mkdir", "remove", "write", "chmod", "list", "move"}


class FilesystemAdapter(Adapter):
    """File and directory operations with receipts.

    Action params:
        operation (str): One of 'exists', 'mkdir', 'remove', 'write',
                         'chmod', 'list', 'move'.
        path (str): Target path (relative to working_dir or absolute).
        data (bytes): Content to write (for 'write').
        exclusive (bool): For 'mkdir', fail if the directory already exists.
        dest (str): Destination path (for 'move'), replaced if it exists.
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.action.params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"

        if operation not in _OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_OPERATIONS))}"

        if not context.action.params.get("path", ""):
            return False, "Missing required param: 'path'"

        if operation == "write" and "data" not in context.action.params:
            return False, "Missing required param: 'data' for write operation"

        if operation == "move" and not context.action.params.get("dest", ""):
            return False, "Missing required param: 'dest' for move operation"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.params["operation"]
        target = Path(context.action.params["path"])
        if not target.is_absolute():
            target = Path(context.working_dir) / target

        handler = getattr(self, f"_{operation}")
        try:
            return handler(context, target)
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error ({operation} {target}): {e.strerror or e}",
                metadata={"operation": operation, "path": str(target)},
            )

    def _exists(self, ctx: ExecutionContext, target: Path) -> Receipt:
        exists = target.exists()
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=str(exists),
            metadata={"exists": exists, "is_dir": target.is_dir(), "path": str(target)},
        )

    def _mkdir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        exclusive = bool(ctx.action.params.get("exclusive", False))
        if exclusive:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.mkdir()
        else:
            target.mkdir(parents=True, exist_ok=True)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Directory created: {target}",
            metadata={"path": str(target)},
        )

    def _remove(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Removed: {target}",
            metadata={"path": str(target)},
        )

    def _write(self, ctx: ExecutionContext, target: Path) -> Receipt:
        data = ctx.action.params["data"]
        if isinstance(data, str):
            data = data.encode("utf-8")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Written {len(data)} bytes to {target}",
            metadata={"path": str(target), "size": len(data)},
        )

    def _chmod(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if os.name == "nt":
            return Receipt.skip(
                adapter=self.name,
                action_id=ctx.action.id,
                reason="Executable bit not applicable on Windows",
            )
        mode = target.stat().st_mode
        target.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Marked executable: {target}",
            metadata={"path": str(target)},
        )

    def _list(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not target.is_dir():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Not a directory: {target}",
            )
        entries = sorted(p.name for p in target.iterdir())
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output="\n".join(entries),
            metadata={"path": str(target), "count": len(entries), "entries": entries},
        )

    def _move(self, ctx: ExecutionContext, target: Path) -> Receipt:
        dest = Path(ctx.action.params["dest"])
        if not dest.is_absolute():
            dest = Path(ctx.working_dir) / dest
        dest.parent.mkdir(parents=True, exist_ok=True)
        os.replace(target, dest)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Moved {target} -> {dest}",
            metadata={"path": str(target), "dest": str(dest)},
        )
