"""
Git adapter — clone and checkout for build-from-source installs.

Uses the git CLI — never raw API calls.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time

from boxpm.adapters.base import Adapter, ExecutionContext
from boxpm.core.models.action import Receipt

logger = logging.getLogger(__name__)


class GitAdapter(Adapter):
    """Git operations.

    Action params:
        operation (str): One of 'clone', 'checkout'.
        url (str): Repository URL (for 'clone').
        dest (str): Clone destination, relative to cwd (for 'clone').
        ref (str): Branch, tag or commit (for 'checkout').
        cwd (str): Directory to run git in.
        timeout (int): Timeout in seconds (default: 300).
    """

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if operation not in {"clone", "checkout"}:
            return False, f"Unknown operation '{operation}'. Valid: checkout, clone"

        if operation == "clone":
            if not params.get("url"):
                return False, "Missing required param: 'url' for clone operation"
            if not params.get("dest"):
                return False, "Missing required param: 'dest' for clone operation"

        if operation == "checkout" and not params.get("ref"):
            return False, "Missing required param: 'ref' for checkout operation"

        if not self.is_available():
            return False, "git not found on PATH"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        if params["operation"] == "clone":
            args = ["clone", "--", params["url"], params["dest"]]
        else:
            args = ["checkout", params["ref"]]
        return self._run(context, args)

    # ── Helpers ─────────────────────────────────────────────────

    def _run(self, ctx: ExecutionContext, args: list[str]) -> Receipt:
        """Run a git subcommand and wrap the outcome in a receipt."""
        timeout = ctx.action.params.get("timeout", 300)
        logger.debug("git %s (cwd=%s)", " ".join(args), ctx.working_dir)
        start = time.monotonic()
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=ctx.working_dir,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"git {args[0]} timed out after {timeout}s",
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Git error: {e}",
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output=result.stdout.strip(),
                duration_ms=elapsed_ms,
                metadata={"args": args, "return_code": 0},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=ctx.action.id,
            error=result.stderr.strip() or f"git {args[0]} exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            metadata={"args": args, "return_code": result.returncode},
        )
