"""
Shell command adapter — the ``run(command) -> exit status`` capability.

Runs a single command line through the platform shell and captures
its output. Compiler invocations go through here, including the
``call vcvars64.bat && cl ...`` wrapper on Windows.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path

from boxpm.adapters.base import Adapter, ExecutionContext
from boxpm.core.models.action import Receipt

logger = logging.getLogger(__name__)


class ShellCommandAdapter(Adapter):
    """Execute shell commands and capture output.

    Action params:
        command (str): The command line to execute.
        timeout (int): Timeout in seconds (default: 600).
        cwd (str): Override working directory (default: context.cwd).
        env (dict): Extra environment variables.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        if os.name == "nt":
            return shutil.which("cmd") is not None
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.action.params.get("command", "")
        if not command:
            return False, "Missing required param: 'command'"

        cwd = context.working_dir
        if cwd and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        command = context.action.params.get("command", "")
        timeout = context.action.params.get("timeout", 600)
        cwd = context.working_dir

        env = None
        if context.action.params.get("env"):
            env = os.environ.copy()
            env.update(context.action.params["env"])

        logger.info("Executing: %s", command)
        logger.debug("cwd=%s timeout=%ss", cwd, timeout)
        start = time.monotonic()

        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=env,
            )

            elapsed_ms = int((time.monotonic() - start) * 1000)
            output = result.stdout.strip()
            stderr = result.stderr.strip()

            if result.returncode == 0:
                return Receipt.success(
                    adapter=self.name,
                    action_id=context.action.id,
                    output=output,
                    duration_ms=elapsed_ms,
                    metadata={
                        "command": command,
                        "return_code": result.returncode,
                        "stderr": stderr,
                    },
                )
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=stderr[-2000:] or f"Command exited with code {result.returncode}",
                duration_ms=elapsed_ms,
                metadata={
                    "command": command,
                    "return_code": result.returncode,
                    "stdout": output[-2000:],
                },
            )

        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": command, "timeout": timeout},
            )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": command},
            )
