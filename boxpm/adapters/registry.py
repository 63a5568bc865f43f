"""
Adapter registry — central dispatch for all side effects.

Services never call adapters directly: every step is an Action handed to
``execute_action``, which picks the adapter by name, validates and runs it.
"""

from __future__ import annotations

import logging
import time

from boxpm.adapters.base import Adapter, ExecutionContext
from boxpm.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry and dispatcher for adapters."""

    def __init__(self) -> None:
        self._adapters: dict[str, Adapter] = {}

    def register(self, adapter: Adapter) -> None:
        """Register an adapter, replacing any adapter with the same name."""
        name = adapter.name
        if name in self._adapters:
            logger.debug("Replacing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def execute_action(self, action: Action, cwd: str = ".") -> Receipt:
        """Execute an action through the appropriate adapter.

        This is the main dispatch method. It:
        1. Resolves the adapter
        2. Builds the execution context
        3. Validates the action
        4. Executes
        5. Returns a Receipt (never raises)
        """
        start_time = time.monotonic()

        context = ExecutionContext(action=action, cwd=cwd, params=action.params)

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        try:
            is_valid, error_msg = adapter.validate(context)
            if not is_valid:
                return Receipt.failure(
                    adapter=action.adapter,
                    action_id=action.id,
                    error=f"Validation failed: {error_msg}",
                )
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            # Adapters are not supposed to raise
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        return receipt


def default_registry(fetch_timeout: int = 60) -> AdapterRegistry:
    """Registry wired with the real shell, filesystem, git and fetch adapters."""
    from boxpm.adapters.net.fetch import FetchAdapter
    from boxpm.adapters.shell.command import ShellCommandAdapter
    from boxpm.adapters.shell.filesystem import FilesystemAdapter
    from boxpm.adapters.vcs.git import GitAdapter

    registry = AdapterRegistry()
    registry.register(ShellCommandAdapter())
    registry.register(FilesystemAdapter())
    registry.register(GitAdapter())
    registry.register(FetchAdapter(timeout=fetch_timeout))
    return registry
