"""
Adapter registry — central dispatch for all adapter operations.

The registry is the single point of adapter management. It handles
registration, lookup, validation and action execution. The pipeline
stages never talk to adapters directly, only through the registry.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from sitepublish.adapters.base import Adapter, ExecutionContext
from sitepublish.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)

REMOTE_ADAPTERS = ("rsync", "ssh")


class AdapterRegistry:
    """Central registry and dispatcher for adapters.

    Features:
        - Register/unregister adapters by name
        - Execute actions through the appropriate adapter
        - Query adapter availability
    """

    def __init__(self) -> None:
        self._adapters: dict[str, Adapter] = {}

    def register(self, adapter: Adapter) -> None:
        """Register an adapter under its name."""
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def unregister(self, name: str) -> None:
        """Remove an adapter from the registry."""
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        """Look up an adapter by name."""
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        """List all registered adapter names."""
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered adapters."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status

    def execute_action(self, action: Action, site_root: str = ".") -> Receipt:
        """Execute an action through the appropriate adapter.

        This is the main dispatch method. It:
        1. Resolves the adapter
        2. Builds the execution context
        3. Validates the action
        4. Executes
        5. Returns a Receipt (never raises)
        """
        start_time = time.monotonic()

        context = ExecutionContext(action=action, site_root=site_root)

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        # Validate
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
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        receipt.duration_ms = elapsed_ms

        return receipt


def default_registry(mock_remote: bool = False) -> AdapterRegistry:
    """A registry with the shell, rsync and ssh adapters registered.

    With ``mock_remote`` the rsync and ssh adapters are replaced by
    mocks, so a run builds and processes the site locally but never
    touches a remote host.
    """
    from sitepublish.adapters.mock import MockAdapter
    from sitepublish.adapters.remote.rsync import RsyncAdapter
    from sitepublish.adapters.remote.ssh import SshAdapter
    from sitepublish.adapters.shell.command import ShellCommandAdapter

    registry = AdapterRegistry()
    registry.register(ShellCommandAdapter())
    if mock_remote:
        for name in REMOTE_ADAPTERS:
            registry.register(MockAdapter(adapter_name=name, default_output=""))
    else:
        registry.register(RsyncAdapter())
        registry.register(SshAdapter())
    return registry
