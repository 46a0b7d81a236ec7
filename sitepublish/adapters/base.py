"""
Adapter base — the protocol contract between pipeline and tools.

The pipeline stages only talk to external programs through this
interface, never by calling subprocess themselves. That keeps every
side effect on a remote host or in an external tool swappable for a
mock in tests and in ``--mock`` runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from sitepublish.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an action."""

    action: Action
    site_root: str = "."

    @property
    def working_dir(self) -> str:
        """Resolved working directory for the action."""
        return self.action.params.get("cwd") or self.site_root


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions; failures are captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'rsync', 'ssh')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is installed.

        Should be fast and never raise.
        """

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
