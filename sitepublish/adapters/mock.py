"""
Mock adapter — test double for every external tool.

Used by ``publish --mock`` and by the test suite to observe what the
pipeline would have asked rsync, ssh or the generator to do, without
touching anything outside the output tree.
"""

from __future__ import annotations

from typing import Callable

from sitepublish.adapters.base import Adapter, ExecutionContext
from sitepublish.core.models.action import Receipt

Handler = Callable[[ExecutionContext], Receipt]


class MockAdapter(Adapter):
    """Universal mock adapter.

    By default returns success for everything. Responses can be
    configured per action ID, or per action-ID suffix (``":mirror"``)
    since IDs carry the operation id as a prefix. A handler callable
    can also be installed to emulate a tool's side effects.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self._handler: Handler | None = None
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        """Set a custom response for an action ID or ID suffix."""
        self._responses[action_id] = receipt

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        """Configure an action (ID or ID suffix) to fail."""
        self._responses[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
        )

    def set_handler(self, handler: Handler | None) -> None:
        """Install a callable that produces the receipt for every call."""
        self._handler = handler

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)
        action_id = context.action.id

        for key, receipt in self._responses.items():
            if action_id == key or action_id.endswith(key):
                return receipt

        if self._handler is not None:
            return self._handler(context)

        return Receipt.success(
            adapter=self._name,
            action_id=action_id,
            output=self._default_output,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log, custom responses and handler."""
        self._call_log.clear()
        self._responses.clear()
        self._handler = None
