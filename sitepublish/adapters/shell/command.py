"""
Shell command adapter — run an external program and capture its output.

This is the most fundamental adapter: the site generator runs through
it, and the rsync and ssh adapters reuse its process runner.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from pathlib import Path

from sitepublish.adapters.base import Adapter, ExecutionContext
from sitepublish.core.models.action import Receipt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


class ProcessAdapter(Adapter):
    """Shared subprocess runner for adapters wrapping a CLI tool."""

    def run_process(
        self,
        context: ExecutionContext,
        argv: list[str],
        *,
        timeout: int = DEFAULT_TIMEOUT,
        cwd: str | None = None,
    ) -> Receipt:
        """Run ``argv`` and turn the outcome into a Receipt.

        A non-zero exit, a timeout and an OS error (binary missing,
        permission denied) are all failures. Never raises.
        """
        action_id = context.action.id
        logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=action_id,
                error=f"{argv[0]} timed out after {timeout}s",
                metadata={"argv": argv, "timeout": timeout},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=action_id,
                error=f"Cannot run {argv[0]}: {e}",
                metadata={"argv": argv},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = result.stdout.strip()
        stderr = result.stderr.strip()

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=action_id,
                output=output,
                duration_ms=elapsed_ms,
                metadata={
                    "argv": argv,
                    "return_code": result.returncode,
                    "stderr": stderr,
                },
            )

        return Receipt.failure(
            adapter=self.name,
            action_id=action_id,
            error=stderr or f"{argv[0]} exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            metadata={
                "argv": argv,
                "return_code": result.returncode,
                "stdout": output,
            },
        )


class ShellCommandAdapter(ProcessAdapter):
    """Execute a local command and capture output.

    Action params:
        argv (list[str]): The command and its arguments.
        timeout (int): Timeout in seconds (default: 300).
        cwd (str): Override working directory (default: context.working_dir).
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        argv = context.action.params.get("argv")
        if not argv or not isinstance(argv, list):
            return False, "Missing required param: 'argv'"

        cwd = context.working_dir
        if cwd and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        return self.run_process(
            context,
            [str(a) for a in params["argv"]],
            timeout=params.get("timeout", DEFAULT_TIMEOUT),
            cwd=context.working_dir,
        )
