"""
SSH adapter — run a shell command on a remote host.

With ``host`` unset the command runs through the local ``sh``, which
lets the same remote maintenance commands target a local staging
directory.
"""

from __future__ import annotations

import logging
import shutil

from sitepublish.adapters.base import ExecutionContext
from sitepublish.adapters.shell.command import ProcessAdapter
from sitepublish.core.models.action import Receipt

logger = logging.getLogger(__name__)


def build_ssh_argv(host: str | None, command: str, *, connect_timeout: int = 15) -> list[str]:
    if not host:
        return ["sh", "-c", command]
    return [
        "ssh",
        "-o", "BatchMode=yes",
        "-o", f"ConnectTimeout={connect_timeout}",
        host,
        command,
    ]


class SshAdapter(ProcessAdapter):
    """Remote command execution.

    Action params:
        host (str | None): Remote host (ssh config alias or user@host).
        command (str): Shell command, already quoted for the remote shell.
        connect_timeout (int): ssh ConnectTimeout (default: 15).
        timeout (int): Hard limit for the whole process (default: 300).
    """

    @property
    def name(self) -> str:
        return "ssh"

    def is_available(self) -> bool:
        return shutil.which("ssh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.action.params.get("command"):
            return False, "Missing required param: 'command'"
        host = context.action.params.get("host")
        if host and host.startswith("-"):
            return False, f"Invalid host: {host!r}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        argv = build_ssh_argv(
            params.get("host"),
            params["command"],
            connect_timeout=params.get("connect_timeout", 15),
        )
        return self.run_process(
            context,
            argv,
            timeout=params.get("timeout", 300),
            cwd=context.working_dir,
        )
