# suppress_manager/executor.py

from __future__ import annotations

import asyncio
import logging
import os
from typing import List, Optional, Protocol, Sequence

from .errors import CommandError

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = float(os.environ.get("SUPPRESS_COMMAND_TIMEOUT", "30"))


class CommandExecutor(Protocol):
    """
    Runs a device command and returns its stdout, or raises CommandError.
    """

    async def run(self, args: Sequence[str], input_text: Optional[str] = None) -> str:
        ...


class ShellExecutor:
    """
    Run commands on the device.

    With adb=False the commands run directly on this machine (the usual case
    when the page is served from the device itself). With adb=True every
    command is prefixed with `adb [-s serial] shell`.
    """

    def __init__(
        self,
        adb: bool = False,
        serial: Optional[str] = None,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ):
        self.adb = adb
        self.serial = serial
        self.timeout = timeout

    def _prefix(self) -> List[str]:
        if not self.adb:
            return []
        prefix = ["adb"]
        if self.serial:
            prefix += ["-s", self.serial]
        return prefix + ["shell"]

    async def run(self, args: Sequence[str], input_text: Optional[str] = None) -> str:
        """
        Run one command.

        Raises CommandError on non-zero exit code, timeout, or when the
        binary cannot be started, with stderr/stdout included.
        """
        cmd = self._prefix() + list(args)
        logger.debug("exec: %s", " ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CommandError(cmd, str(e)) from e

        data = input_text.encode("utf-8") if input_text is not None else None
        try:
            stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(data), self.timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise CommandError(cmd, f"timed out after {self.timeout:g}s") from e

        stdout = stdout_b.decode("utf-8", errors="replace")
        stderr = stderr_b.decode("utf-8", errors="replace")

        if proc.returncode != 0:
            msg = stderr.strip() or stdout.strip() or "Unknown error"
            raise CommandError(cmd, msg, proc.returncode)

        return stdout
