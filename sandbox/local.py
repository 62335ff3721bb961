"""Local sandbox: runs commands with bash on the host, inside a working directory."""

from __future__ import annotations

import asyncio
import logging
import os
import secrets
import time

from core.filesystem.backend import ExecuteResponse
from sandbox.base import BaseSandbox

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_MAX_OUTPUT = 1024 * 1024


class LocalSandbox(BaseSandbox):
    """No isolation. Use for development and tests only."""

    def __init__(
        self,
        cwd: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        env: dict[str, str] | None = None,
        max_output_size: int = DEFAULT_MAX_OUTPUT,
        python_command: str | None = None,
    ):
        self.cwd = cwd or os.getcwd()
        self.timeout = timeout
        self.env = env or {}
        self.max_output_size = max_output_size
        if python_command:
            self.python_command = python_command
        self._id = f"local-{int(time.time() * 1000)}-{secrets.token_hex(3)}"

    @property
    def id(self) -> str:
        return self._id

    async def execute(self, command: str) -> ExecuteResponse:
        merged_env = os.environ.copy()
        merged_env.update(self.env)
        try:
            proc = await asyncio.create_subprocess_exec(
                "bash",
                "-c",
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=self.cwd,
                env=merged_env,
            )
        except OSError as e:
            return ExecuteResponse(output=f"Error: {e}", exit_code=1)

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Command timed out after %.1fs: %s", self.timeout, command[:200])
            return ExecuteResponse(output=f"Error: Command timed out after {self.timeout}s", exit_code=124)

        output = stdout.decode("utf-8", errors="replace")
        truncated = len(output) > self.max_output_size
        if truncated:
            output = output[: self.max_output_size]
        return ExecuteResponse(output=output, exit_code=proc.returncode, truncated=truncated)
