"""
Docker sandbox.

Runs every command through `docker exec` in a long-lived container.

Notes:
- Requires Docker CLI available on host.
- `create()` starts a container from an image; an existing container id can
  be passed to the constructor instead.
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from core.filesystem.backend import ExecuteResponse
from sandbox.base import BaseSandbox

logger = logging.getLogger(__name__)


class DockerSandbox(BaseSandbox):
    def __init__(
        self,
        container_id: str,
        workdir: str = "/workspace",
        command_timeout_sec: float = 60.0,
        max_output_size: int = 1024 * 1024,
    ):
        self.container_id = container_id
        self.workdir = workdir
        self.command_timeout_sec = command_timeout_sec
        self.max_output_size = max_output_size

    @property
    def id(self) -> str:
        return self.container_id

    @classmethod
    async def create(cls, image: str = "python:3.12-slim", workdir: str = "/workspace", **kwargs) -> DockerSandbox:
        name = f"deepagent-{uuid.uuid4().hex[:12]}"
        code, out = await cls._run(
            ["docker", "run", "-d", "--name", name, "-w", workdir, image, "sleep", "infinity"],
            timeout=120.0,
        )
        container_id = out.strip()
        if code != 0 or not container_id:
            raise RuntimeError(f"Failed to create docker container: {out.strip()}")
        return cls(container_id=container_id, workdir=workdir, **kwargs)

    async def destroy(self) -> bool:
        code, _ = await self._run(["docker", "rm", "-f", self.container_id], timeout=self.command_timeout_sec)
        return code == 0

    @staticmethod
    async def _run(cmd: list[str], timeout: float) -> tuple[int, str]:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            return 124, f"Error: Command timed out after {timeout}s"
        return proc.returncode or 0, stdout.decode("utf-8", errors="replace")

    async def execute(self, command: str) -> ExecuteResponse:
        cmd = ["docker", "exec", "-w", self.workdir, self.container_id, "/bin/sh", "-lc", command]
        try:
            code, output = await self._run(cmd, timeout=self.command_timeout_sec)
        except OSError as e:
            return ExecuteResponse(output=f"Error: {e}", exit_code=1)
        truncated = len(output) > self.max_output_size
        return ExecuteResponse(output=output[: self.max_output_size], exit_code=code, truncated=truncated)
