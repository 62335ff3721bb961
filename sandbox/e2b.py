"""
E2B cloud sandbox.

Wraps an `e2b.Sandbox`; install with the `e2b` extra. The SDK is imported
lazily so the rest of the package works without it.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

from core.filesystem.backend import ExecuteResponse
from sandbox.base import BaseSandbox

logger = logging.getLogger(__name__)


class E2BSandbox(BaseSandbox):
    def __init__(self, sandbox: Any, default_cwd: str = "/home/user", timeout_ms: int = 30000):
        self.sandbox = sandbox
        self.default_cwd = default_cwd
        self.timeout_ms = timeout_ms

    @classmethod
    def create(cls, api_key: str | None = None, template: str = "base", timeout: int = 300, **kwargs) -> E2BSandbox:
        from e2b import Sandbox

        api_key = api_key or os.environ.get("E2B_API_KEY")
        sandbox = Sandbox.create(template=template, timeout=timeout, api_key=api_key)
        return cls(sandbox, **kwargs)

    @property
    def id(self) -> str:
        return self.sandbox.sandbox_id

    def _run_sync(self, command: str) -> ExecuteResponse:
        from e2b import CommandExitException

        try:
            result = self.sandbox.commands.run(command, cwd=self.default_cwd, timeout=self.timeout_ms / 1000)
        except CommandExitException as e:
            # @@@ the SDK raises on non-zero exit; the result fields ride on the exception
            result = e
        output = result.stdout or ""
        if result.stderr:
            output += f"\n{result.stderr}" if output else result.stderr
        return ExecuteResponse(output=output, exit_code=result.exit_code)

    async def execute(self, command: str) -> ExecuteResponse:
        return await asyncio.to_thread(self._run_sync, command)

    def kill(self) -> None:
        self.sandbox.kill()
