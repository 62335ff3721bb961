"""Sandbox backends: command execution environments exposed as filesystems.

Usage:
    from sandbox import LocalSandbox

    backend = LocalSandbox(cwd="/tmp/work")
    await backend.execute("ls -la")
    await backend.write("/tmp/work/notes.md", "hello")
"""

from sandbox.base import BaseSandbox
from sandbox.docker import DockerSandbox
from sandbox.e2b import E2BSandbox
from sandbox.local import LocalSandbox

__all__ = ["BaseSandbox", "DockerSandbox", "E2BSandbox", "LocalSandbox"]
