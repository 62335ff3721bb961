"""BaseSandbox: file operations built on a single `execute(command)` primitive.

Each operation ships a short Python script to the sandbox with its arguments
as one base64-encoded JSON blob, so no argument ever passes through shell
parsing. Providers only implement `execute` and `id`.

Exit codes used by the scripts (any other non-zero code is a real failure,
reported with the script's own output):
    10  file missing
    11  write: file already present
    12  edit: string not found
    13  edit: string occurs more than once
"""

from __future__ import annotations

import base64
import json
import logging
import shlex
from abc import abstractmethod
from typing import Any

from core.filesystem.backend import (
    EditResult,
    ExecuteResponse,
    FileInfo,
    GrepMatch,
    SandboxBackend,
    WriteResult,
)
from core.filesystem.utils import (
    compile_pattern,
    file_exists_error,
    file_not_found,
    format_read_response,
    glob_match,
    glob_regex_source,
    multiple_occurrences,
    string_not_found,
)
from core.state import FileData

logger = logging.getLogger(__name__)

EXIT_MISSING = 10
EXIT_EXISTS = 11
EXIT_NOT_FOUND = 12
EXIT_AMBIGUOUS = 13

_PRELUDE = "import sys, os, json, base64, datetime\na = json.loads(base64.b64decode(sys.argv[1]).decode('utf-8'))\n"

_ISO = "def iso(t):\n    return datetime.datetime.fromtimestamp(t, datetime.timezone.utc).isoformat()\n"

LS_SCRIPT = (
    _PRELUDE
    + _ISO
    + """
p = a["path"]
try:
    names = os.listdir(p)
except OSError:
    names = []
for name in names:
    full = os.path.join(p, name)
    try:
        st = os.stat(full)
    except OSError:
        continue
    print(json.dumps({"path": full, "is_dir": os.path.isdir(full), "size": st.st_size, "modified_at": iso(st.st_mtime)}))
"""
)

READ_RAW_SCRIPT = (
    _PRELUDE
    + _ISO
    + """
p = a["path"]
if not os.path.isfile(p):
    sys.exit(10)
st = os.stat(p)
with open(p, encoding="utf-8", errors="replace") as f:
    content = f.read()
print(json.dumps({"content": content.split("\\n"), "created_at": iso(st.st_ctime), "modified_at": iso(st.st_mtime)}))
"""
)

WRITE_SCRIPT = (
    _PRELUDE
    + """
p = a["path"]
if os.path.exists(p):
    sys.exit(11)
d = os.path.dirname(p)
if d:
    os.makedirs(d, exist_ok=True)
with open(p, "w", encoding="utf-8") as f:
    f.write(a["content"])
"""
)

EDIT_SCRIPT = (
    _PRELUDE
    + """
p = a["path"]
if not os.path.isfile(p):
    sys.exit(10)
with open(p, encoding="utf-8") as f:
    content = f.read()
count = content.count(a["old"]) if a["old"] else 0
if count == 0:
    sys.exit(12)
if count > 1 and not a["replace_all"]:
    print(count)
    sys.exit(13)
with open(p, "w", encoding="utf-8") as f:
    f.write(content.replace(a["old"], a["new"]))
print(count)
"""
)

WALK_SCRIPT = (
    _PRELUDE
    + _ISO
    + """
base = a["path"]
paths = [base] if os.path.isfile(base) else []
for root, dirs, files in os.walk(base):
    dirs.sort()
    for name in sorted(files):
        paths.append(os.path.join(root, name))
for full in paths:
    try:
        st = os.stat(full)
    except OSError:
        continue
    print(json.dumps({"path": full, "size": st.st_size, "modified_at": iso(st.st_mtime)}))
"""
)

GREP_SCRIPT = (
    _PRELUDE
    + """
import re
rx = re.compile(a["pattern"])
name_rx = re.compile(a["glob_re"]) if a["glob_re"] else None
base = a["path"]
paths = [base] if os.path.isfile(base) else []
for root, dirs, files in os.walk(base):
    dirs.sort()
    for name in sorted(files):
        paths.append(os.path.join(root, name))
for full in paths:
    if name_rx and not name_rx.match(os.path.basename(full)):
        continue
    try:
        with open(full, encoding="utf-8") as f:
            lines = f.read().split("\\n")
    except (OSError, UnicodeDecodeError):
        continue
    for i, line in enumerate(lines, 1):
        if rx.search(line):
            print(json.dumps({"path": full, "line": i, "text": line}))
"""
)


def _json_lines(output: str) -> list[dict[str, Any]]:
    rows = []
    for line in output.strip().splitlines():
        if not line:
            continue
        try:
            rows.append(json.loads(line))
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON sandbox output line: %s", line[:200])
    return rows


class BaseSandbox(SandboxBackend):
    """Abstract sandbox backend.

    Subclasses implement `execute()` and `id`; every file operation is a
    script run through `execute()`. Paths are interpreted inside the sandbox.
    """

    python_command = "python3"

    @abstractmethod
    async def execute(self, command: str) -> ExecuteResponse: ...

    def build_script_command(self, script: str, args: dict[str, Any]) -> str:
        payload = base64.b64encode(json.dumps(args).encode("utf-8")).decode("ascii")
        return f"{self.python_command} -c {shlex.quote(script)} {payload}"

    async def _run_script(self, script: str, **args: Any) -> ExecuteResponse:
        return await self.execute(self.build_script_command(script, args))

    async def ls_info(self, path: str) -> list[FileInfo]:
        result = await self._run_script(LS_SCRIPT, path=path)
        infos = [
            FileInfo(
                path=row["path"] + "/" if row.get("is_dir") else row["path"],
                is_dir=bool(row.get("is_dir")),
                size=int(row.get("size", 0)),
                modified_at=row.get("modified_at"),
            )
            for row in _json_lines(result.output)
        ]
        return sorted(infos, key=lambda e: e.path)

    async def read(self, file_path: str, offset: int = 0, limit: int = 2000) -> str:
        try:
            data = await self.read_raw(file_path)
        except FileNotFoundError:
            return file_not_found(file_path)
        except OSError as e:
            return f"Error: {e}"
        return format_read_response(data, offset, limit)

    async def read_raw(self, file_path: str) -> FileData:
        result = await self._run_script(READ_RAW_SCRIPT, path=file_path)
        if result.exit_code == EXIT_MISSING:
            raise FileNotFoundError(file_path)
        if result.exit_code not in (0, None):
            raise OSError(result.output.strip() or f"Failed to read '{file_path}'")
        rows = _json_lines(result.output)
        if not rows:
            raise FileNotFoundError(file_path)
        return FileData.from_dict(rows[-1])

    async def write(self, file_path: str, content: str) -> WriteResult:
        result = await self._run_script(WRITE_SCRIPT, path=file_path, content=content)
        if result.exit_code == EXIT_EXISTS:
            return WriteResult(success=False, error=file_exists_error(file_path))
        if result.exit_code not in (0, None):
            return WriteResult(success=False, error=result.output.strip() or f"Failed to write '{file_path}'")
        return WriteResult(success=True, path=file_path)

    async def edit(self, file_path: str, old_string: str, new_string: str, replace_all: bool = False) -> EditResult:
        result = await self._run_script(EDIT_SCRIPT, path=file_path, old=old_string, new=new_string, replace_all=replace_all)
        code = result.exit_code
        if code in (0, None):
            try:
                occurrences = int(result.output.strip().splitlines()[-1])
            except (IndexError, ValueError):
                occurrences = 1
            return EditResult(success=True, path=file_path, occurrences=occurrences)
        if code == EXIT_MISSING:
            return EditResult(success=False, error=file_not_found(file_path))
        if code == EXIT_NOT_FOUND:
            return EditResult(success=False, error=string_not_found(old_string))
        if code == EXIT_AMBIGUOUS:
            count = int(result.output.strip() or 2)
            return EditResult(success=False, error=multiple_occurrences(old_string, count))
        return EditResult(success=False, error=result.output.strip() or f"Failed to edit '{file_path}'")

    async def grep_raw(self, pattern: str, path: str | None = None, glob: str | None = None) -> list[GrepMatch] | str:
        compiled = compile_pattern(pattern)
        if isinstance(compiled, str):
            return compiled
        glob_re = glob_regex_source(glob) if glob else None
        result = await self._run_script(GREP_SCRIPT, pattern=pattern, path=path or "/", glob_re=glob_re)
        return [GrepMatch(path=row["path"], line=int(row["line"]), text=row["text"]) for row in _json_lines(result.output)]

    async def glob_info(self, pattern: str, path: str = "/") -> list[FileInfo]:
        base = path.rstrip("/") or "/"
        result = await self._run_script(WALK_SCRIPT, path=base)
        infos = []
        for row in _json_lines(result.output):
            full = row["path"]
            rel = full[len(base) :].lstrip("/") if full.startswith(base) else full
            if glob_match(rel, pattern.lstrip("/")):
                infos.append(FileInfo(path=full, size=int(row.get("size", 0)), modified_at=row.get("modified_at")))
        return sorted(infos, key=lambda e: e.path)
