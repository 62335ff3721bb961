"""Filesystem tools over the run's backend: ls, read_file, write_file, edit_file, glob, grep.

Backend failures (missing file, existing file, ambiguous edit, bad regex)
are raised as ToolException so the loop reports them as error results.
"""

from __future__ import annotations

from langchain_core.tools import BaseTool, StructuredTool, ToolException
from pydantic import BaseModel, Field

from core.events import (
    FileEditedEvent,
    FileReadEvent,
    FileWriteStartEvent,
    FileWrittenEvent,
    GlobEvent,
    GrepEvent,
    LsEvent,
)
from core.filesystem.utils import DEFAULT_READ_LIMIT, EMPTY_CONTENT_WARNING

from .base import ToolContext

LS_DESCRIPTION = "List files and directories at a path in the virtual filesystem."
READ_DESCRIPTION = (
    "Read a file with line numbers. Use offset (0-based line) and limit to page through large files."
)
WRITE_DESCRIPTION = "Create a new file. Fails if the file already exists; use edit_file to change existing files."
EDIT_DESCRIPTION = (
    "Replace an exact string in a file. old_string must occur exactly once unless replace_all is true."
)
GLOB_DESCRIPTION = "Find files whose path matches a glob pattern, e.g. '**/*.py'."
GREP_DESCRIPTION = "Search file contents with a regular expression. Returns path:line: text matches."


class LsInput(BaseModel):
    path: str = Field(default="/", description="Absolute directory path")


class ReadFileInput(BaseModel):
    file_path: str = Field(..., description="Absolute file path")
    offset: int = Field(default=0, ge=0, description="Line offset to start from (0-based)")
    limit: int = Field(default=DEFAULT_READ_LIMIT, gt=0, description="Maximum number of lines to read")


class WriteFileInput(BaseModel):
    file_path: str = Field(..., description="Absolute file path")
    content: str = Field(..., description="Full file content")


class EditFileInput(BaseModel):
    file_path: str = Field(..., description="Absolute file path")
    old_string: str = Field(..., description="Exact text to replace")
    new_string: str = Field(..., description="Replacement text")
    replace_all: bool = Field(default=False, description="Replace every occurrence")


class GlobInput(BaseModel):
    pattern: str = Field(..., description="Glob pattern relative to path")
    path: str = Field(default="/", description="Directory to search from")


class GrepInput(BaseModel):
    pattern: str = Field(..., description="Regular expression")
    path: str | None = Field(default=None, description="File or directory to search (default: /)")
    glob: str | None = Field(default=None, description="Only search files whose name matches this glob")


def create_filesystem_tools(ctx: ToolContext) -> list[BaseTool]:
    async def ls(path: str = "/") -> str:
        entries = await ctx.backend.ls_info(path)
        await ctx.emit(LsEvent(path=path, count=len(entries)))
        if not entries:
            return f"No files found in {path}"
        return "\n".join(e.path for e in entries)

    async def read_file(file_path: str, offset: int = 0, limit: int = DEFAULT_READ_LIMIT) -> str:
        content = await ctx.backend.read(file_path, offset, limit)
        if content.startswith("Error: "):
            raise ToolException(content)
        lines = 0 if content == EMPTY_CONTENT_WARNING else content.count("\n") + 1
        await ctx.emit(FileReadEvent(path=file_path, lines=lines))
        return content

    async def write_file(file_path: str, content: str) -> str:
        await ctx.emit(FileWriteStartEvent(path=file_path, content=content))
        result = await ctx.backend.write(file_path, content)
        if not result.success:
            raise ToolException(result.error or f"Failed to write {file_path}")
        await ctx.emit(FileWrittenEvent(path=result.path or file_path, content=content))
        return f"Successfully wrote to {result.path or file_path}"

    async def edit_file(file_path: str, old_string: str, new_string: str, replace_all: bool = False) -> str:
        result = await ctx.backend.edit(file_path, old_string, new_string, replace_all)
        if not result.success:
            raise ToolException(result.error or f"Failed to edit {file_path}")
        await ctx.emit(FileEditedEvent(path=result.path or file_path, occurrences=result.occurrences))
        return f"Successfully replaced {result.occurrences} occurrence(s) in {result.path or file_path}"

    async def glob(pattern: str, path: str = "/") -> str:
        infos = await ctx.backend.glob_info(pattern, path)
        await ctx.emit(GlobEvent(pattern=pattern, count=len(infos)))
        if not infos:
            return "No files found"
        return "\n".join(i.path for i in infos)

    async def grep(pattern: str, path: str | None = None, glob: str | None = None) -> str:
        result = await ctx.backend.grep_raw(pattern, path, glob)
        if isinstance(result, str):
            raise ToolException(result)
        await ctx.emit(GrepEvent(pattern=pattern, count=len(result)))
        if not result:
            return "No matches found"
        return "\n".join(f"{m.path}:{m.line}: {m.text}" for m in result)

    specs = [
        (ls, "ls", LS_DESCRIPTION, LsInput),
        (read_file, "read_file", READ_DESCRIPTION, ReadFileInput),
        (write_file, "write_file", WRITE_DESCRIPTION, WriteFileInput),
        (edit_file, "edit_file", EDIT_DESCRIPTION, EditFileInput),
        (glob, "glob", GLOB_DESCRIPTION, GlobInput),
        (grep, "grep", GREP_DESCRIPTION, GrepInput),
    ]
    return [
        StructuredTool.from_function(coroutine=fn, name=name, description=description, args_schema=schema)
        for fn, name, description, schema in specs
    ]
