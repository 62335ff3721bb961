"""Helpers shared by every backend implementation.

Output wording lives here so all backends report identical strings.
"""

from __future__ import annotations

import posixpath
import re
from functools import lru_cache

from core.state import FileData, utc_now

from .backend import GrepMatch

EMPTY_CONTENT_WARNING = "System reminder: File exists but has empty contents"
MAX_LINE_LENGTH = 10000
LINE_NUMBER_WIDTH = 6
DEFAULT_READ_LIMIT = 2000


def file_not_found(path: str) -> str:
    return f"Error: File '{path}' not found"


def file_exists_error(path: str) -> str:
    return f"Cannot write to {path} because it already exists. Read and then make an edit, or write to a new path."


def offset_error(offset: int, total: int) -> str:
    return f"Error: Line offset {offset} exceeds file length ({total} lines)"


def invalid_regex(detail: str) -> str:
    return f"Invalid regex pattern: {detail}"


# ============================================================================
# Paths
# ============================================================================


def normalize_path(path: str | None) -> str:
    """Absolute, collapsed, no trailing slash (except root)."""
    raw = (path or "/").strip() or "/"
    if not raw.startswith("/"):
        raw = "/" + raw
    normalized = posixpath.normpath(raw)
    # normpath keeps a leading "//" as-is
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def validate_path(path: str | None) -> str:
    """Directory form of a path: leading and trailing slash."""
    normalized = normalize_path(path)
    return normalized if normalized.endswith("/") else normalized + "/"


# ============================================================================
# Content
# ============================================================================


def split_lines(content: str) -> list[str]:
    return content.split("\n")


def create_file_data(content: str, created_at: str | None = None) -> FileData:
    now = utc_now()
    return FileData(content=split_lines(content), created_at=created_at or now, modified_at=now)


def update_file_data(file_data: FileData, content: str) -> FileData:
    return FileData(content=split_lines(content), created_at=file_data.created_at, modified_at=utc_now())


def format_content_with_line_numbers(lines: list[str], start_line: int = 1) -> str:
    """cat -n style numbering; overlong lines continue as N.1, N.2 ..."""
    out: list[str] = []
    for i, line in enumerate(lines):
        num = i + start_line
        if len(line) <= MAX_LINE_LENGTH:
            out.append(f"{num:>{LINE_NUMBER_WIDTH}}\t{line}")
            continue
        for chunk_idx in range(0, (len(line) + MAX_LINE_LENGTH - 1) // MAX_LINE_LENGTH):
            chunk = line[chunk_idx * MAX_LINE_LENGTH : (chunk_idx + 1) * MAX_LINE_LENGTH]
            marker = str(num) if chunk_idx == 0 else f"{num}.{chunk_idx}"
            out.append(f"{marker:>{LINE_NUMBER_WIDTH}}\t{chunk}")
    return "\n".join(out)


def format_read_response(file_data: FileData, offset: int = 0, limit: int = DEFAULT_READ_LIMIT) -> str:
    content = file_data.text
    if not content.strip():
        return EMPTY_CONTENT_WARNING
    lines = split_lines(content)
    if offset >= len(lines):
        return offset_error(offset, len(lines))
    selected = lines[offset : offset + limit]
    return format_content_with_line_numbers(selected, start_line=offset + 1)


def string_not_found(old: str) -> str:
    return f"Error: String not found in file: '{old}'"


def multiple_occurrences(old: str, count: int) -> str:
    return (
        f"Error: String '{old}' appears {count} times in file (multiple occurrences). "
        "Use replace_all=True to replace all instances, or provide a more specific string with surrounding context."
    )


def perform_string_replacement(content: str, old: str, new: str, replace_all: bool) -> tuple[str, int] | str:
    """Returns (new_content, occurrences) or an error string."""
    occurrences = content.count(old) if old else 0
    if occurrences == 0:
        return string_not_found(old)
    if occurrences > 1 and not replace_all:
        return multiple_occurrences(old, occurrences)
    return content.replace(old, new), occurrences


# ============================================================================
# Matching
# ============================================================================


@lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> re.Pattern[str]:
    """Shell-style glob translation with `**` spanning directories and `{a,b}` alternation."""
    i, n = 0, len(pattern)
    parts: list[str] = []
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern[i : i + 3] == "**/":
                parts.append("(?:.*/)?")
                i += 3
                continue
            if pattern[i : i + 2] == "**":
                parts.append(".*")
                i += 2
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "{":
            end = pattern.find("}", i)
            if end == -1:
                parts.append(re.escape(c))
            else:
                options = pattern[i + 1 : end].split(",")
                parts.append("(?:" + "|".join(_glob_regex(o).pattern[4:-3] for o in options) + ")")
                i = end + 1
                continue
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                parts.append(re.escape(c))
            else:
                body = pattern[i + 1 : end].replace("\\", "\\\\")
                if body.startswith("!"):
                    body = "^" + body[1:]
                parts.append(f"[{body}]")
                i = end + 1
                continue
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("(?s:" + "".join(parts) + r")\Z")


def glob_match(relative_path: str, pattern: str) -> bool:
    return _glob_regex(pattern).match(relative_path) is not None


def glob_regex_source(pattern: str) -> str:
    """The regex `glob_match` uses, for matching outside this process."""
    return _glob_regex(pattern).pattern


def relative_to(path: str, base_dir: str) -> str:
    """Path of `path` below directory `base_dir` (both absolute)."""
    base = validate_path(base_dir)
    if path.startswith(base):
        return path[len(base) :]
    return posixpath.basename(path)


def compile_pattern(pattern: str) -> re.Pattern[str] | str:
    try:
        return re.compile(pattern)
    except re.error as e:
        return invalid_regex(str(e))


def grep_files(
    files: dict[str, FileData],
    pattern: str,
    path: str | None = None,
    glob: str | None = None,
) -> list[GrepMatch] | str:
    regex = compile_pattern(pattern)
    if isinstance(regex, str):
        return regex
    base = validate_path(path)
    matches: list[GrepMatch] = []
    for file_path in sorted(files):
        if not (file_path + "/").startswith(base):
            continue
        if glob and not glob_match(posixpath.basename(file_path), glob):
            continue
        for idx, line in enumerate(files[file_path].content, start=1):
            if regex.search(line):
                matches.append(GrepMatch(path=file_path, line=idx, text=line))
    return matches
