"""Artifact URI -> filesystem path resolution and line splitting, shared by extraction and apply."""

import os
import re
from pathlib import Path
from typing import Sequence
from urllib.parse import unquote

FILE_SCHEME = "file://"

# Only \n and \r\n end a line; \f, \v and lone \r stay inside it, as the analyzer counts them.
_LINE_BREAK_RE = re.compile(r"(\r?\n)")

# Comment prefixes by file extension; anything unlisted is treated as C-family.
_HASH_COMMENT = {".py", ".sh", ".bash", ".rb", ".pl", ".yaml", ".yml", ".toml", ".cmake", ".r", ".mk"}
_DASH_COMMENT = {".sql", ".lua", ".hs", ".ada", ".adb", ".ads"}
_FENCE_LANGUAGES = {
    ".c": "c", ".h": "c",
    ".cc": "cpp", ".cpp": "cpp", ".cxx": "cpp", ".hpp": "cpp", ".hh": "cpp",
    ".java": "java", ".js": "javascript", ".ts": "typescript",
    ".go": "go", ".rs": "rust", ".cs": "csharp", ".py": "python",
}


def resolve_artifact_path(uri: str, workspace_roots: Sequence[str | Path] = ()) -> Path:
    """
    Resolve a SARIF artifact URI to a filesystem path.

    Strips a file:// prefix (percent-decoding what remains). A relative path
    is joined onto the first workspace root; with no roots it stays relative
    to the current directory.
    """
    path_text = uri
    if path_text.startswith(FILE_SCHEME):
        path_text = unquote(path_text[len(FILE_SCHEME):])
        # file:///C:/x on Windows leaves "/C:/x"
        if os.name == "nt" and len(path_text) > 2 and path_text[0] == "/" and path_text[2] == ":":
            path_text = path_text[1:]

    path = Path(path_text)
    if not path.is_absolute() and workspace_roots:
        path = Path(workspace_roots[0]) / path
    return path


def comment_prefix_for(path: str | Path) -> str:
    suffix = Path(path).suffix.lower()
    if suffix in _HASH_COMMENT:
        return "#"
    if suffix in _DASH_COMMENT:
        return "--"
    return "//"


def fence_language_for(path: str | Path) -> str:
    return _FENCE_LANGUAGES.get(Path(path).suffix.lower(), "c")


def split_source_lines(text: str) -> list[tuple[str, str]]:
    """
    Split source text into (line, terminator) pairs.

    The terminator is "\\n", "\\r\\n", or "" for an unterminated last line, so
    joining every pair back together reproduces `text` exactly.
    """
    parts = _LINE_BREAK_RE.split(text)
    pairs = list(zip(parts[0::2], parts[1::2] + [""]))
    if pairs and pairs[-1] == ("", ""):
        pairs.pop()
    return pairs
