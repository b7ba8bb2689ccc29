"""
Context Extractor -- reads source lines around a violation.

Two windows exist and must not be confused:
  - context window: the violation range widened by a few lines, used only
    for prompting and display (read_context / extract_context)
  - exact range: [start_line, end_line] as reported, used when applying the
    fix and for re-extraction (read_exact_range)

Log line numbers are 1-based; all slicing here is 0-based.
"""

import logging
from pathlib import Path
from typing import Sequence

from ..errors import ExtractionError
from ..models import SourceRange
from .paths import resolve_artifact_path, split_source_lines

logger = logging.getLogger(__name__)

CONTEXT_LINES_BEFORE = 2
CONTEXT_LINES_AFTER = 2
NO_LOCATION_PLACEHOLDER = "Could not extract code"


def read_source_lines(path: Path, uri: str = "") -> list[str]:
    """Read a file as a list of lines (no line terminators), numbered as the applicator numbers them."""
    try:
        text = path.read_bytes().decode("utf-8", errors="replace")
    except OSError as e:
        raise ExtractionError(f"Error reading file: {uri or path} ({e})", uri=uri or str(path)) from e
    return [line for line, _ in split_source_lines(text)]


def context_bounds(
    location: SourceRange,
    line_count: int,
    before: int = CONTEXT_LINES_BEFORE,
    after: int = CONTEXT_LINES_AFTER,
) -> tuple[int, int]:
    """0-based, end-exclusive slice bounds of the context window, clipped to the file."""
    start = max(0, location.start_line - 1 - before)
    end = min(line_count, location.last_line + after)
    return start, max(start, end)


def read_context(
    location: SourceRange,
    workspace_roots: Sequence[str | Path] = (),
    before: int = CONTEXT_LINES_BEFORE,
    after: int = CONTEXT_LINES_AFTER,
) -> str:
    """
    Return the context window around `location`.

    Raises:
        ExtractionError: If the file cannot be read.
    """
    path = resolve_artifact_path(location.uri, workspace_roots)
    lines = read_source_lines(path, location.uri)
    start, end = context_bounds(location, len(lines), before, after)
    return "\n".join(lines[start:end])


def extract_context(
    location: SourceRange | None,
    workspace_roots: Sequence[str | Path] = (),
) -> str:
    """Like read_context, but degrades to a placeholder instead of raising."""
    if location is None or not location.uri:
        return NO_LOCATION_PLACEHOLDER
    try:
        snippet = read_context(location, workspace_roots)
    except ExtractionError as e:
        logger.warning(f"[ContextExtractor] {e}")
        return f"Error reading file: {location.uri}"
    logger.debug(
        f"[ContextExtractor] Extracted {snippet.count(chr(10)) + 1} line(s) "
        f"around {location.uri}:{location.start_line}"
    )
    return snippet


def read_exact_range(
    location: SourceRange,
    workspace_roots: Sequence[str | Path] = (),
) -> list[str]:
    """Return exactly lines [start_line, end_line] (1-based inclusive)."""
    path = resolve_artifact_path(location.uri, workspace_roots)
    lines = read_source_lines(path, location.uri)
    return lines[location.start_line - 1:location.last_line]
