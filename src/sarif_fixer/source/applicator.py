"""
Fix Applicator -- writes an accepted FixSuggestion back into its source file.

The exact violation range [start_line, end_line] is replaced by:

    <prefix> <original line>          (one per original line, audit trail)
    <prefix> ↑ Original code commented out - ... (<timestamp>)
    <re-indented fixed code>

Lines are numbered on LF and CRLF only. Untouched lines keep their own
terminators; inserted lines take the terminator of the first replaced line.

The edit is all-or-nothing: the new content is written to a temp file in the
same directory and swapped in with os.replace. If the file changed since it
was read, or the range no longer exists, EditRejected is raised and the file
is left untouched.
"""

import asyncio
import hashlib
import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Sequence

from ..errors import EditRejected
from ..models import AppliedFix, FixSuggestion, SourceRange
from .paths import comment_prefix_for, resolve_artifact_path, split_source_lines

logger = logging.getLogger(__name__)

MARKER_TEXT = "↑ Original code commented out - violation fixed by sarif-ai-fixer"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


# =============================================================================
# PURE HELPERS
# =============================================================================


def detect_indentation(lines: Sequence[str]) -> str:
    """Leading whitespace of the first non-blank line, or "" if all are blank."""
    for line in lines:
        if line.strip():
            return line[: len(line) - len(line.lstrip())]
    return ""


def reindent(fixed_code: str, base_indentation: str) -> list[str]:
    """
    Re-indent suggested code under `base_indentation`.

    The first line gets exactly the base indentation; later lines keep their
    own indentation on top of it. Blank lines pass through unchanged.
    """
    result = []
    for index, line in enumerate(fixed_code.splitlines()):
        if not line.strip():
            result.append(line)
        elif index == 0:
            result.append(base_indentation + line.strip())
        else:
            result.append(base_indentation + line)
    return result


def marker_line(prefix: str, timestamp: str) -> str:
    return f"{prefix} {MARKER_TEXT} ({timestamp})"


def build_replacement(
    original_lines: Sequence[str],
    fixed_code: str,
    prefix: str = "//",
    timestamp: str = "",
) -> list[str]:
    """Commented original + marker line + re-indented fix."""
    base = detect_indentation(original_lines)
    commented = [f"{prefix} {line}" for line in original_lines]
    return commented + [marker_line(prefix, timestamp)] + reindent(fixed_code, base)


# =============================================================================
# FILE EDIT
# =============================================================================


async def apply_fix(
    fix: FixSuggestion,
    location: SourceRange,
    workspace_roots: Sequence[str | Path] = (),
    now: datetime | None = None,
) -> AppliedFix:
    """
    Replace the violation's line range with the commented original and the fix.

    Raises:
        EditRejected: If the fix is unusable, the range is invalid, the file
            changed concurrently, or the write failed.
    """
    if not fix.is_usable:
        raise EditRejected("Failed to apply fix: the suggestion contains no usable code")

    path = resolve_artifact_path(location.uri, workspace_roots)
    timestamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    applied = await asyncio.to_thread(_apply_sync, path, fix.fixed_code, location, timestamp)
    logger.info(
        f"[FixApplicator] Applied {fix.rule_id} fix to {path} "
        f"(lines {applied.start_line}-{applied.end_line} -> "
        f"{applied.start_line}-{applied.new_end_line})"
    )
    return applied


def _apply_sync(path: Path, fixed_code: str, location: SourceRange, timestamp: str) -> AppliedFix:
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise EditRejected(f"Failed to apply fix: cannot read {path} ({e})") from e

    text = raw.decode("utf-8", errors="surrogateescape")
    pairs = split_source_lines(text)

    start, end = location.start_line, location.last_line
    if start < 1 or end > len(pairs):
        raise EditRejected(
            f"Failed to apply fix: lines {start}-{end} are outside {path} "
            f"({len(pairs)} lines)"
        )

    replacement = build_replacement(
        [line for line, _ in pairs[start - 1:end]], fixed_code, comment_prefix_for(path), timestamp
    )
    # inserted lines take the start line's ending; the range's last ending closes the block
    newline = pairs[start - 1][1] or next((ending for _, ending in pairs if ending), "\n")
    block = [line + newline for line in replacement[:-1]] + [replacement[-1] + pairs[end - 1][1]]
    new_text = "".join(
        [line + ending for line, ending in pairs[: start - 1]]
        + block
        + [line + ending for line, ending in pairs[end:]]
    )

    _atomic_write(path, new_text.encode("utf-8", errors="surrogateescape"), hashlib.sha256(raw).hexdigest())

    return AppliedFix(
        path=str(path),
        start_line=start,
        end_line=end,
        replacement=newline.join(replacement),
        new_end_line=start + len(replacement) - 1,
    )


def _atomic_write(path: Path, data: bytes, expected_digest: str) -> None:
    """Swap `data` into `path`, refusing if the file no longer matches `expected_digest`."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
        shutil.copymode(path, tmp_name)

        current = hashlib.sha256(path.read_bytes()).hexdigest()
        if current != expected_digest:
            raise EditRejected(
                f"Failed to apply edit - {path} was modified while the fix was being applied"
            )
        os.replace(tmp_name, path)
    except EditRejected:
        _discard(tmp_name)
        raise
    except OSError as e:
        _discard(tmp_name)
        raise EditRejected(f"Failed to apply edit - could not write {path} ({e})") from e


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except FileNotFoundError:
        pass
