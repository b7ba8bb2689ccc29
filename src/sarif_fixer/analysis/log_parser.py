"""
SARIF log parser -- decodes a diagnostics log into ViolationRecords.

Parse at the boundary: the log is produced by third-party analyzers and is
frequently incomplete, so every field except the top-level `runs` array is
optional. Missing pieces get documented defaults; nothing is fabricated.

Trigger: First step of every analysis run.
Output: list[ViolationRecord] in run order, then result order.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from ..errors import ParseError
from ..models import SourceRange, ViolationRecord

logger = logging.getLogger(__name__)

NO_MESSAGE = "No message provided"
UNKNOWN_RULE = "unknown"
DEFAULT_LEVEL = "info"
DEFAULT_MARKER = "misra"


def parse_sarif(content: str) -> list[ViolationRecord]:
    """
    Parse SARIF text into violation records.

    Raises:
        ParseError: If the text is not JSON, or has no `runs` array.
    """
    try:
        log = json.loads(content)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Failed to parse SARIF file: {e}") from e

    if not isinstance(log, dict):
        raise ParseError("Failed to parse SARIF file: top level is not an object")

    runs = log.get("runs")
    if not isinstance(runs, list):
        raise ParseError("Failed to parse SARIF file: missing 'runs' array")

    records: list[ViolationRecord] = []
    for run_index, run in enumerate(runs):
        if not isinstance(run, dict):
            raise ParseError(f"Failed to parse SARIF file: run {run_index} is not an object")
        for result in run.get("results") or []:
            if isinstance(result, dict):
                records.append(_parse_result(result))

    logger.debug(f"[SarifParser] Parsed {len(records)} result(s) from {len(runs)} run(s)")
    return records


def parse_sarif_file(path: str | Path) -> list[ViolationRecord]:
    """Read and parse a SARIF file. Unreadable files raise ParseError."""
    try:
        content = Path(path).read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ParseError(f"Failed to read SARIF file {path}: {e}") from e
    return parse_sarif(content)


def filter_by_marker(
    records: Iterable[ViolationRecord], marker: str = DEFAULT_MARKER
) -> list[ViolationRecord]:
    """Keep records whose rule id or message mentions `marker` (case-insensitive)."""
    needle = marker.lower()
    return [
        r for r in records
        if needle in r.rule_id.lower() or needle in r.message.lower()
    ]


def _parse_result(result: dict[str, Any]) -> ViolationRecord:
    return ViolationRecord(
        rule_id=str(result.get("ruleId") or UNKNOWN_RULE),
        message=_extract_message(result.get("message")),
        level=str(result.get("level") or DEFAULT_LEVEL),
        locations=tuple(_extract_locations(result.get("locations"))),
    )


def _extract_message(message: Any) -> str:
    if isinstance(message, str):
        return message
    if isinstance(message, dict):
        text = message.get("text")
        if isinstance(text, str) and text:
            return text
    return NO_MESSAGE


def _extract_locations(locations: Any) -> list[SourceRange]:
    """One SourceRange per location carrying both an artifact URI and a region."""
    ranges: list[SourceRange] = []
    if not isinstance(locations, list):
        return ranges

    for location in locations:
        if not isinstance(location, dict):
            continue
        physical = location.get("physicalLocation") or {}
        artifact = physical.get("artifactLocation") or {}
        region = physical.get("region")
        uri = artifact.get("uri")
        if not uri or not isinstance(region, dict):
            continue

        start_line = _positive_int(region.get("startLine"), 1)
        start_column = _positive_int(region.get("startColumn"), 1)
        ranges.append(
            SourceRange(
                uri=str(uri),
                start_line=start_line,
                start_column=start_column,
                end_line=_positive_int(region.get("endLine"), start_line),
                end_column=_positive_int(region.get("endColumn"), start_column),
            )
        )
    return ranges


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int) and value > 0:
        return value
    return default
