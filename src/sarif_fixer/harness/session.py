"""
Analysis session -- the process-wide snapshot of the current analysis run.

Lifecycle:
  start()  -- a new analysis run replaces the snapshot wholesale
  current  -- readers (show details, generate fix, locate) see one snapshot
  close()  -- session end tears it down

The snapshot itself is immutable; replacing it is a single reference swap,
so readers never observe a half-updated list (last writer wins).
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ..errors import SarifFixerError
from ..models import ResolvedViolation
from ..source.paths import resolve_artifact_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisSession:
    """Resolved violations of one analysis run, plus where their files live."""

    sarif_path: str
    violations: tuple[ResolvedViolation, ...] = ()
    workspace_roots: tuple[str, ...] = ()
    total_records: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def __len__(self) -> int:
        return len(self.violations)

    def get(self, index: int) -> ResolvedViolation:
        """Violation by 0-based index, as listed by the presentation layer."""
        if not 0 <= index < len(self.violations):
            raise SarifFixerError(
                f"No violation #{index} in this analysis ({len(self.violations)} available)"
            )
        return self.violations[index]

    def find_at(self, path: str | Path, line: int) -> list[tuple[int, ResolvedViolation]]:
        """Violations whose reported range in `path` contains `line` (1-based)."""
        target = resolve_artifact_path(str(path), self.workspace_roots).resolve()
        matches = []
        for index, violation in enumerate(self.violations):
            for location in violation.record.locations:
                candidate = resolve_artifact_path(location.uri, self.workspace_roots).resolve()
                if candidate == target and location.contains_line(line):
                    matches.append((index, violation))
                    break
        return matches

    def by_file(self) -> dict[str, list[tuple[int, ResolvedViolation]]]:
        """Group violations by the URI of their primary location, preserving order."""
        groups: dict[str, list[tuple[int, ResolvedViolation]]] = {}
        for index, violation in enumerate(self.violations):
            primary = violation.record.primary_location
            key = primary.uri if primary else "unknown"
            groups.setdefault(key, []).append((index, violation))
        return groups


class SessionStore:
    """Holds the current AnalysisSession for handlers that need it."""

    def __init__(self) -> None:
        self._current: AnalysisSession | None = None

    def start(self, session: AnalysisSession) -> AnalysisSession:
        previous = self._current
        self._current = session
        if previous is not None:
            logger.debug(f"[Session] Replaced session {previous.id} with {session.id}")
        logger.info(
            f"[Session] Started {session.id}: {len(session)} violation(s) "
            f"from {session.sarif_path}"
        )
        return session

    @property
    def current(self) -> AnalysisSession | None:
        return self._current

    def require(self) -> AnalysisSession:
        if self._current is None:
            raise SarifFixerError("No analysis loaded. Analyze a SARIF file first.")
        return self._current

    def close(self) -> None:
        if self._current is not None:
            logger.debug(f"[Session] Closed {self._current.id}")
        self._current = None
