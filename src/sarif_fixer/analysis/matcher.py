"""
Rule Matcher -- resolves a violation record to a catalog rule.

Analyzers encode rule ids inconsistently ("10.1", "MISRA2012-10.1",
"misra-c2012-10.1", or only in the message text). Lookup order, first hit wins:

  1. rule id as-is
  2. trailing dotted number of the rule id
  3. "<marker> ... N.M" inside the message
  4. no match -> None (expected for non-catalog rules, not an error)

Exact identifiers are trusted before anything inferred from free text.
"""

import logging
import re
from typing import Iterable

from ..models import ResolvedViolation, ViolationRecord
from .catalog import RuleCatalog

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "MISRA"

_TRAILING_RULE_RE = re.compile(r"(\d+\.\d+)$")


class RuleMatcher:
    """Resolves ViolationRecords against a RuleCatalog."""

    def __init__(self, catalog: RuleCatalog, marker: str = DEFAULT_MARKER):
        self._catalog = catalog
        self._message_re = re.compile(
            rf"{re.escape(marker)}[^\d]*(\d+\.\d+)", re.IGNORECASE
        )

    def match_rule_id(self, record: ViolationRecord) -> str | None:
        """Return the canonical catalog key for `record`, or None."""
        if record.rule_id in self._catalog:
            return record.rule_id

        suffix = _TRAILING_RULE_RE.search(record.rule_id)
        if suffix and suffix.group(1) in self._catalog:
            return suffix.group(1)

        mentioned = self._message_re.search(record.message)
        if mentioned and mentioned.group(1) in self._catalog:
            return mentioned.group(1)

        return None

    def resolve(self, record: ViolationRecord) -> ResolvedViolation | None:
        rule_id = self.match_rule_id(record)
        if rule_id is None:
            return None
        rule = self._catalog.get(rule_id)
        if rule is None:
            return None
        return ResolvedViolation(record=record, rule=rule)

    def resolve_all(self, records: Iterable[ViolationRecord]) -> list[ResolvedViolation]:
        """Resolve records in order, dropping those with no catalog match."""
        resolved: list[ResolvedViolation] = []
        dropped = 0
        for record in records:
            match = self.resolve(record)
            if match is None:
                dropped += 1
                logger.debug(f"[RuleMatcher] No catalog rule for '{record.rule_id}'")
                continue
            resolved.append(match)

        if dropped:
            logger.info(f"[RuleMatcher] {dropped} record(s) had no catalog match")
        return resolved
