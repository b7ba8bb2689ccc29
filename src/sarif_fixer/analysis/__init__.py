"""
Analysis -- turns a SARIF log into catalog-resolved violations.

Components:
  - parse_sarif / filter_by_marker: SARIF text -> ViolationRecords
  - RuleCatalog: rule id -> RuleDefinition knowledge base
  - RuleMatcher: ViolationRecord -> ResolvedViolation (or None)
"""

from .catalog import RuleCatalog
from .log_parser import filter_by_marker, parse_sarif, parse_sarif_file
from .matcher import RuleMatcher

__all__ = ["RuleCatalog", "RuleMatcher", "filter_by_marker", "parse_sarif", "parse_sarif_file"]
