"""
Rule Catalog -- local knowledge base mapping rule ids to remediation guidance.

Loaded once at startup and read-only afterwards. A missing or malformed
catalog is a fatal startup condition (LoadError), never recovered mid-session.

File format:
    { "rules": { "10.1": { "title", "description", "category",
                           "severity", "example", "remediation" } } }
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Iterator

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import LoadError
from ..models import RuleDefinition

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "misra_c_2012.json"


class RuleEntry(BaseModel):
    """One rule as stored in the catalog file."""

    title: str = ""
    description: str = ""
    category: str = ""
    severity: str = ""
    example: str = ""
    remediation: str = ""


class CatalogFile(BaseModel):
    """Top-level catalog document."""

    rules: dict[str, RuleEntry] = Field(...)


class RuleCatalog:
    """
    Read-only mapping from canonical rule id to RuleDefinition.

    Usage:
        catalog = RuleCatalog("misra-c.json")
        rule = catalog.get("10.1")
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._rules = MappingProxyType(self._load(self._path))
        logger.info(f"[RuleCatalog] Loaded {len(self._rules)} rule(s) from {self._path}")

    @classmethod
    def default(cls) -> "RuleCatalog":
        """Load the bundled MISRA C:2012 catalog."""
        return cls(DEFAULT_CATALOG_PATH)

    @staticmethod
    def _load(path: Path) -> dict[str, RuleDefinition]:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise LoadError(f"Failed to load rules from {path}: {e}") from e

        try:
            parsed = CatalogFile.model_validate(json.loads(raw))
        except json.JSONDecodeError as e:
            raise LoadError(f"Failed to load rules from {path}: invalid JSON ({e})") from e
        except PydanticValidationError as e:
            raise LoadError(
                f"Failed to load rules from {path}: {e.error_count()} schema error(s)"
            ) from e

        return {
            rule_id: RuleDefinition(rule_id=rule_id, **entry.model_dump())
            for rule_id, entry in parsed.rules.items()
        }

    @property
    def path(self) -> Path:
        return self._path

    def get(self, rule_id: str) -> RuleDefinition | None:
        return self._rules.get(rule_id)

    def rules(self) -> list[RuleDefinition]:
        return list(self._rules.values())

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)
