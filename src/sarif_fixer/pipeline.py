"""
FixPipeline -- orchestrates parse -> match -> extract -> prompt -> complete -> apply.

Runs one violation at a time. Each step is awaited in order; there is never
more than one completion call in flight for a violation. Errors from the
completion service and the applicator propagate as SarifFixerError
subclasses so the caller (CLI, or any other presentation layer) can report
them as a single message.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Sequence

from .analysis import RuleCatalog, RuleMatcher, filter_by_marker, parse_sarif_file
from .errors import EditRejected
from .harness import AnalysisSession, SessionStore
from .llm import CompletionClient, ConfigStore, build_fix_prompt, resolve_completion_config
from .models import AppliedFix, FixSuggestion, ResolvedViolation
from .source import apply_fix, extract_context, fence_language_for

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "MISRA"


class FixPipeline:
    """
    Usage:
        pipeline = FixPipeline(RuleCatalog.default(), workspace_roots=["."])
        session = await pipeline.analyze("results.sarif")
        violation = session.get(0)
        fix = await pipeline.generate_fix(violation)
        await pipeline.apply(violation, fix)
    """

    def __init__(
        self,
        catalog: RuleCatalog,
        workspace_roots: Sequence[str | Path] = (),
        marker: str = DEFAULT_MARKER,
        sessions: SessionStore | None = None,
        config_store: ConfigStore | None = None,
        client_factory: Callable[[], CompletionClient] | None = None,
        client_options: dict[str, Any] | None = None,
    ):
        self._catalog = catalog
        self._roots = tuple(str(r) for r in workspace_roots)
        self._marker = marker
        self._matcher = RuleMatcher(catalog, marker=marker)
        self._sessions = sessions or SessionStore()
        self._config_store = config_store
        self._client_factory = client_factory
        self._client_options = client_options or {}

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def workspace_roots(self) -> tuple[str, ...]:
        return self._roots

    async def analyze(self, sarif_path: str | Path) -> AnalysisSession:
        """
        Parse a SARIF file and resolve its violations against the catalog.

        Raises:
            ParseError: If the file is unreadable or not valid SARIF.
        """
        records = await asyncio.to_thread(parse_sarif_file, sarif_path)
        relevant = filter_by_marker(records, self._marker)
        actionable = [r for r in relevant if r.is_actionable]
        if len(actionable) < len(relevant):
            logger.info(
                f"[Pipeline] Skipped {len(relevant) - len(actionable)} record(s) without a location"
            )

        resolved = self._matcher.resolve_all(actionable)
        logger.info(
            f"[Pipeline] {len(records)} result(s), {len(relevant)} {self._marker} related, "
            f"{len(resolved)} resolved"
        )
        return self._sessions.start(
            AnalysisSession(
                sarif_path=str(sarif_path),
                violations=tuple(resolved),
                workspace_roots=self._roots,
                total_records=len(records),
            )
        )

    async def context_for(self, violation: ResolvedViolation) -> str:
        """Context window around the primary location (placeholder if unreadable)."""
        return await asyncio.to_thread(
            extract_context, violation.record.primary_location, self._roots
        )

    async def build_prompt(self, violation: ResolvedViolation) -> tuple[str, str]:
        """Return (violated snippet, prompt) for a violation."""
        snippet = await self.context_for(violation)
        primary = violation.record.primary_location
        language = fence_language_for(primary.uri) if primary else "c"
        return snippet, build_fix_prompt(snippet, violation.record, violation.rule, language)

    async def generate_fix(self, violation: ResolvedViolation) -> FixSuggestion:
        """
        Ask the completion service for a fix.

        Raises:
            ConfigurationMissing: No completion configuration (no request is made).
            CompletionError: Any completion-service failure.
        """
        client = self._make_client()
        snippet, prompt = await self.build_prompt(violation)
        logger.info(
            f"[Pipeline] Generating fix for {violation.record.rule_id} "
            f"(rule {violation.rule.rule_id})"
        )
        return await client.generate_fix(prompt, original_code=snippet, rule_id=violation.record.rule_id)

    async def apply(self, violation: ResolvedViolation, fix: FixSuggestion) -> AppliedFix:
        """
        Apply an accepted fix at the violation's primary location.

        Raises:
            EditRejected: The edit could not be applied; the file is untouched.
        """
        primary = violation.record.primary_location
        if primary is None:
            raise EditRejected("Failed to apply fix: violation has no location")
        return await apply_fix(fix, primary, self._roots)

    def _make_client(self) -> CompletionClient:
        if self._client_factory is not None:
            return self._client_factory()
        config = resolve_completion_config(self._config_store)
        return CompletionClient(config, **self._client_options)
