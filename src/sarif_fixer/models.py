"""Data models shared by the parser, matcher, completion client and applicator."""

from dataclasses import dataclass, field

NO_FIX_PROVIDED = "No fix provided"
NO_EXPLANATION_PROVIDED = "No explanation provided"


@dataclass(frozen=True)
class SourceRange:
    """A 1-based, inclusive region of a source artifact.

    Attributes:
        uri: Artifact location as reported (absolute path, relative path,
             or file:// URI).
        start_line / start_column: Start of the region (1-based).
        end_line / end_column: End of the region; default to the start values
             when the log omits them. Malformed logs where the end precedes
             the start on the same line are tolerated, not rejected.
    """

    uri: str
    start_line: int = 1
    start_column: int = 1
    end_line: int = 1
    end_column: int = 1

    @property
    def last_line(self) -> int:
        return max(self.start_line, self.end_line)

    def contains_line(self, line: int) -> bool:
        return self.start_line <= line <= self.last_line


@dataclass(frozen=True)
class ViolationRecord:
    """One finding extracted from a diagnostics log.

    Attributes:
        rule_id: Rule identifier as reported by the analyzer (bare number,
                 vendor-prefixed code, ...). "unknown" when absent.
        message: Human-readable description of this occurrence.
        level: Analyzer level (note/warning/error/info). Not the catalog severity.
        locations: Reported locations, primary first.
    """

    rule_id: str
    message: str
    level: str = "info"
    locations: tuple[SourceRange, ...] = ()

    @property
    def primary_location(self) -> SourceRange | None:
        return self.locations[0] if self.locations else None

    @property
    def is_actionable(self) -> bool:
        return bool(self.locations)


@dataclass(frozen=True)
class RuleDefinition:
    """A rule catalog entry. Immutable once loaded."""

    rule_id: str
    title: str = ""
    description: str = ""
    category: str = ""
    severity: str = ""
    remediation: str = ""
    example: str = ""


@dataclass(frozen=True)
class ResolvedViolation:
    """A violation record paired with the catalog rule it matched."""

    record: ViolationRecord
    rule: RuleDefinition


@dataclass
class FixSuggestion:
    """A proposed remediation for one violation, held only for review/apply.

    Attributes:
        original_code: The snippet that was sent for remediation.
        fixed_code: Replacement for the violating line(s) only.
        explanation: Free-text rationale from the model.
        rule_id: Originating rule, for traceability.
    """

    original_code: str
    fixed_code: str
    explanation: str
    rule_id: str

    @property
    def is_usable(self) -> bool:
        return bool(self.fixed_code.strip()) and self.fixed_code != NO_FIX_PROVIDED


@dataclass
class AppliedFix:
    """Outcome of writing a fix back into its source file."""

    path: str
    start_line: int
    end_line: int
    replacement: str
    new_end_line: int


@dataclass
class TokenUsage:
    """Token usage reported by the completion service."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: "TokenUsage") -> None:
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens


@dataclass
class CompletionReply:
    """Raw text of a single completion plus its usage."""

    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""
    latency_ms: float = 0.0
