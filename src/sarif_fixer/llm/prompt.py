"""
Fix Request Builder -- deterministic prompt for one resolved violation.

Pure string construction: identical inputs always produce identical prompts,
so the output can be checked against golden text. The reply format requested
here (FIXED_CODE: + fenced block, then EXPLANATION:) is exactly what
llm.reply.parse_fix_reply understands; change both together.
"""

import logging

from ..models import RuleDefinition, ViolationRecord
from ..security.prompt_guard import detect_injection_attempt, sanitize_for_prompt

logger = logging.getLogger(__name__)

FIXED_CODE_MARKER = "FIXED_CODE:"
EXPLANATION_MARKER = "EXPLANATION:"
FENCE = "```"

SYSTEM_PROMPT = (
    "You are an expert C programmer who specializes in MISRA-C compliance. "
    "Your task is to analyze code violations and provide specific, compliant fixes."
)


def build_fix_prompt(
    violated_code: str,
    record: ViolationRecord,
    rule: RuleDefinition,
    language: str = "c",
) -> str:
    """
    Build the user prompt for a single violation.

    Args:
        violated_code: The context window around the violation (untrusted).
        record: The violation as reported by the analyzer.
        rule: The matched catalog rule.
        language: Fence tag for the code blocks ("c", "cpp", ...).
    """
    snippet = sanitize_for_prompt(violated_code)
    message = sanitize_for_prompt(record.message, max_length=2_000)
    if detect_injection_attempt(snippet) or detect_injection_attempt(message):
        logger.warning(f"[PromptBuilder] Suspicious content in violation {record.rule_id}")

    return f"""
MISRA-C Rule Violation Analysis and Fix:

Rule ID: {record.rule_id}
Rule Title: {rule.title}
Rule Description: {rule.description}
Severity: {rule.severity}

Violated Code:
{FENCE}{language}
{snippet}
{FENCE}

Violation Message: {message}

MISRA-C Remediation Guidance: {rule.remediation}

Please provide:
1. ONLY fix the specific line(s) that violate the rule - do not include headers, function declarations, or complete programs
2. Keep the fix minimal and focused on the violation
3. Maintain the original code structure and context
4. Provide a clear explanation of what was changed and why

Format your response as:
{FIXED_CODE_MARKER}
{FENCE}{language}
[only the fixed line(s) here - no complete program]
{FENCE}

{EXPLANATION_MARKER}
[explanation of the changes made]
"""
