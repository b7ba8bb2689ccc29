"""
Prompt Guard - keep untrusted source text safe to embed in completion prompts.

Violated snippets and analyzer messages are copied out of files the user did
not necessarily write (vendored code, generated headers, third-party logs).
A comment like `/* ignore previous instructions */` is just text to the
compiler but an instruction to a model, so both are treated as untrusted:

  sanitize_for_prompt()      -- null byte removal, length cap; otherwise verbatim
  detect_injection_attempt() -- names the suspicious patterns found (logs, doesn't block)

Reference: OWASP LLM Top 10 (2025) - LLM01: Prompt Injection
"""

import logging
import re

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 20_000
TRUNCATION_NOTE = "\n[TRUNCATED]"

# name -> pattern, matched case-insensitively against the whole text
INJECTION_PATTERNS: dict[str, str] = {
    "override-instructions": r"(ignore|disregard|forget)\s+(all\s+)?(your\s+|the\s+)?(previous|prior|above)\s+instructions",
    "role-reassignment": r"you\s+are\s+now\s+(a|an|the)\b",
    "chat-template-token": r"<\|(im_start|im_end|system|assistant)\|>",
    "inst-token": r"\[/?INST\]",
    "safety-override": r"override\s+safety",
    "reply-format-hijack": r"respond\s+only\s+with\s+fixed_code",
}

_COMPILED = {name: re.compile(pattern, re.IGNORECASE) for name, pattern in INJECTION_PATTERNS.items()}


def detect_injection_attempt(text: str) -> list[str]:
    """
    Return the names of injection patterns present in `text` (empty = clean).

    Detection only: C sources legitimately contain odd comments, and the
    snippet must reach the model unchanged for the fix to line up, so the
    caller decides what to do (the prompt builder logs and carries on).
    """
    if not text:
        return []

    findings = [name for name, regex in _COMPILED.items() if regex.search(text)]
    if findings:
        logger.warning(
            f"[PromptGuard] Suspicious content ({', '.join(findings)}) "
            f"in {len(text)} chars of untrusted input"
        )
    return findings


def sanitize_for_prompt(content: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Strip null bytes and cap the length. Nothing else is rewritten."""
    if not content:
        return ""

    cleaned = content.replace("\x00", "")
    if len(cleaned) <= max_length:
        return cleaned

    logger.info(f"[PromptGuard] Untrusted input cut from {len(cleaned)} to {max_length} chars")
    return cleaned[:max_length] + TRUNCATION_NOTE
