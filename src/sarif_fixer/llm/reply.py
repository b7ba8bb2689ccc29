"""Parse a completion's text into a FixSuggestion.

A malformed reply never raises: missing blocks become placeholders, giving a
suggestion that can be displayed but not applied (FixSuggestion.is_usable).
The fixed code is dedented: a reply indented as a whole block is shifted left
until its least-indented line starts at column 0, so each line keeps only its
indentation relative to the others. The applicator's reindent then places
that block under the indentation of the violated line.
"""

import re
import textwrap

from ..models import NO_EXPLANATION_PROVIDED, NO_FIX_PROVIDED, FixSuggestion

_FIXED_CODE_RE = re.compile(r"FIXED_CODE:\s*```[\w+#.-]*[ \t]*\n?([\s\S]*?)\s*```")
_EXPLANATION_RE = re.compile(r"EXPLANATION:\s*([\s\S]*?)(?:\n[ \t]*\n|\Z)")


def parse_fix_reply(reply: str, original_code: str, rule_id: str) -> FixSuggestion:
    fixed_match = _FIXED_CODE_RE.search(reply or "")
    explanation_match = _EXPLANATION_RE.search(reply or "")

    fixed_code = textwrap.dedent(fixed_match.group(1)).strip() if fixed_match else ""
    explanation = explanation_match.group(1).strip() if explanation_match else ""

    return FixSuggestion(
        original_code=original_code,
        fixed_code=fixed_code or NO_FIX_PROVIDED,
        explanation=explanation or NO_EXPLANATION_PROVIDED,
        rule_id=rule_id,
    )
