#!/usr/bin/env python3
"""
Demo - Run the full fix pipeline against the bundled samples.

Usage: python scripts/demo.py

No API keys required -- the completion service is replaced by an
httpx.MockTransport that returns a canned reply. The sample C file is
copied to a temp directory first, so the repository copy is never edited.
"""

import asyncio
import shutil
import tempfile
from pathlib import Path

import httpx

from sarif_fixer.analysis import RuleCatalog
from sarif_fixer.llm import CompletionClient, DirectEndpointConfig
from sarif_fixer.pipeline import FixPipeline

SAMPLES = Path(__file__).resolve().parent.parent / "samples"

CANNED_REPLY = """FIXED_CODE:
```c
if (a > (uint32_t)b) { // MISRA 10.1: explicit conversion
```

EXPLANATION:
Both operands are now essentially unsigned, so the comparison no longer mixes signedness.
"""


def mock_completion(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "model": "demo-model",
            "choices": [{"message": {"role": "assistant", "content": CANNED_REPLY}}],
            "usage": {"prompt_tokens": 420, "completion_tokens": 48, "total_tokens": 468},
        },
    )


async def no_wait(seconds: float) -> None:
    return None


async def main():
    print("\n" + "=" * 60)
    print("  SARIF AI FIXER DEMO")
    print("  parse -> match -> context -> prompt -> complete -> apply")
    print("=" * 60 + "\n")

    workdir = Path(tempfile.mkdtemp(prefix="sarif-fixer-demo-"))
    for name in ("multi_misra_violation.c", "multi_misra_violation.sarif"):
        shutil.copy(SAMPLES / name, workdir / name)

    client = CompletionClient(
        DirectEndpointConfig(api_key="demo-key"),
        transport=httpx.MockTransport(mock_completion),
        sleep=no_wait,
    )
    pipeline = FixPipeline(
        RuleCatalog.default(),
        workspace_roots=[workdir],
        client_factory=lambda: client,
    )

    session = await pipeline.analyze(workdir / "multi_misra_violation.sarif")
    print(f"Resolved violations: {len(session)} of {session.total_records} results\n")
    for index, violation in enumerate(session.violations):
        primary = violation.record.primary_location
        print(f"  #{index} [{violation.rule.rule_id}] line {primary.start_line}: {violation.rule.title}")

    violation = session.get(0)
    fix = await pipeline.generate_fix(violation)
    print(f"\nSuggested fix for {fix.rule_id}:\n  {fix.fixed_code}")
    print(f"Explanation: {fix.explanation}")

    applied = await pipeline.apply(violation, fix)

    print(f"\n{'=' * 60}")
    print("  RESULT")
    print(f"{'=' * 60}\n")
    print(applied.replacement)
    print(f"\n  Edited copy: {applied.path}")
    print(f"  Tokens used: {client.total_usage.total_tokens}")
    print(f"\n{'=' * 60}\n")


if __name__ == "__main__":
    asyncio.run(main())
