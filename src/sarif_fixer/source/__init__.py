"""Source access -- path resolution, context windows, and fix application."""

from .applicator import apply_fix, build_replacement, detect_indentation, reindent
from .context import extract_context, read_context, read_exact_range
from .paths import comment_prefix_for, fence_language_for, resolve_artifact_path

__all__ = [
    "apply_fix",
    "build_replacement",
    "comment_prefix_for",
    "detect_indentation",
    "extract_context",
    "fence_language_for",
    "read_context",
    "read_exact_range",
    "reindent",
    "resolve_artifact_path",
]
