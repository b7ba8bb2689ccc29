"""Security utilities -- prompt sanitization and configuration validation."""

from .prompt_guard import detect_injection_attempt, sanitize_for_prompt
from .validators import ValidationError, validate_not_empty, validate_path_segment, validate_url
