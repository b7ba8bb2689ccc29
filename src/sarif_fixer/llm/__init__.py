"""
LLM -- completion-service access for fix generation.

Builds the deterministic fix prompt, resolves the provider profile
(environment > persisted config), submits with pacing and 429 retries,
and parses the reply into a FixSuggestion.

Usage:
    from .llm import CompletionClient, ConfigStore, build_fix_prompt, resolve_completion_config

    client = CompletionClient(resolve_completion_config(ConfigStore()))
    fix = await client.generate_fix(build_fix_prompt(snippet, record, rule), snippet, rule.rule_id)
"""

from .client import CompletionClient
from .config import (
    ConfigStore,
    DeploymentRoutedConfig,
    DirectEndpointConfig,
    config_from_env,
    parse_config,
    resolve_completion_config,
)
from .prompt import SYSTEM_PROMPT, build_fix_prompt
from .reply import parse_fix_reply
