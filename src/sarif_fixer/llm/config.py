"""
Completion-service configuration -- provider profiles, persistence, env overrides.

Two routing shapes, as a tagged union on `kind`:
  - "direct":     one fixed chat-completions URL, bearer credential, model in payload
  - "deployment": endpoint + deployment + api-version in the URL, `api-key` header

Selection order (resolve_completion_config):
  1. Environment (AZURE_OPENAI_* complete set, else OPENAI_API_KEY)
  2. Persisted config file (written by `sarif-fixer configure`)
  3. ConfigurationMissing

Configs are immutable and cheap; rebuild them per call rather than caching.
"""

import json
import logging
import os
from pathlib import Path
from typing import Annotated, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ConfigurationMissing
from ..security.validators import validate_not_empty, validate_path_segment, validate_url

logger = logging.getLogger(__name__)

DEFAULT_DIRECT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_API_VERSION = "2024-02-15-preview"

CONFIG_ENV_VAR = "SARIF_FIXER_CONFIG"
APP_DIR_NAME = "sarif-ai-fixer"

MISSING_CONFIG_MESSAGE = (
    "Completion service API key not found. Set OPENAI_API_KEY (or the "
    "AZURE_OPENAI_* variables) or run 'sarif-fixer configure'."
)


# =============================================================================
# PROVIDER PROFILES
# =============================================================================


class _ProfileBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    api_key: str
    endpoint: str

    @field_validator("api_key")
    @classmethod
    def _check_api_key(cls, value: str) -> str:
        return validate_not_empty(value, "api_key")

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        return validate_url(value, "endpoint")

    def describe(self) -> str:
        """Loggable summary. Never includes the credential."""
        return f"{self.kind} endpoint={self.endpoint}"  # type: ignore[attr-defined]


class DirectEndpointConfig(_ProfileBase):
    """Direct chat-completions endpoint with bearer auth."""

    kind: Literal["direct"] = "direct"
    endpoint: str = DEFAULT_DIRECT_ENDPOINT
    model: str = DEFAULT_MODEL


class DeploymentRoutedConfig(_ProfileBase):
    """Deployment-routed endpoint (Azure OpenAI style)."""

    kind: Literal["deployment"] = "deployment"
    deployment: str
    api_version: str = DEFAULT_API_VERSION

    @field_validator("deployment", "api_version")
    @classmethod
    def _check_route(cls, value: str, info: ValidationInfo) -> str:
        return validate_path_segment(value, info.field_name)


CompletionServiceConfig = Annotated[
    Union[DirectEndpointConfig, DeploymentRoutedConfig],
    Field(discriminator="kind"),
]

_CONFIG_ADAPTER: TypeAdapter = TypeAdapter(CompletionServiceConfig)


def parse_config(data: Mapping) -> DirectEndpointConfig | DeploymentRoutedConfig:
    """Validate a raw mapping into a provider profile."""
    return _CONFIG_ADAPTER.validate_python(dict(data))


# =============================================================================
# ENVIRONMENT
# =============================================================================


def config_from_env(
    environ: Mapping[str, str] | None = None,
) -> DirectEndpointConfig | DeploymentRoutedConfig | None:
    """
    Build a profile from environment variables, or None if none are set.

    Raises:
        ConfigurationMissing: If the variables are set but invalid.
    """
    env = os.environ if environ is None else environ

    azure_key = env.get("AZURE_OPENAI_API_KEY", "")
    azure_endpoint = env.get("AZURE_OPENAI_ENDPOINT", "")
    azure_deployment = env.get("AZURE_OPENAI_DEPLOYMENT", "")
    openai_key = env.get("OPENAI_API_KEY", "")

    try:
        if azure_key and azure_endpoint and azure_deployment:
            return DeploymentRoutedConfig(
                api_key=azure_key,
                endpoint=azure_endpoint,
                deployment=azure_deployment,
                api_version=env.get("AZURE_OPENAI_API_VERSION") or DEFAULT_API_VERSION,
            )
        if openai_key:
            base_url = env.get("OPENAI_BASE_URL", "")
            endpoint = (
                base_url.rstrip("/") + "/chat/completions" if base_url else DEFAULT_DIRECT_ENDPOINT
            )
            return DirectEndpointConfig(
                api_key=openai_key,
                endpoint=endpoint,
                model=env.get("OPENAI_MODEL") or DEFAULT_MODEL,
            )
    except PydanticValidationError as e:
        raise ConfigurationMissing(
            f"Invalid completion service settings in environment: {_first_error(e)}"
        ) from e

    return None


# =============================================================================
# PERSISTED CONFIG
# =============================================================================


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    if env.get(CONFIG_ENV_VAR):
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    base = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APP_DIR_NAME / "config.json"


class ConfigStore:
    """
    JSON file holding one persisted provider profile.

    Usage:
        store = ConfigStore()
        store.save(DirectEndpointConfig(api_key="..."))
        config = store.load()
    """

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path) if path else default_config_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> DirectEndpointConfig | DeploymentRoutedConfig | None:
        """Return the persisted profile, or None if nothing has been saved.

        Raises:
            ConfigurationMissing: If the file exists but cannot be used.
        """
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return parse_config(data)
        except (OSError, json.JSONDecodeError, TypeError) as e:
            raise ConfigurationMissing(
                f"Cannot read completion config {self._path}: {e}. Run 'sarif-fixer configure'."
            ) from e
        except PydanticValidationError as e:
            raise ConfigurationMissing(
                f"Invalid completion config {self._path}: {_first_error(e)}. "
                f"Run 'sarif-fixer configure'."
            ) from e

    def save(self, config: DirectEndpointConfig | DeploymentRoutedConfig) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = config.model_dump_json(indent=2)
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        logger.info(f"[Config] Saved {config.describe()} to {self._path}")

    def clear(self) -> bool:
        if self._path.exists():
            self._path.unlink()
            return True
        return False


def resolve_completion_config(
    store: ConfigStore | None = None,
    environ: Mapping[str, str] | None = None,
) -> DirectEndpointConfig | DeploymentRoutedConfig:
    """
    Pick the active profile: environment > persisted > ConfigurationMissing.
    """
    from_env = config_from_env(environ)
    if from_env is not None:
        logger.debug(f"[Config] Using environment profile ({from_env.describe()})")
        return from_env

    if store is not None:
        persisted = store.load()
        if persisted is not None:
            logger.debug(f"[Config] Using persisted profile ({persisted.describe()})")
            return persisted

    raise ConfigurationMissing(MISSING_CONFIG_MESSAGE)


def _first_error(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "")
