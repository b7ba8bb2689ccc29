"""Tests for provider profiles, the config store and configuration precedence."""

import json
import os
import stat

import pytest
from pydantic import ValidationError as PydanticValidationError

from sarif_fixer.errors import ConfigurationMissing
from sarif_fixer.llm import (
    ConfigStore,
    DeploymentRoutedConfig,
    DirectEndpointConfig,
    config_from_env,
    parse_config,
    resolve_completion_config,
)
from sarif_fixer.llm.config import DEFAULT_DIRECT_ENDPOINT, DEFAULT_MODEL, default_config_path
from sarif_fixer.security import ValidationError, validate_url

AZURE_ENV = {
    "AZURE_OPENAI_API_KEY": "azure-key",
    "AZURE_OPENAI_ENDPOINT": "https://myres.openai.azure.com",
    "AZURE_OPENAI_DEPLOYMENT": "fixer",
}


class TestProfiles:
    """Profiles are a tagged union on `kind` and validate at construction."""

    def test_direct_defaults(self):
        config = DirectEndpointConfig(api_key="k")
        assert config.kind == "direct"
        assert config.endpoint == DEFAULT_DIRECT_ENDPOINT
        assert config.model == DEFAULT_MODEL

    def test_parse_config_uses_kind(self):
        config = parse_config({"kind": "deployment", "api_key": "k", "endpoint": "https://x.example", "deployment": "d"})
        assert isinstance(config, DeploymentRoutedConfig)
        assert config.api_version

    def test_unknown_kind_rejected(self):
        with pytest.raises(PydanticValidationError):
            parse_config({"kind": "carrier-pigeon", "api_key": "k"})

    def test_deployment_requires_deployment(self):
        with pytest.raises(PydanticValidationError):
            parse_config({"kind": "deployment", "api_key": "k", "endpoint": "https://x.example"})

    def test_deployment_name_must_be_path_safe(self):
        with pytest.raises(PydanticValidationError):
            parse_config({"kind": "deployment", "api_key": "k", "endpoint": "https://x.example", "deployment": "a/../b"})

    def test_empty_api_key_rejected(self):
        with pytest.raises(PydanticValidationError):
            DirectEndpointConfig(api_key="   ")

    def test_bad_endpoint_rejected(self):
        with pytest.raises(PydanticValidationError):
            DirectEndpointConfig(api_key="k", endpoint="ftp://example.com/x")

    def test_profiles_are_immutable(self):
        config = DirectEndpointConfig(api_key="k")
        with pytest.raises(PydanticValidationError):
            config.model = "other"

    def test_describe_hides_key(self):
        assert "secret-key" not in DirectEndpointConfig(api_key="secret-key").describe()


class TestValidateUrl:
    def test_local_gateway_allowed(self):
        assert validate_url("http://localhost:8080/v1/chat/completions") == "http://localhost:8080/v1/chat/completions"

    @pytest.mark.parametrize(
        "url", ["file:///etc/passwd", "http://169.254.169.254/latest", "http://metadata.google.internal/", "https://"]
    )
    def test_rejected(self, url):
        with pytest.raises(ValidationError):
            validate_url(url)


class TestConfigFromEnv:
    def test_nothing_set(self):
        assert config_from_env({}) is None

    def test_openai_key(self):
        config = config_from_env({"OPENAI_API_KEY": "sk-env"})
        assert isinstance(config, DirectEndpointConfig)
        assert config.api_key == "sk-env"
        assert config.endpoint == DEFAULT_DIRECT_ENDPOINT

    def test_openai_base_url_and_model(self):
        config = config_from_env({
            "OPENAI_API_KEY": "sk-env",
            "OPENAI_BASE_URL": "http://localhost:8000/v1/",
            "OPENAI_MODEL": "local-model",
        })
        assert config.endpoint == "http://localhost:8000/v1/chat/completions"
        assert config.model == "local-model"

    def test_complete_azure_set_wins(self):
        config = config_from_env({**AZURE_ENV, "OPENAI_API_KEY": "sk-env"})
        assert isinstance(config, DeploymentRoutedConfig)
        assert config.deployment == "fixer"

    def test_incomplete_azure_set_is_ignored(self):
        env = {"AZURE_OPENAI_API_KEY": "azure-key", "OPENAI_API_KEY": "sk-env"}
        assert isinstance(config_from_env(env), DirectEndpointConfig)

    def test_invalid_values_raise_configuration_missing(self):
        with pytest.raises(ConfigurationMissing):
            config_from_env({**AZURE_ENV, "AZURE_OPENAI_ENDPOINT": "not a url"})


class TestConfigStore:
    def test_missing_file_loads_none(self, tmp_path):
        assert ConfigStore(tmp_path / "config.json").load() is None

    def test_save_and_load(self, tmp_path):
        store = ConfigStore(tmp_path / "nested" / "config.json")
        store.save(DirectEndpointConfig(api_key="stored", model="m"))
        loaded = store.load()
        assert loaded == DirectEndpointConfig(api_key="stored", model="m")

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_saved_file_is_private(self, tmp_path):
        store = ConfigStore(tmp_path / "config.json")
        store.save(DirectEndpointConfig(api_key="stored"))
        assert stat.S_IMODE(store.path.stat().st_mode) == 0o600

    def test_invalid_file_raises_configuration_missing(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"kind": "direct"}))
        with pytest.raises(ConfigurationMissing):
            ConfigStore(path).load()

    def test_corrupt_file_raises_configuration_missing(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{oops")
        with pytest.raises(ConfigurationMissing):
            ConfigStore(path).load()

    def test_clear(self, tmp_path):
        store = ConfigStore(tmp_path / "config.json")
        store.save(DirectEndpointConfig(api_key="stored"))
        assert store.clear() is True
        assert store.clear() is False

    def test_default_path_from_env(self, tmp_path):
        assert default_config_path({"SARIF_FIXER_CONFIG": str(tmp_path / "c.json")}) == tmp_path / "c.json"

    def test_default_path_under_xdg(self, tmp_path):
        path = default_config_path({"XDG_CONFIG_HOME": str(tmp_path)})
        assert path == tmp_path / "sarif-ai-fixer" / "config.json"


class TestResolveCompletionConfig:
    """Environment beats the persisted file; neither means ConfigurationMissing."""

    def test_environment_takes_precedence(self, tmp_path):
        store = ConfigStore(tmp_path / "config.json")
        store.save(DirectEndpointConfig(api_key="stored"))
        config = resolve_completion_config(store, {"OPENAI_API_KEY": "sk-env"})
        assert config.api_key == "sk-env"

    def test_falls_back_to_persisted(self, tmp_path):
        store = ConfigStore(tmp_path / "config.json")
        store.save(DirectEndpointConfig(api_key="stored"))
        assert resolve_completion_config(store, {}).api_key == "stored"

    def test_nothing_configured(self, tmp_path):
        with pytest.raises(ConfigurationMissing, match="API key not found"):
            resolve_completion_config(ConfigStore(tmp_path / "config.json"), {})

    def test_no_store(self):
        with pytest.raises(ConfigurationMissing):
            resolve_completion_config(None, {})
