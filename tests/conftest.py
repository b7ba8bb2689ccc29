"""Test fixtures -- sample workspace, rule catalog, recording sleep, clean environment."""

import shutil
from pathlib import Path

import pytest

from sarif_fixer.analysis import RuleCatalog

from .fakes import RecordingSleep

SAMPLES_DIR = Path(__file__).resolve().parent.parent / "samples"
SAMPLE_SOURCE = "multi_misra_violation.c"
SAMPLE_SARIF = "multi_misra_violation.sarif"


@pytest.fixture
def catalog():
    return RuleCatalog.default()


@pytest.fixture
def workspace(tmp_path):
    """Temp directory holding copies of the sample C file and SARIF log."""
    for name in (SAMPLE_SOURCE, SAMPLE_SARIF):
        shutil.copy(SAMPLES_DIR / name, tmp_path / name)
    return tmp_path


@pytest.fixture
def numbered_file(tmp_path):
    """A 20-line file whose lines read 'line 1' .. 'line 20'."""
    path = tmp_path / "numbered.c"
    path.write_text("\n".join(f"line {i}" for i in range(1, 21)) + "\n")
    return path


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No completion credentials in the environment; config file under tmp_path."""
    for var in (
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "OPENAI_MODEL",
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_DEPLOYMENT",
        "AZURE_OPENAI_API_VERSION",
    ):
        monkeypatch.delenv(var, raising=False)
    config_path = tmp_path / "config" / "config.json"
    monkeypatch.setenv("SARIF_FIXER_CONFIG", str(config_path))
    return config_path
