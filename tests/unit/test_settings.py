"""Unit tests for settings loading."""

import pytest

from kusto_notebooks.config.settings import DEFAULT_DOCUMENT_TYPES, load_settings

ENV_KEYS = [
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_FILE",
    "CONNECTIONS_FILE",
    "KUSTO_REQUEST_TIMEOUT",
    "KUSTO_AAD_SCOPE",
    "APP_INSIGHTS_ENDPOINT",
    "KUSTO_DOCUMENT_TYPES",
]

CONFIG = """
app:
  log_level: WARNING
  log_file: logs/test.log
storage:
  connections_file: state/connections.json
kusto:
  request_timeout_seconds: 60
  document_types:
    - kusto-notebook
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_reads_yaml_for_app_env(tmp_path, monkeypatch):
    (tmp_path / "staging.yaml").write_text(CONFIG)
    monkeypatch.setenv("APP_ENV", "staging")

    settings = load_settings(str(tmp_path))

    assert settings.env == "staging"
    assert settings.log_level == "WARNING"
    assert settings.log_file == "logs/test.log"
    assert settings.connections_file == "state/connections.json"
    assert settings.request_timeout_seconds == 60.0
    assert settings.document_types == ["kusto-notebook"]
    assert settings.app_insights_endpoint == "https://api.applicationinsights.io"


def test_environment_overrides_yaml(tmp_path, monkeypatch):
    (tmp_path / "dev.yaml").write_text(CONFIG)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("KUSTO_REQUEST_TIMEOUT", "15")
    monkeypatch.setenv("KUSTO_DOCUMENT_TYPES", "kusto-notebook, kusto-interactive")

    settings = load_settings(str(tmp_path))

    assert settings.log_level == "DEBUG"
    assert settings.request_timeout_seconds == 15.0
    assert settings.document_types == ["kusto-notebook", "kusto-interactive"]


def test_empty_yaml_uses_defaults(tmp_path):
    (tmp_path / "dev.yaml").write_text("")
    settings = load_settings(str(tmp_path))
    assert settings.log_level == "INFO"
    assert settings.log_file is None
    assert settings.request_timeout_seconds == 240.0
    assert settings.document_types == DEFAULT_DOCUMENT_TYPES


def test_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path))
