"""
Tests for portfolio_advisor/config.py and portfolio_advisor/credentials.py.

What we test
------------
Config:
  - AppConfig() defaults are valid and frozen.
  - load_config() reads a TOML file, merges local.toml, applies
    PORTFOLIO_ADVISOR_* overrides, and raises for a missing file.
  - The committed config/default.toml validates.
  - Validators reject bad values.

Credentials:
  - InMemoryCredentialProvider treats blank values as absent.
  - require() raises MissingCredentialError naming the env variable.
  - credentials_from_environment() prefers the environment over .env and
    ignores unrelated variables.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from portfolio_advisor.config import (
    AnalysisConfig,
    AppConfig,
    LoggingConfig,
    PipelineConfig,
    _apply_env_overrides,
    load_config,
)
from portfolio_advisor.credentials import (
    ANALYSIS_API_KEY,
    RESEARCH_API_KEY,
    InMemoryCredentialProvider,
    MissingCredentialError,
    credentials_from_environment,
    require,
)


# ── AppConfig ─────────────────────────────────────────────────────────────────

def test_defaults():
    config = AppConfig()
    assert config.analysis.model == "gpt-4.1-2025-04-14"
    assert config.pipeline.insufficient_data_fraction == 0.5
    assert config.research.enabled is True
    assert config.debug is False


def test_config_is_frozen():
    config = AppConfig()
    with pytest.raises(ValidationError):
        config.debug = True


@pytest.mark.parametrize(
    "factory",
    [
        lambda: AnalysisConfig(temperature=3.0),
        lambda: AnalysisConfig(inter_record_delay_seconds=-1),
        lambda: PipelineConfig(insufficient_data_fraction=1.5),
        lambda: LoggingConfig(level="LOUD"),
    ],
)
def test_validators_reject_bad_values(factory):
    with pytest.raises(ValidationError):
        factory()


# ── load_config ───────────────────────────────────────────────────────────────

def test_load_committed_default_config():
    config = load_config()
    assert config.analysis.inter_record_delay_seconds == 2.0
    assert "crunchbase.com" in config.research.search_domains


def test_load_config_merges_local_override(tmp_path, monkeypatch):
    monkeypatch.delenv("PORTFOLIO_ADVISOR_ANALYSIS_MODEL", raising=False)
    (tmp_path / "default.toml").write_text(
        '[analysis]\nmodel = "base-model"\ntemperature = 0.2\n', encoding="utf-8"
    )
    (tmp_path / "local.toml").write_text(
        '[analysis]\nmodel = "local-model"\n', encoding="utf-8"
    )
    config = load_config(tmp_path / "default.toml")
    assert config.analysis.model == "local-model"
    assert config.analysis.temperature == 0.2


def test_load_config_env_overrides(tmp_path, monkeypatch):
    (tmp_path / "default.toml").write_text("[analysis]\n", encoding="utf-8")
    monkeypatch.setenv("PORTFOLIO_ADVISOR_ANALYSIS_MODEL", "env-model")
    monkeypatch.setenv("PORTFOLIO_ADVISOR_RESEARCH", "false")
    monkeypatch.setenv("PORTFOLIO_ADVISOR_LOG_LEVEL", "debug")
    config = load_config(tmp_path / "default.toml")
    assert config.analysis.model == "env-model"
    assert config.research.enabled is False
    assert config.logging.level == "DEBUG"


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.toml")


def test_apply_env_overrides_debug():
    raw = _apply_env_overrides({}, {"PORTFOLIO_ADVISOR_DEBUG": "1"})
    assert raw["debug"] is True


# ── Credentials ───────────────────────────────────────────────────────────────

def test_in_memory_provider_blank_is_absent():
    creds = InMemoryCredentialProvider({ANALYSIS_API_KEY: "  "})
    assert creds.get(ANALYSIS_API_KEY) is None
    assert not creds.has(ANALYSIS_API_KEY)
    creds.set(ANALYSIS_API_KEY, "sk-1")
    assert creds.get(ANALYSIS_API_KEY) == "sk-1"


def test_require_raises_with_env_name():
    with pytest.raises(MissingCredentialError, match="OPENAI_API_KEY") as exc_info:
        require(InMemoryCredentialProvider(), ANALYSIS_API_KEY)
    assert exc_info.value.key == ANALYSIS_API_KEY


def test_credentials_from_environment(tmp_path):
    dotenv = tmp_path / ".env"
    dotenv.write_text("OPENAI_API_KEY=from-file\nPERPLEXITY_API_KEY=pplx-file\n", encoding="utf-8")

    creds = credentials_from_environment(dotenv, environ={"OPENAI_API_KEY": "from-env", "HOME": "/x"})

    assert creds.get(ANALYSIS_API_KEY) == "from-env"
    assert creds.get(RESEARCH_API_KEY) == "pplx-file"
    assert creds.get("HOME") is None


def test_credentials_missing_dotenv_is_fine(tmp_path):
    creds = credentials_from_environment(tmp_path / "absent.env", environ={})
    assert creds.get(ANALYSIS_API_KEY) is None
    assert creds.get(RESEARCH_API_KEY) is None
