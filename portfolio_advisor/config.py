"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      : committed static defaults
  2. ``config/local.toml``        : optional local overrides (gitignored)
  3. ``.env``                     : local secrets and env overrides (gitignored)
  4. Environment variables        : ``PORTFOLIO_ADVISOR_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The orchestrator, engine, augmenter and CLI commands receive an ``AppConfig``
instance (or one of its sections), never raw dicts or env var lookups.
API keys are NOT part of the config; they travel through a
``CredentialProvider`` (see ``portfolio_advisor.credentials``).
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class AnalysisConfig(BaseModel):
    """Remote reasoning service (OpenAI-compatible chat completions)."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4.1-2025-04-14"
    temperature: float = 0.1
    max_tokens: int = 2500
    timeout_seconds: float = 60.0
    inter_record_delay_seconds: float = 0.0

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"temperature must be in [0.0, 2.0], got {v}.")
        return v

    @field_validator("timeout_seconds", "inter_record_delay_seconds")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Durations must be non-negative, got {v}.")
        return v


class ResearchConfig(BaseModel):
    """External research service (Perplexity-compatible chat completions)."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    base_url: str = "https://api.perplexity.ai"
    model: str = "llama-3.1-sonar-small-128k-online"
    temperature: float = 0.1
    max_tokens: int = 400
    timeout_seconds: float = 30.0
    query_delay_seconds: float = 0.0
    recency_filter: str = "month"
    search_domains: list[str] = [
        "crunchbase.com", "techcrunch.com", "linkedin.com",
        "pitchbook.com", "venturebeat.com",
    ]


class PipelineConfig(BaseModel):
    """Batch analysis parameters."""

    model_config = ConfigDict(frozen=True)

    # A record is short-circuited when MORE than this share of its
    # numeric fields is null.
    insufficient_data_fraction: float = 0.5

    @field_validator("insufficient_data_fraction")
    @classmethod
    def validate_fraction(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"insufficient_data_fraction must be in [0, 1], got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/portfolio_advisor.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration, the single source of truth.

    Constructed by ``load_config()`` which merges TOML + .env + env vars.
    ``AppConfig()`` with no arguments gives the built-in defaults, which is
    what the test suite uses.
    """

    model_config = ConfigDict(frozen=True)

    analysis: AnalysisConfig = AnalysisConfig()
    research: ResearchConfig = ResearchConfig()
    pipeline: PipelineConfig = PipelineConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply PORTFOLIO_ADVISOR_* environment variable overrides
    raw = _apply_env_overrides(raw, os.environ)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any], environ: Any) -> dict[str, Any]:
    """Apply PORTFOLIO_ADVISOR_* env vars to the raw config dict.

    Supported overrides:
      PORTFOLIO_ADVISOR_ANALYSIS_MODEL  -> raw["analysis"]["model"]
      PORTFOLIO_ADVISOR_RESEARCH        -> raw["research"]["enabled"]
      PORTFOLIO_ADVISOR_LOG_LEVEL       -> raw["logging"]["level"]
      PORTFOLIO_ADVISOR_DEBUG           -> raw["debug"]
    """
    if model := environ.get("PORTFOLIO_ADVISOR_ANALYSIS_MODEL"):
        raw.setdefault("analysis", {})["model"] = model

    if research := environ.get("PORTFOLIO_ADVISOR_RESEARCH"):
        raw.setdefault("research", {})["enabled"] = research.lower() in ("1", "true", "yes")

    if log_level := environ.get("PORTFOLIO_ADVISOR_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := environ.get("PORTFOLIO_ADVISOR_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        analysis=AnalysisConfig(**raw.get("analysis", {})),
        research=ResearchConfig(**raw.get("research", {})),
        pipeline=PipelineConfig(**raw.get("pipeline", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
