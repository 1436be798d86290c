"""
Credential providers.

The orchestrator, engine and research augmenter never read API keys from the
process environment. They receive a ``CredentialProvider`` and ask it for a
named key, which keeps batch runs deterministic under test::

    creds = InMemoryCredentialProvider({ANALYSIS_API_KEY: "sk-test"})
    orchestrator = BatchOrchestrator(config, credentials=creds, ...)

At the CLI edge, ``credentials_from_environment()`` takes a one-time snapshot
of the environment and ``.env``:

  OPENAI_API_KEY      -> ``analysis_api_key``
  PERPLEXITY_API_KEY  -> ``research_api_key``
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional, Protocol

from dotenv import dotenv_values

ANALYSIS_API_KEY = "analysis_api_key"
RESEARCH_API_KEY = "research_api_key"

ENV_VAR_NAMES: dict[str, str] = {
    ANALYSIS_API_KEY: "OPENAI_API_KEY",
    RESEARCH_API_KEY: "PERPLEXITY_API_KEY",
}


class MissingCredentialError(RuntimeError):
    """Raised when a required credential is not available.

    Attributes:
        key: The credential key that was requested.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        env_name = ENV_VAR_NAMES.get(key, key.upper())
        super().__init__(
            f"Credential '{key}' is not configured. Set {env_name} in .env."
        )


class CredentialProvider(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryCredentialProvider:
    """Dict-backed provider. Blank values count as absent."""

    def __init__(self, values: Optional[Mapping[str, str]] = None) -> None:
        self._values: dict[str, str] = dict(values or {})

    def get(self, key: str) -> Optional[str]:
        value = self._values.get(key)
        if value is None or not value.strip():
            return None
        return value

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def has(self, key: str) -> bool:
        return self.get(key) is not None


def require(credentials: CredentialProvider, key: str) -> str:
    """Return ``credentials.get(key)`` or raise ``MissingCredentialError``."""
    value = credentials.get(key)
    if not value:
        raise MissingCredentialError(key)
    return value


def credentials_from_environment(
    dotenv_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> InMemoryCredentialProvider:
    """Snapshot API keys from ``.env`` and the environment.

    Environment variables win over ``.env`` entries. Only the keys in
    ``ENV_VAR_NAMES`` are copied.

    Args:
        dotenv_path: Optional ``.env`` file to read (missing file is fine).
        environ:     Environment mapping; defaults to ``os.environ``.
    """
    file_values: dict[str, Optional[str]] = {}
    if dotenv_path is not None and Path(dotenv_path).exists():
        file_values = dotenv_values(dotenv_path)

    env = os.environ if environ is None else environ
    snapshot: dict[str, str] = {}
    for key, env_name in ENV_VAR_NAMES.items():
        value = env.get(env_name) or file_values.get(env_name)
        if value:
            snapshot[key] = value
    return InMemoryCredentialProvider(snapshot)
