"""
API credential resolution.

Resolution order (first hit wins):

    explicit key  >  credential store  >  build-time config  >  environment

A key found only in the environment is written back to the credential store
so later resolutions (including after a process restart) never need the
environment again.

Security measures for ``FileCredentialStore``:
- A parent directory the store creates gets mode 0o700 (owner-only); an
  existing directory keeps its permissions.
- The credential file is written atomically with mode 0o600.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Protocol

import yaml
from dotenv import dotenv_values

from sentinel.errors import ApiKeyMissing

logger = logging.getLogger(__name__)

DEFAULT_KEY_NAME = "OPENAI_API_KEY"


class CredentialStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> bool: ...


class KeyReader(Protocol):
    def get(self, key: str) -> str | None: ...


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class MemoryCredentialStore:
    """Process-local store; handy for tests and ephemeral sessions."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key) or None

    def set(self, key: str, value: str) -> bool:
        self._values[key] = value
        return True


class FileCredentialStore:
    """
    JSON-file credential store with owner-only permissions.

    Parameters
    ----------
    path:
        Location of the credential file, e.g. ``~/.sentinel/credentials.json``.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable credential store %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) and value else None

    def set(self, key: str, value: str) -> bool:
        data = self._load()
        if data.get(key) == value:
            return True
        data[key] = value
        try:
            if not self.path.parent.exists():
                self.path.parent.mkdir(mode=0o700, parents=True)
                # mkdir honours the umask
                os.chmod(self.path.parent, 0o700)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
            os.chmod(self.path, 0o600)
        except OSError as exc:
            logger.warning("Could not write credential store %s: %s", self.path, exc)
            return False
        return True


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------


class BuildConfig:
    """
    Build-time settings (keys injected when the app was packaged).

    Empty values and unexpanded ``$(VAR)`` placeholders count as absent.
    """

    def __init__(self, values: Mapping[str, object] | None = None) -> None:
        self._values = dict(values or {})

    @classmethod
    def from_file(cls, path: str | Path) -> BuildConfig:
        p = Path(path).expanduser()
        if not p.is_file():
            return cls()
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls(data if isinstance(data, dict) else {})

    def get(self, key: str) -> str | None:
        value = self._values.get(key)
        if not isinstance(value, str) or not value or "$(" in value:
            return None
        return value


class EnvironmentReader:
    """
    Process environment, optionally overlaid on a ``.env`` file.

    Real environment variables take precedence over ``.env`` entries.
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        dotenv_path: str | Path | None = None,
    ) -> None:
        env: dict[str, str] = {}
        if dotenv_path is not None and Path(dotenv_path).is_file():
            for key, value in dotenv_values(dotenv_path).items():
                if key and value is not None:
                    env[key] = value
        env.update(os.environ if environ is None else environ)
        self._env = env

    def get(self, key: str) -> str | None:
        return self._env.get(key) or None


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class CredentialResolver:
    """
    Resolves the provider API key from the configured sources.

    The first successful resolution is cached; concurrent readers see the
    same value and the store is written at most once.
    """

    def __init__(
        self,
        store: CredentialStore,
        build_config: KeyReader | None = None,
        environment: KeyReader | None = None,
        key_name: str = DEFAULT_KEY_NAME,
    ) -> None:
        self.store = store
        self.build_config = build_config or BuildConfig()
        self.environment = environment or EnvironmentReader()
        self.key_name = key_name
        self._resolved: str | None = None

    def resolve(self, explicit: str | None = None) -> str:
        """Return the API key, or raise ``ApiKeyMissing``."""
        if explicit:
            return explicit
        if self._resolved:
            return self._resolved

        value = self.store.get(self.key_name)
        source = "credential store"
        if not value:
            value = self.build_config.get(self.key_name)
            source = "build config"
        if not value:
            value = self.environment.get(self.key_name)
            source = "environment"
            if value and not self.store.set(self.key_name, value):
                logger.warning("Resolved %s from environment but could not persist it", self.key_name)
        if not value:
            raise ApiKeyMissing(f"{self.key_name} not found in any credential source")

        logger.info("Resolved %s from %s", self.key_name, source)
        self._resolved = value
        return value
