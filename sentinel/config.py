"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < env vars < CLI flags
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LLMConfig:
    api_base: str = "https://api.openai.com/v1"
    model: str = "gpt-4o"
    temperature: float = 0.7
    api_key_env: str = "OPENAI_API_KEY"
    connect_timeout_seconds: float = 10.0
    idle_timeout_seconds: float = 60.0


@dataclass
class CredentialsConfig:
    store_path: str = "~/.sentinel/credentials.json"
    build_config_path: str = ""
    dotenv_path: str = ".env"


@dataclass
class ReportConfig:
    unknown_location: str = "Unknown Location"


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class SentinelConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    report: ReportConfig = field(default_factory=ReportConfig)

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """Walk obj via dotpath and set the final attribute."""
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is float:
        return float(value)
    if target_type is int:
        return int(value)
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "SENTINEL_LLM_API_BASE":          ("llm.api_base", str),
    "SENTINEL_LLM_MODEL":             ("llm.model", str),
    "SENTINEL_LLM_TEMPERATURE":       ("llm.temperature", float),
    "SENTINEL_LLM_API_KEY_ENV":       ("llm.api_key_env", str),
    "SENTINEL_LLM_CONNECT_TIMEOUT":   ("llm.connect_timeout_seconds", float),
    "SENTINEL_LLM_IDLE_TIMEOUT":      ("llm.idle_timeout_seconds", float),
    "SENTINEL_CREDENTIALS_STORE":     ("credentials.store_path", str),
    "SENTINEL_CREDENTIALS_BUILD":     ("credentials.build_config_path", str),
    "SENTINEL_CREDENTIALS_DOTENV":    ("credentials.dotenv_path", str),
    "SENTINEL_REPORT_UNKNOWN_LOCATION": ("report.unknown_location", str),
}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_SECTIONS: dict[str, type] = {
    "llm": LLMConfig,
    "credentials": CredentialsConfig,
    "report": ReportConfig,
}


def _read_file(path: Path) -> dict[str, Any]:
    """Parse a YAML config file; anything but a mapping counts as empty."""
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: top level is not a mapping", path)
        return {}
    return data


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> SentinelConfig:
    """
    Build a SentinelConfig by layering sources in precedence order:

        defaults  <  config file  <  env vars  <  CLI flags

    Parameters
    ----------
    config_path : path to YAML config file (optional)
    cli_overrides : dict of dotpath -> value CLI flag overrides
    environ : environment mapping; defaults to ``os.environ``
    """
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.is_file():
            raw = _read_file(p)

    sections = {}
    for name, cls in _SECTIONS.items():
        section = raw.get(name) or {}
        if not isinstance(section, dict):
            logger.warning("Ignoring config section %r: expected a mapping", name)
            section = {}
        sections[name] = _build_section(cls, section)
    cfg = SentinelConfig(**sections)

    # --- 2. Env var overrides ---
    env = os.environ if environ is None else environ
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = env.get(env_var)
        if val is not None:
            _apply_dotpath(cfg, dotpath, _coerce(val, target_type))

    # --- 3. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            _apply_dotpath(cfg, dotpath, value)

    return cfg


def find_config_path() -> Path | None:
    """Find a config file in the standard locations."""
    candidates = [
        Path.cwd() / "sentinel.yaml",
        Path.cwd() / "sentinel.yml",
        Path.home() / ".config" / "sentinel" / "config.yaml",
        Path.home() / ".sentinel" / "config.yaml",
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None
