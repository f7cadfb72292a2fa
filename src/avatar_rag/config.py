"""avatar-rag configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (AVATAR_EMBEDDING_MODEL, AVATAR_GENERATION_MODEL, AVATAR_DB_PATH)
  3. Per-project avatar.yaml  (current directory)
  4. Global ~/.avatar-rag/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

API keys never live in config files; use environment variables instead.
All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from avatar_rag.errors import ConfigError
from avatar_rag.ingest.embedder import EmbeddingConfig
from avatar_rag.ingest.pipeline import ChunkingConfig
from avatar_rag.rag.assembler import AssemblerConfig
from avatar_rag.rag.generator import GenerationConfig, PersonaConfig
from avatar_rag.rag.query import RetrievalConfig

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".avatar-rag"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "avatar.yaml"

DEFAULT_DB_PATH = ".avatar-rag.db"

# Fields that suggest an API key, forbidden in any config file.
# Does NOT match legitimate keys like max_tokens or token_budget.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # access_token, auth_token (suffix)
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "generation", "retrieval", "chunking", "assembler", "store", "persona"]
)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StoreCfg:
    """Vector store location (avatar.yaml: store:)."""

    path: str = DEFAULT_DB_PATH


@dataclass
class AvatarConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    assembler: AssemblerConfig = field(default_factory=AssemblerConfig)
    store: StoreCfg = field(default_factory=StoreCfg)
    persona: PersonaConfig = field(default_factory=PersonaConfig)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}', ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config '{path}' must be a mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _build_section(cls: type, section: str, raw: Any) -> Any:
    """Instantiate dataclass *cls* from the *raw* mapping of config *section*."""
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"Config section '{section}' must be a mapping.")
    known = {f.name for f in fields(cls)}
    for key in raw:
        if key not in known:
            warnings.warn(
                f"Unknown config key '{section}.{key}', ignored.",
                UserWarning,
                stacklevel=4,
            )
    try:
        return cls(**{k: v for k, v in raw.items() if k in known})
    except ConfigError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid '{section}' configuration: {exc}") from exc


def _cfg_from_dict(data: dict[str, Any]) -> AvatarConfig:
    """Build an *AvatarConfig* from a merged raw YAML dict."""
    return AvatarConfig(
        embedding=_build_section(EmbeddingConfig, "embedding", data.get("embedding")),
        generation=_build_section(GenerationConfig, "generation", data.get("generation")),
        retrieval=_build_section(RetrievalConfig, "retrieval", data.get("retrieval")),
        chunking=_build_section(ChunkingConfig, "chunking", data.get("chunking")),
        assembler=_build_section(AssemblerConfig, "assembler", data.get("assembler")),
        store=_build_section(StoreCfg, "store", data.get("store")),
        persona=_build_section(PersonaConfig, "persona", data.get("persona")),
    )


def _apply_env_overrides(cfg: AvatarConfig) -> AvatarConfig:
    """Apply AVATAR_* environment variable overrides."""
    if model := os.environ.get("AVATAR_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("AVATAR_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if db_path := os.environ.get("AVATAR_DB_PATH"):
        cfg.store.path = db_path
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> AvatarConfig:
    """Load and return a merged *AvatarConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *avatar.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a config file contains API-key-like fields, is not a
            mapping, or holds an invalid value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _check_no_api_keys(raw_project, project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict({k: v for k, v in merged.items() if k in _KNOWN_SECTIONS})

    # Layer 3: env var overrides
    return _apply_env_overrides(cfg)


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.avatar-rag/config.yaml`` with defaults if it does not exist.

    The directory is created with mode 0o700 and the file with mode 0o600.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# avatar-rag global configuration: model defaults only.\n"
            "# NEVER store API keys here. Use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  dimensions: 1536\n"
            "\n"
            "generation:\n"
            "  model: openai/gpt-4o\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target


def ensure_project_config(project_dir: Path | None = None) -> tuple[Path, bool]:
    """Write a starter *avatar.yaml* into *project_dir* (default CWD) if missing.

    Returns:
        The config path and whether it was created.
    """
    target = (project_dir if project_dir is not None else Path.cwd()) / _PROJECT_CONFIG_NAME
    if target.exists():
        return target, False

    content = (
        "# avatar-rag project configuration. Keys here override ~/.avatar-rag/config.yaml.\n"
        "# API keys belong in environment variables, never in this file.\n"
        "\n"
        "store:\n"
        f"  path: {DEFAULT_DB_PATH}\n"
        "\n"
        "retrieval:\n"
        "  threshold: 0.75\n"
        "  match_count: 5\n"
        "\n"
        "# persona:\n"
        "#   name: Mia\n"
        "#   description: travel photographer and home cook\n"
        "#   tone: warm and direct\n"
    )
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target, True
