"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers, later layers overriding earlier ones:

1. ``config/config.yaml`` -- static defaults checked into the repo
2. ``.env`` file          -- local developer overrides (not committed)
3. Environment variables  -- set at deploy time

:func:`load_config` reads the YAML file, then deep-merges the values that
:class:`~ragdesk.config.settings.Settings` resolved from the environment.
:func:`build_chunking_config` turns the merged ``chunking`` section into a
validated :class:`~ragdesk.models.rag.ChunkingConfig`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ragdesk.config.settings import Settings
from ragdesk.models.rag import DEFAULT_SEPARATORS, ChunkingConfig
from ragdesk.utils.errors import ConfigurationError

_DEFAULT_PRESETS: dict[str, dict[str, Any]] = {
    "character": {"chunk_size": 1000, "chunk_overlap": 200, "length_unit": "characters"},
    "token": {
        "chunk_size": 512,
        "chunk_overlap": 64,
        "length_unit": "tokens",
        "tokenizer_name": "bert-base-uncased",
    },
}

_DEFAULT_PREVIEWABLE = [
    "application/pdf",
    "text/plain",
    "text/markdown",
    "text/csv",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
]

_DEFAULT_EXTRACTABLE = ["application/pdf", "text/plain", "text/markdown", "text/csv"]


def load_config(path: str | None = None, settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  Defaults to
              ``settings.config_path``.
        settings: Resolved settings; a fresh :class:`Settings` is built
                  when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    settings = settings or Settings()
    config_path = Path(path or settings.config_path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    chunking_overrides: dict[str, Any] = {"preset": settings.chunking_preset}
    if settings.chunk_size:
        chunking_overrides["chunk_size"] = settings.chunk_size
    if settings.chunk_overlap:
        chunking_overrides["chunk_overlap"] = settings.chunk_overlap

    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "chunking": chunking_overrides,
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def build_chunking_config(config: dict[str, Any]) -> ChunkingConfig:
    """Resolve the active chunking preset plus explicit size overrides.

    Raises
    ------
    ConfigurationError
        If the preset name is unknown or the resulting sizes are invalid
        (e.g. overlap not smaller than size).
    """
    section = config.get("chunking", {})
    presets = {**_DEFAULT_PRESETS, **section.get("presets", {})}
    preset_name = section.get("preset", "character")
    if preset_name not in presets:
        raise ConfigurationError(
            message=f"Unknown chunking preset '{preset_name}'. Choose from {sorted(presets)}"
        )

    values = dict(presets[preset_name])
    for key in ("chunk_size", "chunk_overlap"):
        if section.get(key):
            values[key] = section[key]
    values["separators"] = tuple(section.get("separators") or DEFAULT_SEPARATORS)

    try:
        return ChunkingConfig(**values)
    except ValueError as exc:
        raise ConfigurationError(message=f"Invalid chunking configuration: {exc}") from exc


def previewable_content_types(config: dict[str, Any]) -> frozenset[str]:
    return frozenset(config.get("documents", {}).get("previewable_content_types", _DEFAULT_PREVIEWABLE))


def extractable_content_types(config: dict[str, Any]) -> frozenset[str]:
    return frozenset(config.get("documents", {}).get("extractable_content_types", _DEFAULT_EXTRACTABLE))


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
