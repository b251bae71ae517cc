from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParserConfig:
    # Nesting cap, applied separately to block and inline recursion.
    max_depth: int = 32
    resolve_references: bool = True
    tab_size: int = 4


DEFAULT_CONFIG = ParserConfig()


def load_config(text: str) -> ParserConfig:
    """Read parser settings from a YAML mapping; missing keys keep their defaults."""
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping of parser settings.")

    known = {f.name for f in fields(ParserConfig)}
    values = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown parser setting %r", key)
            continue
        values[key] = value

    config = replace(DEFAULT_CONFIG, **values)
    _validate(config)
    return config


def load_config_file(path: str | Path) -> ParserConfig:
    return load_config(Path(path).read_text(encoding="utf-8"))


def _validate(config: ParserConfig) -> None:
    if not isinstance(config.max_depth, int) or isinstance(config.max_depth, bool) or config.max_depth < 0:
        raise ValueError(f"max_depth must be a non-negative integer, got {config.max_depth!r}")
    if not isinstance(config.tab_size, int) or isinstance(config.tab_size, bool) or config.tab_size < 1:
        raise ValueError(f"tab_size must be a positive integer, got {config.tab_size!r}")
    if not isinstance(config.resolve_references, bool):
        raise ValueError(f"resolve_references must be true or false, got {config.resolve_references!r}")
