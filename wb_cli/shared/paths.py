"""Utilities for resolving application paths."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

DEFAULT_CONFIG_DIR = "~/.wbcli"
DEFAULT_CONFIG_FILE = "config.yaml"

CONFIG_DIR_ENV = "WBCLI_CONFIG_DIR"
CONFIG_FILE_ENV = "WBCLI_CONFIG_PATH"


def _expand(path_str: str) -> Path:
    """Return a Path with user and environment variables expanded."""
    return Path(os.path.expandvars(path_str)).expanduser()


def get_config_dir(create: bool = False, env: Mapping[str, str] | None = None) -> Path:
    """Return the configuration directory, optionally creating it."""
    env = env if env is not None else os.environ
    path = _expand(env.get(CONFIG_DIR_ENV, DEFAULT_CONFIG_DIR))
    if create:
        path.mkdir(parents=True, exist_ok=True)
    return path


def default_config_path(env: Mapping[str, str] | None = None) -> Path:
    """Return the config file path, honouring the explicit file override first."""
    env = env if env is not None else os.environ
    override = env.get(CONFIG_FILE_ENV)
    if override:
        return _expand(override)
    return get_config_dir(env=env) / DEFAULT_CONFIG_FILE


def resolve_path(path_str: str | Path) -> Path:
    """Expand user and environment variables for arbitrary paths."""
    return _expand(str(path_str))
