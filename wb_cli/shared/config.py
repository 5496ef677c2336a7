"""Configuration loading utilities for the workbench CLI suite."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from . import paths
from .exceptions import ConfigurationError

_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*([kKmMgG]?)[bB]?\s*$")
_SIZE_MULTIPLIERS = {"": 1, "k": 1024, "m": 1024**2, "g": 1024**3}


@dataclass(frozen=True, slots=True)
class MemorySettings:
    """Memory ceiling consulted between page fetches."""

    limit_bytes: int  # 0 disables the guard
    warning_threshold: float  # fraction of the limit, 0 < x <= 1


@dataclass(frozen=True, slots=True)
class QuerySettings:
    """Paging and rendering behaviour for query results."""

    auto_continue: bool
    max_nesting_depth: int


@dataclass(frozen=True, slots=True)
class ExportSettings:
    """CSV export gate."""

    allow_csv: bool


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Top-level application configuration."""

    source_path: Path
    memory: MemorySettings
    query: QuerySettings
    export: ExportSettings

    def with_auto_continue(self, enabled: bool) -> AppConfig:
        """Return a copy with the auto-continue policy replaced."""
        return replace(self, query=replace(self.query, auto_continue=enabled))


def _default_config() -> dict[str, Any]:
    return {
        "memory": {
            "limit": "512M",
            "warning_threshold_percent": 80,
        },
        "query": {
            "auto_continue": False,
            "max_nesting_depth": 5,
        },
        "export": {
            "allow_csv": True,
        },
    }


ENV_OVERRIDE_SPEC: dict[str, tuple[str, type]] = {
    "memory.limit": ("WBCLI_MEMORY_LIMIT", str),
    "memory.warning_threshold_percent": ("WBCLI_MEMORY_WARNING_THRESHOLD", float),
    "query.auto_continue": ("WBCLI_AUTO_CONTINUE", bool),
    "query.max_nesting_depth": ("WBCLI_MAX_NESTING_DEPTH", int),
    "export.allow_csv": ("WBCLI_ALLOW_CSV_EXPORT", bool),
}


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from defaults, YAML file, and env overrides."""
    env = dict(os.environ if env is None else env)
    resolved_config_path = _resolve_config_path(config_path, env)
    file_data = _load_yaml(resolved_config_path)
    merged: dict[str, Any] = _deep_merge(_default_config(), file_data)
    merged = _apply_env_overrides(merged, env)
    return _build_config(merged, resolved_config_path)


def parse_byte_size(raw: Any) -> int:
    """Convert ``512M``-style sizes (or plain integers) into a byte count.

    ``-1`` is accepted as an alias for an unbounded limit and maps to 0.
    """
    if isinstance(raw, bool):
        raise ValueError(f"expected a byte size, got {raw!r}")
    if isinstance(raw, int):
        return 0 if raw == -1 else raw
    text = str(raw).strip()
    if text == "-1":
        return 0
    match = _SIZE_PATTERN.match(text)
    if not match:
        raise ValueError(f"expected a byte size such as 536870912 or 512M, got {raw!r}")
    number, unit = match.groups()
    return int(number) * _SIZE_MULTIPLIERS[unit.lower()]


def _resolve_config_path(config_path: str | Path | None, env: Mapping[str, str]) -> Path:
    if config_path:
        return paths.resolve_path(config_path)
    return paths.default_config_path(env=env)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
        if not isinstance(data, MutableMapping):
            raise ConfigurationError(f"Config file at {path} must define a mapping root object.")
        return dict(data)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    config_copy = _deep_merge(config, {})
    for dotted_key, (env_key, expected_type) in ENV_OVERRIDE_SPEC.items():
        if env_key not in env:
            continue
        raw_value = env[env_key]
        try:
            value = _coerce_env_value(raw_value, expected_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment override {env_key} has invalid value '{raw_value}': {exc}"
            ) from exc
        _assign_nested(config_copy, dotted_key.split("."), value)
    return config_copy


def _coerce_env_value(raw: str, expected_type: type) -> Any:
    cleaned = raw.strip()
    if expected_type is bool:
        lowered = cleaned.lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        raise ValueError("expected boolean (true/false)")
    if expected_type is int:
        return int(cleaned)
    if expected_type is float:
        return float(cleaned)
    return cleaned


def _assign_nested(target: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def _build_config(data: Mapping[str, Any], source_path: Path) -> AppConfig:
    try:
        memory_cfg = data["memory"]
        threshold_percent = float(memory_cfg["warning_threshold_percent"])
        memory = MemorySettings(
            limit_bytes=parse_byte_size(memory_cfg["limit"]),
            warning_threshold=threshold_percent / 100,
        )
        query_cfg = data["query"]
        query = QuerySettings(
            auto_continue=bool(query_cfg["auto_continue"]),
            max_nesting_depth=int(query_cfg["max_nesting_depth"]),
        )
        export = ExportSettings(allow_csv=bool(data["export"]["allow_csv"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration structure: {exc}") from exc

    if memory.limit_bytes < 0:
        raise ConfigurationError("memory.limit must be zero (unbounded) or a positive size.")
    if not 0 < memory.warning_threshold <= 1:
        raise ConfigurationError("memory.warning_threshold_percent must be within (0, 100].")
    if query.max_nesting_depth < 1:
        raise ConfigurationError("query.max_nesting_depth must be at least 1.")

    return AppConfig(source_path=source_path, memory=memory, query=query, export=export)
