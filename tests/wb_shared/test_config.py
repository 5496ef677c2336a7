from __future__ import annotations

from pathlib import Path

import pytest

from wb_cli.shared import paths
from wb_cli.shared.config import AppConfig, load_config, parse_byte_size
from wb_cli.shared.exceptions import ConfigurationError


def _env(tmp_path: Path, **extra: str) -> dict[str, str]:
    env = {paths.CONFIG_DIR_ENV: str(tmp_path / "config")}
    env.update(extra)
    return env


def test_load_config_defaults(tmp_path: Path) -> None:
    cfg = load_config(env=_env(tmp_path))

    assert isinstance(cfg, AppConfig)
    assert cfg.source_path == tmp_path / "config" / "config.yaml"
    assert cfg.memory.limit_bytes == 512 * 1024 * 1024
    assert cfg.memory.warning_threshold == pytest.approx(0.8)
    assert cfg.query.auto_continue is False
    assert cfg.query.max_nesting_depth == 5
    assert cfg.export.allow_csv is True


def test_load_config_from_yaml(tmp_path: Path) -> None:
    cfg_file = tmp_path / "wb.yaml"
    cfg_file.write_text(
        """
        memory:
          limit: 1G
          warning_threshold_percent: 50
        query:
          auto_continue: true
        export:
          allow_csv: false
        """,
        encoding="utf-8",
    )

    cfg = load_config(config_path=cfg_file, env=_env(tmp_path))

    assert cfg.source_path == cfg_file
    assert cfg.memory.limit_bytes == 1024**3
    assert cfg.memory.warning_threshold == pytest.approx(0.5)
    assert cfg.query.auto_continue is True
    assert cfg.query.max_nesting_depth == 5
    assert cfg.export.allow_csv is False


def test_load_config_env_overrides(tmp_path: Path) -> None:
    env = _env(
        tmp_path,
        WBCLI_MEMORY_LIMIT="0",
        WBCLI_MEMORY_WARNING_THRESHOLD="95",
        WBCLI_AUTO_CONTINUE="yes",
        WBCLI_MAX_NESTING_DEPTH="2",
        WBCLI_ALLOW_CSV_EXPORT="off",
    )

    cfg = load_config(env=env)

    assert cfg.memory.limit_bytes == 0
    assert cfg.memory.warning_threshold == pytest.approx(0.95)
    assert cfg.query.auto_continue is True
    assert cfg.query.max_nesting_depth == 2
    assert cfg.export.allow_csv is False


def test_config_file_env_override_points_at_file(tmp_path: Path) -> None:
    cfg_file = tmp_path / "elsewhere.yaml"
    cfg_file.write_text("query:\n  max_nesting_depth: 3\n", encoding="utf-8")

    cfg = load_config(env={paths.CONFIG_FILE_ENV: str(cfg_file)})

    assert cfg.query.max_nesting_depth == 3


def test_invalid_env_boolean_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_config(env=_env(tmp_path, WBCLI_AUTO_CONTINUE="sometimes"))


def test_invalid_yaml_root_raises(tmp_path: Path) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("- just a list", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_config(config_path=cfg_file, env={})


@pytest.mark.parametrize(
    "contents",
    [
        "memory:\n  warning_threshold_percent: 150\n",
        "memory:\n  limit: plenty\n",
        "query:\n  max_nesting_depth: 0\n",
    ],
)
def test_invalid_values_raise(tmp_path: Path, contents: str) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(contents, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_config(config_path=cfg_file, env={})


def test_parse_byte_size() -> None:
    assert parse_byte_size("512M") == 512 * 1024**2
    assert parse_byte_size("2k") == 2048
    assert parse_byte_size("10 GB") == 10 * 1024**3
    assert parse_byte_size(4096) == 4096
    assert parse_byte_size("-1") == 0
    with pytest.raises(ValueError):
        parse_byte_size("lots")
