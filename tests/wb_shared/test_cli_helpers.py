from __future__ import annotations

from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from wb_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors
from wb_cli.shared.config import AppConfig, ExportSettings, MemorySettings, QuerySettings
from wb_cli.shared.exceptions import ConfigurationError, PageFetchError, WorkbenchError


def _stub_config(path: Path) -> AppConfig:
    return AppConfig(
        source_path=path,
        memory=MemorySettings(limit_bytes=0, warning_threshold=0.8),
        query=QuerySettings(auto_continue=False, max_nesting_depth=5),
        export=ExportSettings(allow_csv=True),
    )


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_common_cli_options_builds_context(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner, tmp_path: Path
) -> None:
    recorded: dict[str, str | None] = {}

    def fake_load_config(config_path: str | None) -> AppConfig:
        recorded["config_path"] = config_path
        return _stub_config(tmp_path / "wb.yaml")

    monkeypatch.setattr("wb_cli.shared.cli.load_config", fake_load_config)

    @click.command()
    @common_cli_options
    def sample(cli_ctx: CLIContext) -> None:
        click.echo(f"verbose={cli_ctx.verbose} source={cli_ctx.config.source_path.name}")

    result = runner.invoke(sample, ["--config", "custom.yaml", "--verbose"])

    assert result.exit_code == 0, result.output
    assert "verbose=True source=wb.yaml" in result.output
    assert recorded["config_path"] == "custom.yaml"


def test_common_cli_options_reports_configuration_errors(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner
) -> None:
    def broken_load_config(config_path: str | None) -> AppConfig:
        raise ConfigurationError("bad memory limit")

    monkeypatch.setattr("wb_cli.shared.cli.load_config", broken_load_config)

    @click.command()
    @common_cli_options
    def sample(cli_ctx: CLIContext) -> None:  # pragma: no cover - never reached
        click.echo("unreachable")

    result = runner.invoke(sample, [])

    assert result.exit_code == 1
    assert "bad memory limit" in result.output


def test_handle_cli_errors_wraps_known_exceptions() -> None:
    @handle_cli_errors
    def boom() -> None:
        raise WorkbenchError("boom")

    with pytest.raises(click.ClickException) as excinfo:
        boom()
    assert str(excinfo.value) == "boom"


def test_handle_cli_errors_prefixes_remote_error_codes() -> None:
    @handle_cli_errors
    def fetch() -> None:
        raise PageFetchError("query timed out", code="QUERY_TIMEOUT")

    with pytest.raises(click.ClickException) as excinfo:
        fetch()
    assert str(excinfo.value) == "[QUERY_TIMEOUT] query timed out"


def test_handle_cli_errors_formats_configuration_errors() -> None:
    @handle_cli_errors
    def misconfigured() -> None:
        raise ConfigurationError("missing value")

    with pytest.raises(click.ClickException) as excinfo:
        misconfigured()
    assert "Configuration error" in str(excinfo.value)


def test_page_fetch_error_flags_known_codes() -> None:
    assert PageFetchError("x", code="MALFORMED_QUERY").known is True
    assert PageFetchError("x", code="SERVER_UNAVAILABLE").known is False
    assert PageFetchError("x").known is False


def test_handle_cli_errors_marks_unrecognised_remote_codes() -> None:
    @handle_cli_errors
    def fetch() -> None:
        raise PageFetchError("Unknown query locator '01g-9'.", code="INVALID_QUERY_LOCATOR")

    with pytest.raises(click.ClickException) as excinfo:
        fetch()
    assert str(excinfo.value) == "Remote store error [INVALID_QUERY_LOCATOR]: Unknown query locator '01g-9'."


def test_handle_cli_errors_reports_uncoded_fetch_failures() -> None:
    @handle_cli_errors
    def fetch() -> None:
        raise PageFetchError("connection reset")

    with pytest.raises(click.ClickException) as excinfo:
        fetch()
    assert str(excinfo.value) == "Remote store error: connection reset"
