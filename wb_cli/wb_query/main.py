"""wb-query CLI entrypoint."""

from __future__ import annotations

from pathlib import Path

import click

from wb_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context
from wb_cli.shared.exceptions import PageFetchError
from wb_cli.wb_export import EXPORT_DISABLED_MESSAGE, default_export_filename, export_query_csv

from . import paginator, render
from .replay import ReplayPageSource
from .types import CsvOutcome, PivotFields, ViewKind

VIEW_CHOICES = tuple(kind.value for kind in ViewKind)
OUTPUT_FORMAT_CHOICES = ("console", "html")


@click.group(help="Page through recorded query results and render them.")
@common_cli_options
@handle_cli_errors
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for wb-query commands."""
    cli_ctx.logger.debug(f"wb-query initialised with config {cli_ctx.config.source_path}.")


@cli.command("show")
@click.argument("dump", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--view", type=click.Choice(VIEW_CHOICES), default="table", show_default=True)
@click.option("--matrix-cols", "matrix_cols", type=str, help="Field whose values become matrix columns.")
@click.option("--matrix-rows", "matrix_rows", type=str, help="Field whose values become matrix rows.")
@click.option(
    "--format",
    "output_format",
    default="console",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@click.option(
    "--auto-continue/--no-auto-continue",
    "auto_continue",
    default=None,
    help="Drain every page instead of stopping after the first (defaults to config).",
)
@pass_cli_context
@handle_cli_errors
def show(
    cli_ctx: CLIContext,
    dump: Path,
    view: str,
    matrix_cols: str | None,
    matrix_rows: str | None,
    output_format: str,
    auto_continue: bool | None,
) -> None:
    """Render a recorded query response as a table or matrix."""
    view_kind = ViewKind(view)
    pivot: PivotFields | None = None
    if view_kind is ViewKind.MATRIX:
        if not matrix_cols or not matrix_rows:
            raise click.ClickException("Matrix view requires --matrix-cols and --matrix-rows.")
        pivot = PivotFields(column=matrix_cols, row=matrix_rows)

    config = cli_ctx.config if auto_continue is None else cli_ctx.config.with_auto_continue(auto_continue)
    source = ReplayPageSource.from_file(dump)
    request = source.request(view=view_kind, pivot=pivot)
    cli_ctx.logger.debug(f"Replaying {source!r} for query: {request.query}")

    try:
        result = paginator.run_query(request, source, config=config, logger=cli_ctx.logger)
    except PageFetchError as exc:
        if exc.partial is not None and len(exc.partial):
            render.display_query_results(
                exc.partial,
                request,
                output_format=output_format,
                logger=cli_ctx.logger,
                max_depth=config.query.max_nesting_depth,
            )
        raise

    render.display_query_results(
        result,
        request,
        output_format=output_format,
        logger=cli_ctx.logger,
        max_depth=config.query.max_nesting_depth,
    )


@cli.command("export")
@click.argument("dump", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output",
    type=click.Path(path_type=Path),
    help="CSV file or directory (default stdout); directories get a timestamped export name.",
)
@pass_cli_context
@handle_cli_errors
def export(cli_ctx: CLIContext, dump: Path, output: Path | None) -> None:
    """Stream every recorded page of a query response as CSV."""
    source = ReplayPageSource.from_file(dump)
    destination = _resolve_destination(output)

    report = export_query_csv(
        source(None),
        destination if destination is not None else click.get_text_stream("stdout"),
        fetch_page=source,
        config=cli_ctx.config,
        logger=cli_ctx.logger,
    )
    if report.outcome is CsvOutcome.REFUSED:
        raise click.ClickException(EXPORT_DISABLED_MESSAGE)
    if report.outcome is CsvOutcome.EMPTY:
        return

    status = report.status.value if report.status else "n/a"
    cli_ctx.logger.debug(f"Exported {report.rows} record(s) (status: {status}).")
    if destination is not None:
        cli_ctx.logger.success(f"Exported {report.rows} record(s) → {destination}")


def _resolve_destination(output: Path | None) -> Path | None:
    if output is None:
        return None
    output = output.expanduser()
    if output.is_dir():
        return output / default_export_filename()
    return output


def main() -> None:
    """Entry point for console_scripts."""
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
