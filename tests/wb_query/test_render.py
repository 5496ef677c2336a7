from __future__ import annotations

import io

import pytest

from wb_cli.shared.exceptions import QueryError
from wb_cli.wb_query import render
from wb_cli.wb_query.records import to_record_set
from wb_cli.wb_query.types import (
    AccumulatedResult,
    Grid,
    MatrixOutcome,
    PivotFields,
    QueryRequest,
    ResultStatus,
    ViewKind,
)


class StubLogger:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def debug(self, message: str) -> None:
        self.messages.append(("debug", message))


def _result(rows: list[dict[str, object]], *, size: int | None = None, status=ResultStatus.COMPLETE) -> AccumulatedResult:
    records = to_record_set(rows)
    return AccumulatedResult(status=status, records=records, size=len(records) if size is None else size, elapsed=0.5)


def test_status_messages() -> None:
    assert render.render_count_result(1) == "Query would return 1 record."
    assert render.render_count_result(3) == "Query would return 3 records."
    assert render.render_empty_result() == "Sorry, no records returned."
    assert "120 rows" in render.render_partial_result_warning(120)


def test_result_summary() -> None:
    result = _result([{"Name": "a"}, {"Name": "b"}, {"Name": "c"}], size=10)

    assert render.render_result_summary(result) == "Returned records 1 - 3 of 10 total records in 0.500 seconds:"


def test_render_view_dispatches_on_kind() -> None:
    result = _result([{"Stage": "Won", "Owner": "Sam", "Amount": 10}])

    assert isinstance(render.render_view(result, ViewKind.TABLE), Grid)
    outcome = render.render_view(result, "matrix", PivotFields(column="Stage", row="Owner"))
    assert isinstance(outcome, MatrixOutcome)
    assert outcome.matrix is not None


def test_render_view_requires_pivot_for_matrix() -> None:
    with pytest.raises(QueryError):
        render.render_view(_result([{"Name": "a"}]), ViewKind.MATRIX)


def test_render_view_rejects_count_results() -> None:
    with pytest.raises(QueryError):
        render.render_view(AccumulatedResult(status=ResultStatus.COUNT, count=3, size=3), ViewKind.TABLE)


def test_grid_html_escapes_values_and_nests_tables() -> None:
    result = _result(
        [
            {
                "Name": "<b>Acme</b>",
                "Contacts": {"size": 1, "done": True, "records": [{"LastName": "O'Neil"}]},
            }
        ]
    )

    html = render.grid_to_html(render.render_view(result, ViewKind.TABLE))

    assert 'id="query_results"' in html
    assert "&lt;b&gt;Acme&lt;/b&gt;" in html
    assert "<b>Acme</b>" not in html
    assert html.count("<table") == 2
    assert "O&#39;Neil" in html


def test_matrix_html_stacks_items() -> None:
    result = _result(
        [
            {"r": "X", "c": "Y", "v": 1},
            {"r": "X", "c": "Y", "v": 2},
        ]
    )
    outcome = render.render_view(result, ViewKind.MATRIX, PivotFields(column="c", row="r"))
    assert outcome.matrix is not None

    html = render.matrix_to_html(outcome.matrix)

    assert 'id="query_results_matrix"' in html
    assert html.count('class="matrixItem"') == 2
    assert "<em>v:</em>" in html


def test_display_count_result_logs_info() -> None:
    logger = StubLogger()
    buffer = io.StringIO()

    render.display_query_results(
        AccumulatedResult(status=ResultStatus.COUNT, count=2, size=2),
        QueryRequest(query="SELECT count() FROM Account"),
        output_format="console",
        logger=logger,
        stream=buffer,
    )

    assert logger.messages == [("info", "Query would return 2 records.")]
    assert buffer.getvalue() == ""


def test_display_empty_result_warns() -> None:
    logger = StubLogger()

    render.display_query_results(
        AccumulatedResult(status=ResultStatus.EMPTY),
        QueryRequest(query="SELECT Id FROM Account"),
        output_format="console",
        logger=logger,
        stream=io.StringIO(),
    )

    assert logger.messages == [("warning", "Sorry, no records returned.")]


def test_display_matrix_without_match_warns() -> None:
    logger = StubLogger()
    buffer = io.StringIO()
    request = QueryRequest(query="SELECT Name FROM Account", view=ViewKind.MATRIX, pivot=PivotFields("Stage", "Owner"))

    render.display_query_results(
        _result([{"Name": "Acme"}]),
        request,
        output_format="html",
        logger=logger,
        stream=buffer,
    )

    assert ("warning", "No records match matrix column and row selections.") in logger.messages
    assert buffer.getvalue() == ""


def test_display_table_prints_to_console_stream() -> None:
    logger = StubLogger()
    buffer = io.StringIO()

    render.display_query_results(
        _result([{"Name": "Acme"}, {"Name": "Globex"}], status=ResultStatus.MORE),
        QueryRequest(query="SELECT Name FROM Account"),
        output_format="console",
        logger=logger,
        stream=buffer,
    )

    output = buffer.getvalue()
    assert "Acme" in output
    assert "Globex" in output
    assert any("Returned records 1 - 2" in message for _, message in logger.messages)
    assert any("More records are available" in message for _, message in logger.messages)
