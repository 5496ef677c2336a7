"""Public exports for the wb-export package."""

from .exporter import (
    EXPORT_DISABLED_MESSAGE,
    NOTHING_TO_EXPORT_MESSAGE,
    CsvExportReport,
    default_export_filename,
    export_columns,
    export_query_csv,
    stream_csv,
)

__all__ = [
    "EXPORT_DISABLED_MESSAGE",
    "NOTHING_TO_EXPORT_MESSAGE",
    "CsvExportReport",
    "default_export_filename",
    "export_columns",
    "export_query_csv",
    "stream_csv",
]
