"""CSV export of the ranked company list."""

from .service import (
    COLUMNS,
    ExportError,
    export_filename,
    has_website_cell,
    quote_field,
    to_delimited_text,
    write_export,
)

__all__ = [
    "COLUMNS",
    "ExportError",
    "export_filename",
    "has_website_cell",
    "quote_field",
    "to_delimited_text",
    "write_export",
]
