"""CSV export of ranked companies."""

from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Union

from lead_scanner.domain.models import Company
from lead_scanner.logging import get_logger
from lead_scanner.utils.timestamps import format_date

logger = get_logger(__name__, component="export")

COLUMNS = [
    "Name",
    "City",
    "PostalCode",
    "CreatedAt",
    "HasWebsite",
    "WebsiteUrl",
    "SectorCode",
    "SectorLabel",
    "Email",
    "Phone",
    "Score",
    "RegistryId",
]

# Free-text columns that are always wrapped in quotes
ALWAYS_QUOTED = frozenset({"Name", "City", "SectorLabel"})

_SPECIAL_CHARS = (",", '"', "\n", "\r")


class ExportError(Exception):
    """Writing the export file failed."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


# csv.writer applies one quoting mode to every cell of a row; this format
# always quotes the free-text columns and quotes the others only when needed.
def quote_field(value: Optional[str], always: bool = False) -> str:
    """Quote a text field, doubling embedded quotes.

    Fields not marked ``always`` are only quoted when they contain a comma,
    a quote or a line break.
    """
    text = value or ""
    if always or any(char in text for char in _SPECIAL_CHARS):
        return '"' + text.replace('"', '""') + '"'
    return text


def has_website_cell(company: Company, literal: bool = False) -> str:
    """Render the HasWebsite column.

    By default the column keeps its historical meaning, "Yes" = no confirmed
    website (an opportunity). ``literal=True`` writes "Yes" when the website
    is live.
    """
    if literal:
        return "Yes" if company.has_website else "No"
    return "No" if company.has_website else "Yes"


def _row(company: Company, literal_has_website: bool) -> List[str]:
    cells = {
        "Name": company.name,
        "City": company.city,
        "PostalCode": company.postal_code,
        "CreatedAt": format_date(company.created_at),
        "HasWebsite": has_website_cell(company, literal_has_website),
        "WebsiteUrl": company.website_url,
        "SectorCode": company.sector_code,
        "SectorLabel": company.sector_label,
        "Email": company.email,
        "Phone": company.phone,
        "Score": str(company.score),
        "RegistryId": company.registry_id,
    }
    return [quote_field(cells[column], always=column in ALWAYS_QUOTED) for column in COLUMNS]


def to_delimited_text(companies: Iterable[Company], literal_has_website: bool = False) -> str:
    """Serialize companies to CSV text: header row, then one row per company.

    Rows are joined with ``\\n``; there is no trailing newline.
    """
    lines = [",".join(COLUMNS)]
    lines.extend(",".join(_row(company, literal_has_website)) for company in companies)
    return "\n".join(lines)


def export_filename(label: str, day: date) -> str:
    """``leads-<label>-<YYYY-MM-DD>.csv``"""
    return f"leads-{label}-{format_date(day)}.csv"


def write_export(
    companies: List[Company],
    output_dir: Union[str, Path],
    label: str,
    day: date,
    literal_has_website: bool = False,
) -> Path:
    """Write the export file and return its path.

    The output directory is created if missing.

    Raises:
        ExportError: If the directory or file cannot be written
    """
    directory = Path(output_dir)
    path = directory / export_filename(label, day)
    content = to_delimited_text(companies, literal_has_website=literal_has_website)

    try:
        directory.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        logger.error(
            f"Failed to write export file {path}: {e}",
            extra={"event": "export.write.failed", "path": str(path), "error_type": type(e).__name__},
        )
        raise ExportError(f"Failed to write export file {path}: {e}", path=path) from e

    logger.info(
        "Export written",
        extra={"event": "export.write.succeeded", "path": str(path), "rows": len(companies)},
    )
    return path
