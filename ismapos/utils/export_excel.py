"""Excel export of normalized records, plus saving report files downloaded from the backend."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping

from openpyxl import Workbook
from openpyxl.styles import Border, Font, Side
from openpyxl.utils import get_column_letter

from .export_csv import LAYOUTS

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
# xlsx files are zip archives
XLSX_MAGIC = b"PK\x03\x04"


def _auto_width(ws) -> None:
    for column_cells in ws.columns:
        column = get_column_letter(column_cells[0].column)
        max_length = max((len(str(c.value)) for c in column_cells if c.value is not None), default=0)
        ws.column_dimensions[column].width = min(max_length + 2, 50)


def export_records_to_excel(records: Iterable[Mapping[str, object]], filepath: str | Path, kind: str) -> None:
    """Write ``records`` using the ``sales``/``expenses``/``products`` layout."""

    title, headers, row = LAYOUTS[kind]
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(headers)
    thin = Border(
        left=Side(style="thin", color="DDDDDD"),
        right=Side(style="thin", color="DDDDDD"),
        top=Side(style="thin", color="DDDDDD"),
        bottom=Side(style="thin", color="DDDDDD"),
    )
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.border = thin
    for record in records:
        ws.append(row(record))
    for data_row in ws.iter_rows(min_row=2, max_row=ws.max_row):
        for cell in data_row:
            cell.border = thin
    _auto_width(ws)
    wb.save(filepath)


def _save_download(content: bytes, filepath: str | Path, magic: bytes, kind: str) -> Path:
    if not content.startswith(magic):
        logger.warning("Report export did not look like %s (%d bytes)", kind, len(content))
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def save_pdf(content: bytes, filepath: str | Path) -> Path:
    """Store a PDF downloaded from a report export endpoint."""

    return _save_download(content, filepath, PDF_MAGIC, "a PDF")


def save_workbook(content: bytes, filepath: str | Path) -> Path:
    """Store an xlsx workbook rendered by the backend."""

    return _save_download(content, filepath, XLSX_MAGIC, "an xlsx workbook")
