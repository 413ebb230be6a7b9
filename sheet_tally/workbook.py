from __future__ import annotations

import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font

from sheet_tally.errors import OutputError
from sheet_tally.gratuity import Gratuity
from sheet_tally.loader import ParsedTable

SHEET_NAME = "Processed Data"
LABEL_COLUMN = 11   # K
VALUE_COLUMN = 12   # L
CURRENCY_FORMAT = "$#,##0.00"


@dataclass(frozen=True)
class ReportTotals:
    subtotal: float
    gratuity_amount: float
    final_total: float


def compute_totals(subtotal: float, gratuity: Gratuity) -> ReportTotals:
    gratuity_amount = subtotal * gratuity.rate
    return ReportTotals(
        subtotal=subtotal,
        gratuity_amount=gratuity_amount,
        final_total=subtotal + gratuity_amount,
    )


def summary_rows(totals: ReportTotals, gratuity: Gratuity) -> list[tuple[str, float]]:
    return [
        ("Grand Total", totals.subtotal),
        (f"{gratuity.label}% Gratuity", totals.gratuity_amount),
        ("Final Total", totals.final_total),
    ]


def _escape_control_characters(text: str) -> str:
    # XML 1.0 has no encoding for most C0 controls; use the OOXML _xHHHH_ escape
    return ILLEGAL_CHARACTERS_RE.sub(lambda match: f"_x{ord(match.group(0)):04X}_", text)


def _write_cell_verbatim(ws, row: int, column: int, text: str) -> None:
    cell = ws.cell(row=row, column=column, value=_escape_control_characters(text))
    # openpyxl reads a leading "=" as a formula; keep the source text instead
    if cell.data_type == "f":
        cell.data_type = "s"


def build_workbook(table: ParsedTable, totals: ReportTotals, gratuity: Gratuity) -> openpyxl.Workbook:
    """
    Copy every parsed row into the "Processed Data" sheet and append the
    Grand Total, gratuity and Final Total rows in columns K and L.

    The summary columns are fixed: on tables wider than ten columns they
    share columns with the source data.
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = SHEET_NAME

    for row_number, row in enumerate(table.rows, start=1):
        for column_number, text in enumerate(row, start=1):
            _write_cell_verbatim(ws, row_number, column_number, text)

    bold = Font(bold=True)
    first_summary_row = len(table.rows) + 1
    for offset, (label, amount) in enumerate(summary_rows(totals, gratuity)):
        row_number = first_summary_row + offset
        label_cell = ws.cell(row=row_number, column=LABEL_COLUMN, value=label)
        label_cell.font = bold
        value_cell = ws.cell(row=row_number, column=VALUE_COLUMN, value=amount)
        value_cell.font = bold
        value_cell.number_format = CURRENCY_FORMAT
    return wb


def _report_mode(output_path: Path) -> int:
    # mkstemp creates 0600; match what a plain open() would have produced
    if output_path.is_file():
        return stat.S_IMODE(output_path.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def save_workbook(wb: openpyxl.Workbook, output_path: Path) -> None:
    """
    Save to a temporary sibling, then move it over output_path.

    An existing file at output_path is replaced and keeps its permission
    bits; a new file gets the usual 0666 minus umask. If saving fails the
    destination is left untouched and the temporary file is removed.
    """
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{output_path.stem}-", suffix=output_path.suffix or ".xlsx", dir=output_path.parent
        )
    except OSError as exc:
        raise OutputError(f"Could not create {output_path}: {exc.strerror or exc}") from exc
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        os.chmod(tmp_path, _report_mode(output_path))
        wb.save(tmp_path)
        os.replace(tmp_path, output_path)
    except (OSError, ValueError) as exc:
        raise OutputError(f"Could not write {output_path}: {exc}") from exc
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def write_report(
    table: ParsedTable,
    totals: ReportTotals,
    gratuity: Gratuity,
    output_path: str | Path,
) -> Path:
    output_path = Path(output_path)
    wb = build_workbook(table, totals, gratuity)
    save_workbook(wb, output_path)
    return output_path
