from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sheet_tally.errors import InputError
from sheet_tally.loader import ParsedTable
from sheet_tally.policy import TOTAL_LABEL


@dataclass(frozen=True)
class HeaderLocation:
    row_index: int
    column_index: int


def locate_total_column(table: ParsedTable, label: str = TOTAL_LABEL) -> Optional[HeaderLocation]:
    """
    Return the position of the first cell exactly equal to `label`.

    Rows are scanned top to bottom and cells left to right; the match is
    case-sensitive and untrimmed. Later rows that also carry the label are
    ignored. Returns None when no cell matches.
    """
    for row_index, row in enumerate(table.rows):
        for column_index, value in enumerate(row):
            if value == label:
                return HeaderLocation(row_index=row_index, column_index=column_index)
    return None


def require_total_column(table: ParsedTable, label: str = TOTAL_LABEL) -> HeaderLocation:
    location = locate_total_column(table, label)
    if location is None:
        raise InputError(f"The CSV file does not contain a '{label}' column.")
    return location
