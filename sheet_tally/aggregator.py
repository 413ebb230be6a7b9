from __future__ import annotations

import math
import re
from typing import Optional

from sheet_tally.errors import InputError
from sheet_tally.loader import ParsedTable
from sheet_tally.locator import HeaderLocation
from sheet_tally.policy import CURRENCY_SYMBOL, DEFAULT_POLICY, TallyPolicy

PLAIN_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
GROUPED_NUMBER_RE = re.compile(r"^[+-]?\d{1,3}(?:,\d{3})+(?:\.\d*)?$")
SIGN_BEFORE_SYMBOL_RE = re.compile(r"^([+-])\s*" + re.escape(CURRENCY_SYMBOL) + r"(.*)$", re.DOTALL)


def parse_amount(text: str) -> Optional[float]:
    """
    Parse a Total cell such as "$10.00", "-$5.00", "1,234.50" or "-3".

    Leading and trailing "$" are stripped; a sign written in front of the
    "$" is kept. Thousands separators are only accepted in properly grouped
    positions. Returns None for anything that is not a finite number.
    """
    cleaned = text.strip()
    sign = ""
    match = SIGN_BEFORE_SYMBOL_RE.match(cleaned)
    if match:
        sign, cleaned = match.group(1), match.group(2)
    cleaned = cleaned.strip().strip(CURRENCY_SYMBOL).strip()
    if sign:
        if cleaned[:1] in ("+", "-"):
            return None
        cleaned = sign + cleaned
    if PLAIN_NUMBER_RE.match(cleaned):
        value = float(cleaned)
    elif GROUPED_NUMBER_RE.match(cleaned):
        value = float(cleaned.replace(",", ""))
    else:
        return None
    if not math.isfinite(value):
        return None
    return value


def sum_total_column(
    table: ParsedTable,
    location: HeaderLocation,
    policy: Optional[TallyPolicy] = None,
) -> float:
    """Sum the Total column on every row below the header row."""
    policy = policy or DEFAULT_POLICY
    subtotal = 0.0
    column = location.column_index
    for row_index in range(location.row_index + 1, len(table.rows)):
        row = table.rows[row_index]
        if len(row) <= column:
            continue
        value = parse_amount(row[column])
        if value is None:
            if policy.lenient_cells:
                continue
            raise InputError(
                f"Line {table.line_number(row_index)}: could not read {row[column]!r} "
                "in the Total column as a number."
            )
        subtotal += value
    return subtotal
