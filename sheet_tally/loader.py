"""
loader.py: CSV reader for sheet-tally

Public API:
    table = load_table("path/to/receipts.csv")
    rows  = table.rows

Cells are kept exactly as written in the file: no trimming, no type
coercion. Rows may be ragged.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import chardet

from sheet_tally.errors import InputError
from sheet_tally.policy import DEFAULT_POLICY, DELIMITER, TallyPolicy

Row = tuple[str, ...]
WarningHandler = Callable[[str], None]


@dataclass(frozen=True)
class ParsedTable:
    path: Path
    rows: tuple[Row, ...]
    detected_encoding: str
    encoding_info: dict = field(default_factory=dict)
    warnings: tuple[str, ...] = ()
    line_numbers: tuple[int, ...] = ()

    def line_number(self, row_index: int) -> int:
        """1-based line in the source file where row row_index starts."""
        if row_index < len(self.line_numbers):
            return self.line_numbers[row_index]
        return row_index + 1

    def __len__(self) -> int:
        return len(self.rows)


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding_info(raw: bytes) -> dict:
    """
    Detect encoding from raw bytes.

    Returns dict with: detected, confidence, is_utf8.
    """
    result     = chardet.detect(raw)
    detected   = result.get("encoding") or "unknown"
    confidence = round(result.get("confidence") or 0.0, 2)
    is_utf8    = detected.upper().replace("-", "").replace("_", "") in ("UTF8", "UTF8SIG", "ASCII")
    return {
        "detected":   detected,
        "confidence": confidence,
        "is_utf8":    is_utf8,
    }


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try latin-1
      4. CP1252 with replace (never crashes)

    Embedded null bytes are dropped and a leading BOM is removed.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc or enc == "unknown":
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    text = "\n".join(decoded_lines)
    if text.startswith("\ufeff"):
        text = text[1:]
    return text


# ══════════════════════════════════════════════════════════════════════════════
# RECORD PARSING
# ══════════════════════════════════════════════════════════════════════════════

def parse_rows(
    text: str,
    policy: TallyPolicy = DEFAULT_POLICY,
    on_warning: Optional[WarningHandler] = None,
) -> tuple[list[Row], list[str], list[int]]:
    """
    Split decoded text into rows of fields with standard CSV quoting.

    Quoted fields may hold commas, newlines, and doubled quotes. A record
    with no fields is skipped and reported as a warning, or raises
    InputError when the policy does not skip empty records.

    Returns (rows, warnings, line_numbers), where line_numbers[i] is the
    1-based line on which rows[i] starts.
    """
    rows: list[Row] = []
    warnings: list[str] = []
    line_numbers: list[int] = []
    reader = csv.reader(
        io.StringIO(text, newline=""),
        delimiter=DELIMITER,
        quotechar='"',
        doublequote=True,
        strict=True,
    )
    while True:
        start_line = reader.line_num + 1
        try:
            fields = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            raise InputError(f"Could not parse CSV at line {reader.line_num}: {exc}") from exc

        if fields:
            rows.append(tuple(fields))
            line_numbers.append(start_line)
            continue

        message = f"Line {reader.line_num}: empty record skipped"
        if not policy.skip_empty_records:
            raise InputError(f"Line {reader.line_num}: empty record")
        warnings.append(message)
        if on_warning is not None:
            on_warning(message)
    return rows, warnings, line_numbers


def load_table(
    path: str | Path,
    policy: Optional[TallyPolicy] = None,
    on_warning: Optional[WarningHandler] = None,
) -> ParsedTable:
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise InputError(f"Could not read {path}: {exc.strerror or exc}") from exc
    return table_from_bytes(raw, path, policy=policy, on_warning=on_warning)


def table_from_bytes(
    raw: bytes,
    path: str | Path,
    policy: Optional[TallyPolicy] = None,
    on_warning: Optional[WarningHandler] = None,
) -> ParsedTable:
    """Parse CSV content that is already in memory, e.g. an upload."""
    policy = policy or DEFAULT_POLICY
    enc_info = _detect_encoding_info(raw)
    enc      = enc_info["detected"] if enc_info["detected"] != "unknown" else "utf-8"
    text     = _read_text_safely(raw, enc)
    rows, warnings, line_numbers = parse_rows(text, policy=policy, on_warning=on_warning)

    return ParsedTable(
        path=Path(path),
        rows=tuple(rows),
        detected_encoding=enc,
        encoding_info=enc_info,
        warnings=tuple(warnings),
        line_numbers=tuple(line_numbers),
    )
