#!/usr/bin/env python3
from __future__ import annotations

import io
from pathlib import Path

import pandas as pd
import streamlit as st

from sheet_tally.aggregator import sum_total_column
from sheet_tally.errors import TallyError
from sheet_tally.gratuity import Gratuity, parse_gratuity
from sheet_tally.loader import ParsedTable, table_from_bytes
from sheet_tally.locator import HeaderLocation, require_total_column
from sheet_tally.policy import TallyPolicy
from sheet_tally.workbook import ReportTotals, build_workbook, compute_totals, summary_rows

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def rows_to_frame(table: ParsedTable) -> pd.DataFrame:
    """Pad ragged rows so the parsed table can be previewed as a grid."""
    width = max((len(row) for row in table.rows), default=0)
    padded = [list(row) + [""] * (width - len(row)) for row in table.rows]
    columns = [f"Column {i}" for i in range(1, width + 1)]
    return pd.DataFrame(padded, columns=columns, dtype=str)


def totals_frame(totals: ReportTotals, gratuity: Gratuity) -> pd.DataFrame:
    return pd.DataFrame(
        [{"Label": label, "Amount": f"${amount:,.2f}"} for label, amount in summary_rows(totals, gratuity)]
    )


def workbook_bytes(table: ParsedTable, totals: ReportTotals, gratuity: Gratuity) -> bytes:
    buffer = io.BytesIO()
    build_workbook(table, totals, gratuity).save(buffer)
    return buffer.getvalue()


def download_name(upload_name: str) -> str:
    return f"{Path(upload_name).stem}-processed.xlsx"


def tally_upload(
    raw: bytes,
    name: str,
    percentage: float,
    policy: TallyPolicy,
) -> tuple[ParsedTable, HeaderLocation, Gratuity, ReportTotals]:
    table = table_from_bytes(raw, name, policy=policy)
    location = require_total_column(table)
    subtotal = sum_total_column(table, location, policy=policy)
    gratuity = parse_gratuity(percentage)
    return table, location, gratuity, compute_totals(subtotal, gratuity)


def main() -> None:
    st.set_page_config(page_title="sheet-tally", layout="centered")
    st.title("sheet-tally")
    st.caption("Drop a CSV with a Total column, choose a gratuity, and download the report workbook.")

    upload = st.file_uploader("CSV file", type=["csv"])
    percentage = st.number_input("Gratuity percentage", min_value=0.0, value=20.0, step=1.0)
    strict_cells = st.checkbox("Fail on unreadable Total cells", value=False)
    strict_records = st.checkbox("Fail on empty CSV records", value=False)

    if upload is None:
        st.info("Supported here: .csv files with a header cell named exactly 'Total'.")
        return

    policy = TallyPolicy(lenient_cells=not strict_cells, skip_empty_records=not strict_records)
    try:
        table, location, gratuity, totals = tally_upload(upload.getvalue(), upload.name, percentage, policy)
    except TallyError as exc:
        st.error(str(exc))
        return

    if table.warnings:
        st.warning(" | ".join(table.warnings))
    st.caption(f"Header found on row {location.row_index + 1}, column {location.column_index + 1}.")
    st.dataframe(rows_to_frame(table), width="stretch", hide_index=True)
    st.dataframe(totals_frame(totals, gratuity), width="stretch", hide_index=True)

    try:
        data = workbook_bytes(table, totals, gratuity)
    except Exception as exc:
        st.error(f"An error occurred: {exc}")
        return
    st.download_button(
        "Download report",
        data=data,
        file_name=download_name(upload.name),
        mime=XLSX_MIME,
        width="stretch",
    )


if __name__ == "__main__":
    main()
