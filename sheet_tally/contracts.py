"""Versioned machine-readable summaries of sheet-tally runs."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

CONTRACT_VERSIONS = {
    "sheet_tally.run_summary": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    tool_version: str,
    input_path: Path,
    status: str = "ok",
    output_path: Path | None = None,
    header: dict[str, int] | None = None,
    totals: dict[str, float] | None = None,
    gratuity_percentage: float | None = None,
    warnings: list[str] | None = None,
    error: str | None = None,
) -> dict[str, Any]:
    contract = build_contract("sheet_tally.run_summary")
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool": "sheet-tally",
        "tool_version": tool_version,
        "command": "total",
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path),
        "output_file": str(output_path) if output_path else None,
        "header": header,
        "gratuity_percentage": gratuity_percentage,
        "totals": totals,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "error": error,
    }
