"""
pipeline.py: one run of sheet-tally, from CSV to report workbook

    run = TallyRun("receipts.csv", "receipts-processed.xlsx")
    context = run.run(20)          # or a Gratuity, or a callable that prompts

Stages: parse the CSV, find the "Total" header, sum the column, collect the
gratuity, write the workbook. Each run carries its own RunContext; nothing is
shared between runs. A failing stage sets the context to ERROR, stores the
error and re-raises it. Failures before the write stage never create the
output file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from sheet_tally.aggregator import sum_total_column
from sheet_tally.errors import InputError, OutputError, TallyError
from sheet_tally.gratuity import Gratuity, parse_gratuity
from sheet_tally.loader import ParsedTable, WarningHandler, load_table
from sheet_tally.locator import HeaderLocation, require_total_column
from sheet_tally.policy import DEFAULT_POLICY, TallyPolicy
from sheet_tally.workbook import ReportTotals, compute_totals, write_report

INVALID_FILE_MESSAGE = "Please select a valid CSV file."

GratuityValue = Union[Gratuity, float, int, str]
GratuitySource = Union[GratuityValue, Callable[[], GratuityValue]]


class PipelineState(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    PARSED = "parsed"
    HEADER_LOCATED = "header_located"
    GRATUITY_COLLECTED = "gratuity_collected"
    REPORT_WRITTEN = "report_written"
    ERROR = "error"


@dataclass
class RunContext:
    input_path: Path
    output_path: Path
    policy: TallyPolicy = DEFAULT_POLICY
    state: PipelineState = PipelineState.IDLE
    table: Optional[ParsedTable] = None
    location: Optional[HeaderLocation] = None
    subtotal: Optional[float] = None
    gratuity: Optional[Gratuity] = None
    totals: Optional[ReportTotals] = None
    warnings: list[str] = field(default_factory=list)
    error: Optional[TallyError] = None

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.REPORT_WRITTEN


def resolve_gratuity(source: GratuitySource) -> Gratuity:
    value = source() if callable(source) else source
    return parse_gratuity(value)


class TallyRun:
    def __init__(
        self,
        input_path: str | Path,
        output_path: str | Path,
        *,
        policy: Optional[TallyPolicy] = None,
        on_warning: Optional[WarningHandler] = None,
    ) -> None:
        self.context = RunContext(
            input_path=Path(input_path),
            output_path=Path(output_path),
            policy=policy or DEFAULT_POLICY,
        )
        self._on_warning = on_warning

    def _warn(self, message: str) -> None:
        self.context.warnings.append(message)
        if self._on_warning is not None:
            self._on_warning(message)

    def run(self, gratuity_source: GratuitySource) -> RunContext:
        ctx = self.context
        ctx.state = PipelineState.FILE_SELECTED
        try:
            if not ctx.input_path.is_file():
                raise InputError(INVALID_FILE_MESSAGE)

            ctx.table = load_table(ctx.input_path, policy=ctx.policy, on_warning=self._warn)
            ctx.state = PipelineState.PARSED

            ctx.location = require_total_column(ctx.table)
            ctx.state = PipelineState.HEADER_LOCATED

            ctx.subtotal = sum_total_column(ctx.table, ctx.location, policy=ctx.policy)
            ctx.gratuity = resolve_gratuity(gratuity_source)
            ctx.state = PipelineState.GRATUITY_COLLECTED

            ctx.totals = compute_totals(ctx.subtotal, ctx.gratuity)
            self._write(ctx)
            ctx.state = PipelineState.REPORT_WRITTEN
        except TallyError as exc:
            ctx.state = PipelineState.ERROR
            ctx.error = exc
            raise
        return ctx

    @staticmethod
    def _write(ctx: RunContext) -> None:
        try:
            write_report(ctx.table, ctx.totals, ctx.gratuity, ctx.output_path)
        except TallyError:
            raise
        except Exception as exc:
            raise OutputError(str(exc)) from exc


def run_pipeline(
    input_path: str | Path,
    output_path: str | Path,
    gratuity_source: GratuitySource,
    *,
    policy: Optional[TallyPolicy] = None,
    on_warning: Optional[WarningHandler] = None,
) -> RunContext:
    return TallyRun(input_path, output_path, policy=policy, on_warning=on_warning).run(gratuity_source)
