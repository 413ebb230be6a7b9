from __future__ import annotations

import argparse
import json
import os
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sheet_tally import __version__ as TOOL_VERSION
from sheet_tally.contracts import build_run_summary
from sheet_tally.errors import InputError, OutputError, TallyError, ValidationError
from sheet_tally.gratuity import parse_gratuity, prompt_gratuity
from sheet_tally.pipeline import RunContext, TallyRun
from sheet_tally.policy import TallyPolicy
from sheet_tally.workbook import summary_rows

OUTPUT_FORMATS = {".xlsx"}

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_INPUT_ERROR = 2
EXIT_VALIDATION_ERROR = 3
EXIT_OUTPUT_ERROR = 4


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class SheetTallyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get("SHEET_TALLY_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(input_path: Path) -> Path:
    return Path.cwd() / "sheet-tally-output" / f"{input_path.stem}-{timestamp_token()}"


def determine_output_path(args: argparse.Namespace, input_path: Path) -> Path:
    if args.output_flag and args.output_positional:
        raise CliError("Use either positional output or --output, not both.", EXIT_COMMAND_ERROR)
    explicit = args.output_flag or args.output_positional
    if explicit:
        output_path = Path(explicit)
    else:
        out_dir = Path(args.out_dir) if args.out_dir else default_output_dir(input_path)
        output_path = out_dir / f"{input_path.stem}-processed.xlsx"
    if output_path.suffix.lower() not in OUTPUT_FORMATS:
        raise CliError(
            f"Unsupported output type '{output_path.suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(OUTPUT_FORMATS))}",
            EXIT_COMMAND_ERROR,
        )
    return output_path


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json_dumps(payload), encoding="utf-8")


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, InputError):
        return EXIT_INPUT_ERROR
    if isinstance(exc, ValidationError):
        return EXIT_VALIDATION_ERROR
    if isinstance(exc, OutputError):
        return EXIT_OUTPUT_ERROR
    return EXIT_COMMAND_ERROR


def error_message(exc: Exception) -> str:
    if isinstance(exc, OutputError):
        return f"An error occurred: {exc}"
    return str(exc)


def format_currency(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def summary_payload(context: RunContext) -> dict[str, Any]:
    header = None
    if context.location is not None:
        header = {"row": context.location.row_index + 1, "column": context.location.column_index + 1}
    totals = None
    if context.totals is not None:
        totals = {
            "subtotal": context.totals.subtotal,
            "gratuity_amount": context.totals.gratuity_amount,
            "final_total": context.totals.final_total,
        }
    return build_run_summary(
        tool_version=TOOL_VERSION,
        input_path=context.input_path,
        status="ok" if context.succeeded else "error",
        output_path=context.output_path if context.succeeded else None,
        header=header,
        totals=totals,
        gratuity_percentage=context.gratuity.percentage if context.gratuity else None,
        warnings=context.warnings,
        error=error_message(context.error) if context.error else None,
    )


def render_total_text(context: RunContext) -> str:
    lines = [
        "sheet-tally total",
        f"Input: {context.input_path}",
        f"Output: {context.output_path}",
        f"Rows: {len(context.table.rows)}",
        f"Header: row {context.location.row_index + 1}, column {context.location.column_index + 1}",
    ]
    for label, amount in summary_rows(context.totals, context.gratuity):
        lines.append(f"{label}: {format_currency(amount)}")
    return "\n".join(lines) + "\n"


def open_in_default_app(path: Path) -> None:
    if sys.platform.startswith("win"):
        os.startfile(str(path))  # type: ignore[attr-defined]
        return
    opener = "open" if sys.platform == "darwin" else "xdg-open"
    subprocess.Popen([opener, str(path)], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


def offer_to_open(path: Path, args: argparse.Namespace) -> None:
    if not args.open:
        if args.json or args.quiet or not sys.stdin.isatty():
            return
        try:
            answer = input("File created successfully! Do you want to open it? [y/N] ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            eprint("")
            return
        if answer not in {"y", "yes"}:
            return
    try:
        open_in_default_app(path)
    except OSError as exc:
        eprint(f"Could not open {path}: {exc}")


def build_parser() -> argparse.ArgumentParser:
    parser = SheetTallyArgumentParser(
        prog="sheet-tally",
        description="Sum the Total column of a CSV, add gratuity, and write an Excel report.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    total = subparsers.add_parser("total", help="Total a CSV file and write the report workbook.")
    total.add_argument("input", help="Input CSV path")
    total.add_argument("output_positional", nargs="?", default=None, help="Optional output .xlsx path")
    total.add_argument("--output", dest="output_flag", help="Explicit output .xlsx path (overwritten if present)")
    total.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    total.add_argument("-g", "--gratuity", help="Gratuity percentage, e.g. 20 for 20%%. Prompted for when omitted.")
    total.add_argument("--strict-cells", action="store_true", help="Fail on unreadable Total cells instead of counting them as 0")
    total.add_argument("--strict-records", action="store_true", help="Fail on empty CSV records instead of skipping them")
    total.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    total.add_argument("--json-summary", dest="json_summary", help="Explicit JSON summary output path")
    total.add_argument("--open", action="store_true", help="Open the report in the default application")
    total.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    total.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    subparsers.add_parser("version", help="Print version.")
    return parser


def gratuity_source_for(args: argparse.Namespace):
    if args.gratuity is not None:
        return parse_gratuity(args.gratuity)
    if not sys.stdin.isatty():
        raise CliError("--gratuity is required when stdin is not interactive.", EXIT_COMMAND_ERROR)
    return prompt_gratuity


def run_total(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    quiet = args.quiet or args.json
    try:
        output_path = determine_output_path(args, input_path)
        gratuity_source = gratuity_source_for(args)
    except (CliError, ValidationError) as exc:
        eprint(str(exc))
        return classify_exception(exc)

    policy = TallyPolicy(
        lenient_cells=not args.strict_cells,
        skip_empty_records=not args.strict_records,
    )
    run = TallyRun(
        input_path,
        output_path,
        policy=policy,
        on_warning=lambda message: emit_human(f"Warning: {message}", quiet=quiet),
    )
    try:
        context = run.run(gratuity_source)
    except TallyError as exc:
        eprint(error_message(exc))
        try:
            emit_summary(run.context, args)
        except OSError as summary_exc:
            eprint(f"Could not write summary: {summary_exc}")
        return classify_exception(exc)

    if args.verbose and not quiet:
        eprint(
            f"Encoding: {context.table.detected_encoding} "
            f"(confidence {context.table.encoding_info.get('confidence', 0.0)})"
        )
    emit_human(render_total_text(context).rstrip(), quiet=quiet)
    emit_human(f"Report written: {context.output_path}", quiet=quiet)
    try:
        emit_summary(context, args)
    except OSError as exc:
        eprint(f"Could not write summary: {exc}")
        return EXIT_OUTPUT_ERROR
    offer_to_open(context.output_path, args)
    return EXIT_SUCCESS


def emit_summary(context: RunContext, args: argparse.Namespace) -> None:
    if not (args.json or args.json_summary):
        return
    payload = summary_payload(context)
    if args.json_summary:
        write_json(Path(args.json_summary), payload)
        emit_human(f"Summary written: {args.json_summary}", quiet=args.quiet or args.json)
    if args.json:
        print(json_dumps(payload))


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "total":
            return run_total(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
