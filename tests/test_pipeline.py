from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from openpyxl import load_workbook

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sheet_tally.errors import InputError, OutputError, ValidationError
from sheet_tally.gratuity import Gratuity
from sheet_tally.pipeline import PipelineState, TallyRun, run_pipeline
from sheet_tally.policy import TallyPolicy
from sheet_tally.workbook import SHEET_NAME

SAMPLE_CSV = ROOT / "sample-data" / "receipts.csv"


class PipelineTests(unittest.TestCase):
    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.tmp = Path(tmpdir.name)
        self.output_path = self.tmp / "out" / "report.xlsx"

    def write_csv(self, text: str, name: str = "input.csv") -> Path:
        path = self.tmp / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_scenario_totals_and_report_layout(self):
        path = self.write_csv("Name,Total\nWidget,$10.00\nGadget,$5.50\n")
        context = run_pipeline(path, self.output_path, 20)

        self.assertEqual(context.state, PipelineState.REPORT_WRITTEN)
        self.assertTrue(context.succeeded)
        self.assertAlmostEqual(context.totals.subtotal, 15.50)
        self.assertAlmostEqual(context.totals.gratuity_amount, 3.10)
        self.assertAlmostEqual(context.totals.final_total, 18.60)

        ws = load_workbook(self.output_path)[SHEET_NAME]
        self.assertEqual([ws.cell(r, 1).value for r in (1, 2, 3)], ["Name", "Widget", "Gadget"])
        self.assertEqual(
            [ws.cell(r, 11).value for r in (4, 5, 6)],
            ["Grand Total", "20% Gratuity", "Final Total"],
        )

    def test_missing_total_column_aborts_without_output(self):
        path = self.write_csv("Name,Amount\nWidget,$10.00\n")
        prompt = mock.Mock(return_value=20)
        run = TallyRun(path, self.output_path)
        with self.assertRaisesRegex(InputError, "does not contain a 'Total' column"):
            run.run(prompt)
        self.assertEqual(run.context.state, PipelineState.ERROR)
        self.assertIsInstance(run.context.error, InputError)
        prompt.assert_not_called()
        self.assertFalse(self.output_path.exists())
        self.assertFalse(self.output_path.parent.exists())

    def test_non_numeric_cells_are_skipped(self):
        path = self.write_csv("Name,Total\nWidget,$10.00\nGadget,N/A\nGizmo,$2.25\n")
        context = run_pipeline(path, self.output_path, 0)
        self.assertEqual(context.totals.subtotal, 12.25)
        self.assertEqual(context.totals.final_total, 12.25)

    def test_control_characters_in_cells_still_produce_a_report(self):
        path = self.write_csv("Name,Total\nWid\x0bget,$10.00\nRefund,-$2.50\n")
        context = run_pipeline(path, self.output_path, 20)
        self.assertEqual(context.state, PipelineState.REPORT_WRITTEN)
        self.assertAlmostEqual(context.totals.subtotal, 7.50)
        self.assertTrue(self.output_path.exists())

    def test_missing_input_file(self):
        run = TallyRun(self.tmp / "missing.csv", self.output_path)
        with self.assertRaisesRegex(InputError, "Please select a valid CSV file."):
            run.run(20)
        self.assertIsNone(run.context.table)
        self.assertFalse(self.output_path.exists())

    def test_negative_gratuity_rejected_before_totals(self):
        path = self.write_csv("Name,Total\nWidget,$10.00\n")
        run = TallyRun(path, self.output_path)
        with self.assertRaises(ValidationError):
            run.run("-5")
        self.assertEqual(run.context.state, PipelineState.ERROR)
        self.assertEqual(run.context.subtotal, 10.0)
        self.assertIsNone(run.context.gratuity)
        self.assertIsNone(run.context.totals)
        self.assertFalse(self.output_path.exists())

    def test_callable_gratuity_source_is_used(self):
        path = self.write_csv("Name,Total\nWidget,$10.00\n")
        context = run_pipeline(path, self.output_path, lambda: Gratuity(15.0))
        self.assertEqual(context.gratuity.percentage, 15.0)
        self.assertAlmostEqual(context.totals.final_total, 11.5)

    def test_runs_are_idempotent(self):
        path = self.write_csv("Name,Total\n" + "".join(f"Item {i},${i}.37\n" for i in range(40)))
        first = run_pipeline(path, self.tmp / "a.xlsx", "17.5")
        second = run_pipeline(path, self.tmp / "b.xlsx", "17.5")
        self.assertEqual(first.totals, second.totals)

    def test_warnings_are_collected_and_forwarded(self):
        seen: list[str] = []
        context = run_pipeline(SAMPLE_CSV, self.output_path, 20, on_warning=seen.append)
        self.assertEqual(context.warnings, ["Line 3: empty record skipped"])
        self.assertEqual(seen, context.warnings)
        self.assertAlmostEqual(context.totals.subtotal, 1215.50)
        self.assertEqual((context.location.row_index, context.location.column_index), (2, 3))

    def test_strict_cells_policy_aborts(self):
        path = self.write_csv("Name,Total\nWidget,N/A\n")
        with self.assertRaises(InputError):
            run_pipeline(path, self.output_path, 20, policy=TallyPolicy(lenient_cells=False))
        self.assertFalse(self.output_path.exists())

    def test_unexpected_report_failure_becomes_output_error(self):
        path = self.write_csv("Name,Total\nWidget,$10.00\n")
        run = TallyRun(path, self.output_path)
        with mock.patch("sheet_tally.pipeline.write_report", side_effect=RuntimeError("boom")):
            with self.assertRaisesRegex(OutputError, "boom"):
                run.run(20)
        self.assertEqual(run.context.state, PipelineState.ERROR)
        self.assertIsNotNone(run.context.totals)


if __name__ == "__main__":
    unittest.main()
