from __future__ import annotations

import io
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sheet_tally.errors import ValidationError
from sheet_tally.gratuity import (
    INVALID_GRATUITY_MESSAGE,
    Gratuity,
    format_percentage,
    parse_gratuity,
    prompt_gratuity,
)


def scripted_input(*answers):
    remaining = list(answers)

    def fake_input(prompt: str) -> str:
        if not remaining:
            raise EOFError
        answer = remaining.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer

    return fake_input


class ParseGratuityTests(unittest.TestCase):
    def test_accepts_numbers_and_numeric_text(self):
        self.assertEqual(parse_gratuity("20").percentage, 20.0)
        self.assertEqual(parse_gratuity(" 12.5 ").percentage, 12.5)
        self.assertEqual(parse_gratuity(0).percentage, 0.0)
        self.assertEqual(parse_gratuity(150.0).percentage, 150.0)
        self.assertEqual(parse_gratuity(Gratuity(18.0)), Gratuity(18.0))

    def test_rejects_negative_and_non_numeric(self):
        for value in ["-1", -0.5, "abc", "", "nan", "inf", "20%", float("nan"), True, None, Gratuity(-2.0)]:
            with self.subTest(value=value):
                with self.assertRaisesRegex(ValidationError, "valid gratuity percentage"):
                    parse_gratuity(value)

    def test_rate_and_label(self):
        gratuity = parse_gratuity("20")
        self.assertEqual(gratuity.rate, 0.2)
        self.assertEqual(gratuity.label, "20")

    def test_label_is_not_rounded(self):
        self.assertEqual(format_percentage(12.5), "12.5")
        self.assertEqual(format_percentage(17.123456789), "17.123456789")
        self.assertEqual(format_percentage(0.0), "0")

    def test_extreme_labels_use_python_number_text(self):
        self.assertEqual(format_percentage(0.00001), "1e-05")
        self.assertEqual(format_percentage(1e16), "10000000000000000")
        self.assertEqual(parse_gratuity("1e-05").label, "1e-05")


class PromptGratuityTests(unittest.TestCase):
    def test_reprompts_until_valid(self):
        stream = io.StringIO()
        gratuity = prompt_gratuity(scripted_input("abc", "-5", "18"), stream=stream)
        self.assertEqual(gratuity.percentage, 18.0)
        self.assertEqual(stream.getvalue().count(INVALID_GRATUITY_MESSAGE), 2)

    def test_eof_cancels_entry(self):
        with self.assertRaisesRegex(ValidationError, "cancelled"):
            prompt_gratuity(scripted_input(), stream=io.StringIO())

    def test_keyboard_interrupt_cancels_entry(self):
        with self.assertRaises(ValidationError):
            prompt_gratuity(scripted_input(KeyboardInterrupt()), stream=io.StringIO())

    def test_max_attempts(self):
        with self.assertRaisesRegex(ValidationError, "valid gratuity percentage"):
            prompt_gratuity(scripted_input("x", "y", "20"), stream=io.StringIO(), max_attempts=2)


if __name__ == "__main__":
    unittest.main()
