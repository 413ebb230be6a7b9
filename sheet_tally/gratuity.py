from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from typing import Callable, Optional, TextIO, Union

from sheet_tally.aggregator import PLAIN_NUMBER_RE
from sheet_tally.errors import ValidationError

INVALID_GRATUITY_MESSAGE = "Please enter a valid gratuity percentage (0 or higher)."
PROMPT_TEXT = "Gratuity percentage: "


@dataclass(frozen=True)
class Gratuity:
    percentage: float

    @property
    def rate(self) -> float:
        return self.percentage / 100.0

    @property
    def label(self) -> str:
        return format_percentage(self.percentage)


def format_percentage(value: float) -> str:
    # 20.0 -> "20", 12.5 -> "12.5", 1e-05 -> "1e-05"; never rounded
    if value.is_integer():
        return str(int(value))
    return repr(value)


def parse_gratuity(value: Union[Gratuity, float, int, str]) -> Gratuity:
    """Validate an operator-supplied percentage; negative or non-numeric input is rejected."""
    if isinstance(value, Gratuity):
        number = value.percentage
    elif isinstance(value, bool):
        raise ValidationError(INVALID_GRATUITY_MESSAGE)
    elif isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not PLAIN_NUMBER_RE.match(text):
            raise ValidationError(INVALID_GRATUITY_MESSAGE)
        number = float(text)
    else:
        raise ValidationError(INVALID_GRATUITY_MESSAGE)

    if not math.isfinite(number) or number < 0:
        raise ValidationError(INVALID_GRATUITY_MESSAGE)
    return Gratuity(percentage=number)


def prompt_gratuity(
    input_fn: Callable[[str], str] = input,
    stream: TextIO = sys.stderr,
    max_attempts: Optional[int] = None,
) -> Gratuity:
    """
    Ask for a gratuity percentage until a valid one is entered.

    Caller must ensure stdin is interactive before using this helper.
    Raises ValidationError when the operator abandons the prompt or
    max_attempts runs out.
    """
    attempts = 0
    while max_attempts is None or attempts < max_attempts:
        attempts += 1
        try:
            raw = input_fn(PROMPT_TEXT)
        except (EOFError, KeyboardInterrupt):
            print("", file=stream)
            raise ValidationError("Gratuity entry cancelled.") from None
        try:
            return parse_gratuity(raw)
        except ValidationError as exc:
            print(str(exc), file=stream)
    raise ValidationError(INVALID_GRATUITY_MESSAGE)
