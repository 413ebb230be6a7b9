from __future__ import annotations


class TallyError(Exception):
    """Base class for failures a run reports back to the operator."""


class InputError(TallyError):
    """The input file is missing, unreadable, or has no usable Total column."""


class ValidationError(TallyError):
    """The gratuity percentage is non-numeric or negative."""


class OutputError(TallyError):
    """The report workbook could not be built or saved."""
