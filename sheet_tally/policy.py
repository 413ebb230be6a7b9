from __future__ import annotations

from dataclasses import dataclass

TOTAL_LABEL = "Total"
CURRENCY_SYMBOL = "$"
DELIMITER = ","


@dataclass(frozen=True)
class TallyPolicy:
    """
    Leniency switches for a run.

    lenient_cells:       unparseable Total cells count as 0 instead of failing
    skip_empty_records:  empty CSV records are skipped with a warning instead of failing
    """

    lenient_cells: bool = True
    skip_empty_records: bool = True


DEFAULT_POLICY = TallyPolicy()
STRICT_POLICY = TallyPolicy(lenient_cells=False, skip_empty_records=False)
