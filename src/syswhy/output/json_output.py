"""JSON rendering of module outcomes"""

import json
from typing import Sequence

from ..core.models import Report
from ..core.runner import ModuleOutcome


def report_to_json(report: Report, indent: int = 2) -> str:
    return json.dumps(report.to_dict(), indent=indent, ensure_ascii=False)


def outcomes_to_json(outcomes: Sequence[ModuleOutcome], indent: int = 2) -> str:
    """
    Serialize outcomes.

    A single outcome is emitted as one object, several as an array in
    registration order.
    """
    entries = [outcome.to_dict() for outcome in outcomes]
    payload = entries[0] if len(entries) == 1 else entries
    return json.dumps(payload, indent=indent, ensure_ascii=False)
