"""Shared plumbing for the built-in probes"""

import logging
from pathlib import Path
from typing import Callable, Optional

from ..backends.base import ToolRunner
from ..core.models import Finding, Metric, Report, Severity, Threshold
from ..core.module import DiagnosticModule

logger = logging.getLogger(__name__)


class ProbeModule(DiagnosticModule):
    """
    DiagnosticModule reading from injectable /proc and /sys roots.

    Args:
        proc_root: Where /proc is mounted (tests pass a tmp_path tree)
        sys_root: Where /sys is mounted
        runner_factory: Builds the ToolRunner for one run()
    """

    def __init__(self, proc_root: str = '/proc', sys_root: str = '/sys',
                 runner_factory: Optional[Callable[[], ToolRunner]] = None):
        super().__init__()
        self.proc_root = Path(proc_root)
        self.sys_root = Path(sys_root)
        self.runner_factory = runner_factory or ToolRunner

    def new_runner(self) -> ToolRunner:
        """Fresh runner; tool output is never shared between runs"""
        return self.runner_factory()

    def procfs(self, *parts) -> Path:
        return self.proc_root.joinpath(*parts)

    def sysfs(self, *parts) -> Path:
        return self.sys_root.joinpath(*parts)


def add_threshold_metric(report: Report, name: str, value: float, unit: Optional[str],
                         threshold: Threshold, category: str, message: str) -> Severity:
    """
    Record a metric and, when it classifies Warning or worse, a Finding.

    `message` is formatted with {value}, {unit} and {limit} (the boundary
    that was crossed).
    """
    metric = Metric(name, value, unit, threshold)
    report.add_metric(metric)
    severity = metric.severity()
    if severity is not None and severity >= Severity.WARNING:
        limit = threshold.critical if severity == Severity.CRITICAL else threshold.warning
        report.add_finding(Finding(
            severity,
            category,
            message.format(value=value, unit=unit or '', limit=limit),
        ))
    return severity
