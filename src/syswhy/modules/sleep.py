"""Sleep probe: systemd inhibitors and wakeup counter"""

import logging

from ..core.errors import DiagnosticError
from ..core.models import Finding, Metric, Recommendation, Report, Severity
from ..core.module import ModuleConfig
from ..utils.files import read_int
from .base import ProbeModule

logger = logging.getLogger(__name__)

MAX_LISTED_INHIBITORS = 5


def parse_inhibitors(output: str):
    """
    Inhibitor rows of `systemd-inhibit --list --no-pager`.

    The header row (WHO UID ...) and the trailing 'N inhibitors listed.'
    line are dropped.
    """
    rows = []
    for line in output.splitlines():
        text = line.strip()
        if not text:
            continue
        if text.startswith('WHO') or text.endswith('listed.'):
            continue
        rows.append(text)
    return rows


class SleepModule(ProbeModule):
    name = "sleep"
    description = "Diagnose sleep/suspend issues and inhibitors"

    def run(self, config: ModuleConfig) -> Report:
        report = Report(self.name, "Sleep/suspend diagnostics")
        runner = self.new_runner()

        if config.extra_bool('inhibitors', True) and runner.available('systemd-inhibit'):
            try:
                output = runner.run(['systemd-inhibit', '--list', '--no-pager'])
            except DiagnosticError as e:
                report.add_finding(Finding(Severity.INFO, "inhibit", "Could not list inhibitors", details=e.message))
            else:
                self._report_inhibitors(report, parse_inhibitors(output))

        wakeups = read_int(self.sysfs('power', 'wakeup_count'))
        if wakeups is not None:
            report.add_metric(Metric("Wakeup count", wakeups))

        if not report.findings and not report.metrics:
            report.add_finding(Finding(
                Severity.INFO,
                "sleep",
                "No inhibitor or wakeup data available (systemd-inhibit or /sys/power)",
            ))

        report.add_recommendation(Recommendation(
            priority=3,
            action="Check the journal for suspend and resume events",
            command=['journalctl', '-b', '-u', 'sleep.target'],
            explanation="Shows the last sleep/resume transitions",
        ))

        report.finalize()
        return report

    def _report_inhibitors(self, report: Report, inhibitors):
        if not inhibitors:
            report.add_finding(Finding(Severity.OK, "sleep", "No sleep inhibitors active"))
            return

        report.add_metric(Metric("Active inhibitors", len(inhibitors)))
        for row in inhibitors[:MAX_LISTED_INHIBITORS]:
            report.add_finding(Finding(Severity.INFO, "inhibit", f"Inhibitor: {row}"))

        if len(inhibitors) > 3:
            report.add_recommendation(Recommendation(
                priority=2,
                action="Review what is blocking sleep",
                command=['systemd-inhibit', '--list'],
                explanation="Applications such as media players or SSH sessions can prevent suspend",
            ))
