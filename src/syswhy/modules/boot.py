"""Boot probe: total boot time and slow units from systemd-analyze"""

import logging
import re
from typing import List, Tuple

from ..core.errors import DiagnosticError
from ..core.models import Finding, Recommendation, Report, Severity, Threshold
from ..core.module import ModuleConfig
from ..utils.format import parse_systemd_duration
from .base import ProbeModule, add_threshold_metric

logger = logging.getLogger(__name__)

BOOT_THRESHOLD = Threshold(warning=15.0, critical=30.0)
SLOW_SERVICE_SECONDS = 1.0
VERY_SLOW_SERVICE_SECONDS = 5.0

_BLAME_RE = re.compile(r'^\s*(.+?)\s+(\S+)\.service\s*$')


def parse_boot_time(output: str):
    """Total seconds from `systemd-analyze time`, the value after '='"""
    for line in output.splitlines():
        if '=' in line:
            total = parse_systemd_duration(line.rsplit('=', 1)[1])
            if total is not None:
                return total
    return None


def parse_blame(output: str) -> List[Tuple[float, str]]:
    """(seconds, unit) pairs for .service lines of `systemd-analyze blame`"""
    entries = []
    for line in output.splitlines():
        match = _BLAME_RE.match(line)
        if not match:
            continue
        seconds = parse_systemd_duration(match.group(1))
        if seconds is not None:
            entries.append((seconds, match.group(2)))
    entries.sort(key=lambda e: e[0], reverse=True)
    return entries


class BootModule(ProbeModule):
    name = "boot"
    description = "Analyze boot performance and slow services via systemd"

    def is_available(self) -> bool:
        return self.new_runner().available('systemd-analyze')

    def run(self, config: ModuleConfig) -> Report:
        report = Report(self.name, "Boot analysis (systemd)")
        runner = self.new_runner()

        try:
            total = parse_boot_time(runner.run(['systemd-analyze', 'time']))
        except DiagnosticError as e:
            # Fails while the system is still booting
            report.add_finding(Finding(Severity.INFO, "boot", "Boot time unavailable", details=e.message))
            total = None

        if total is not None:
            add_threshold_metric(
                report, "Total boot time", round(total, 2), "s", BOOT_THRESHOLD, "boot",
                "Boot took {value:.1f}s (threshold {limit:g}s); consider disabling unnecessary services",
            )

        slow = []
        try:
            blame = parse_blame(runner.run(['systemd-analyze', 'blame', '--no-pager']))
            slow = [(s, unit) for s, unit in blame if s >= SLOW_SERVICE_SECONDS]
        except DiagnosticError as e:
            report.add_finding(Finding(Severity.INFO, "boot", "Service timings unavailable", details=e.message))

        for seconds, unit in slow[:config.top_n]:
            report.add_finding(Finding(
                Severity.WARNING if seconds > VERY_SLOW_SERVICE_SECONDS else Severity.INFO,
                "service",
                f"{unit} took {seconds:.2f}s to start",
                details=f"Disable it if not needed: systemctl disable {unit}.service",
            ))

        if slow:
            report.add_recommendation(Recommendation(
                priority=2,
                action="Review slow services and disable the ones you do not need",
                command=['systemctl', 'list-unit-files', '--state=enabled'],
                explanation="Fewer enabled services means a faster boot",
            ))
        elif total is not None:
            report.summary = "Boot time measured; no slow services reported"

        report.finalize()
        return report
