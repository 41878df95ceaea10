"""Fan probe: hwmon fan speeds"""

import logging
from typing import List, Tuple

from ..core.models import Finding, Metric, Report, Severity
from ..core.module import ModuleConfig
from ..utils.files import list_dir, read_first_line, read_int
from .base import ProbeModule

logger = logging.getLogger(__name__)


def read_hwmon_sensors(hwmon_root, prefix: str) -> List[Tuple[str, int]]:
    """
    (label, raw value) for every <prefix>N_input under hwmon.

    Labels are '<chip name> <sensor label or prefixN>'.
    """
    sensors = []
    for chip in list_dir(hwmon_root):
        chip_name = read_first_line(chip / 'name') or chip.name
        for entry in list_dir(chip):
            filename = entry.name
            if not (filename.startswith(prefix) and filename.endswith('_input')):
                continue
            value = read_int(entry)
            if value is None:
                continue
            sensor = filename[:-len('_input')]
            label = read_first_line(chip / f"{sensor}_label") or sensor
            sensors.append((f"{chip_name} {label}", value))
    return sensors


class FanModule(ProbeModule):
    """Option `threshold` flags fans above threshold x 100 RPM."""

    name = "fan"
    description = "Explain fan activity and correlate with temperature/load"

    def run(self, config: ModuleConfig) -> Report:
        report = Report(self.name, "Fan diagnostics")
        fans = read_hwmon_sensors(self.sysfs('class', 'hwmon'), 'fan')

        if not fans:
            report.add_finding(Finding(
                Severity.INFO,
                "fan",
                "No fan sensors found under /sys/class/hwmon",
                details="Some laptops expose fans only through ACPI or vendor interfaces",
            ))
            report.finalize()
            return report

        for label, rpm in fans:
            report.add_metric(Metric(label, rpm, "RPM"))

        threshold = config.extra_float('threshold', 0.0)
        if threshold > 0:
            limit = int(threshold * 100)
            for label, rpm in fans:
                if rpm > limit:
                    report.add_finding(Finding(
                        Severity.INFO,
                        "fan",
                        f"{label} running at {rpm} RPM (above {limit} RPM)",
                        details="High fan speed usually indicates thermal load",
                    ))

        stopped = [label for label, rpm in fans if rpm == 0]
        if stopped and config.verbose:
            report.add_finding(Finding(
                Severity.INFO,
                "fan",
                f"{len(stopped)} fan(s) report 0 RPM",
                details=", ".join(stopped),
            ))

        if not report.findings:
            report.summary = "Fan speeds within normal range"

        report.finalize()
        return report
