"""Temperature probe: thermal zones and hwmon sensors"""

import logging

from ..core.models import Finding, Metric, Recommendation, Report, Severity, Threshold
from ..core.module import ModuleConfig
from ..utils.files import list_dir, read_first_line, read_int
from .base import ProbeModule
from .fan import read_hwmon_sensors

logger = logging.getLogger(__name__)

TEMP_THRESHOLD = Threshold(warning=80.0, critical=90.0)


class TempModule(ProbeModule):
    """More is worse. Option `critical` limits output to sensors at or above 90 °C."""

    name = "temp"
    description = "Analyze temperatures and thermal throttling"

    def read_temperatures(self):
        temps = []
        for zone in list_dir(self.sysfs('class', 'thermal')):
            if not zone.name.startswith('thermal_zone'):
                continue
            millideg = read_int(zone / 'temp')
            if millideg is None:
                continue
            name = read_first_line(zone / 'type') or zone.name
            temps.append((name, millideg / 1000.0))
        for label, millideg in read_hwmon_sensors(self.sysfs('class', 'hwmon'), 'temp'):
            temps.append((label, millideg / 1000.0))
        return temps

    def run(self, config: ModuleConfig) -> Report:
        report = Report(self.name, "Temperature analysis")
        only_critical = config.extra_bool('critical')

        temps = self.read_temperatures()
        if not temps:
            report.add_finding(Finding(
                Severity.INFO,
                "temp",
                "No temperature sensors found (/sys/class/thermal, /sys/class/hwmon)",
            ))
            report.finalize()
            return report

        for name, celsius in temps:
            severity = TEMP_THRESHOLD.classify(celsius)
            if only_critical and severity < Severity.CRITICAL:
                continue
            report.add_metric(Metric(name, round(celsius, 1), "°C", TEMP_THRESHOLD))
            if severity == Severity.CRITICAL:
                report.add_finding(Finding(
                    Severity.CRITICAL,
                    "temp",
                    f"{name} at {celsius:.0f}°C: thermal throttling risk",
                    details="Improve cooling or reduce load",
                ))
            elif severity == Severity.WARNING:
                report.add_finding(Finding(Severity.WARNING, "temp", f"{name} at {celsius:.0f}°C: high temperature"))

        if report.findings_at_least(Severity.WARNING):
            report.add_recommendation(Recommendation(
                priority=1,
                action="Improve cooling: clean fans, check thermal paste, reduce load",
                command=['sensors'],
                explanation="lm-sensors gives more detailed readings",
            ))
        else:
            report.summary = "Temperatures within normal range"

        report.finalize()
        return report
