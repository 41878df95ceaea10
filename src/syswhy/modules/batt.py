"""
Battery probe: charge state from /sys/class/power_supply.

Less charge is worse, so the probe classifies depletion (100 - capacity)
against 80/90: Warning at or below 20 % charge, Critical at or below 10 %.
A charging battery is never reported above Info.
"""

import logging

from ..core.models import Finding, Metric, Recommendation, Report, Severity, Threshold
from ..core.module import ModuleConfig
from ..utils.files import list_dir, read_first_line, read_int
from .base import ProbeModule

logger = logging.getLogger(__name__)

DEPLETION_THRESHOLD = Threshold(warning=80.0, critical=90.0)


class BattModule(ProbeModule):
    name = "batt"
    description = "Explain battery drain and power-hungry processes"

    def run(self, config: ModuleConfig) -> Report:
        report = Report(self.name, "Battery diagnostics")
        supplies = self.sysfs('class', 'power_supply')

        batteries = [e for e in list_dir(supplies)
                     if (read_first_line(e / 'type') or '').lower() == 'battery']

        if not batteries:
            report.add_finding(Finding(
                Severity.INFO,
                "batt",
                f"No battery found in {supplies}",
                details="This is normal on desktops",
            ))
            report.finalize()
            return report

        for battery in batteries:
            self._report_battery(report, battery, config.extra_bool('detailed'))

        if not report.findings:
            report.summary = "Battery status OK"

        report.add_recommendation(Recommendation(
            priority=3,
            action="Use upower or tlp-stat for charge cycles and time to empty",
            command=['upower', '-i', f"/org/freedesktop/UPower/devices/battery_{batteries[0].name}"],
            explanation="upower reports wear level and discharge rate",
        ))

        report.finalize()
        return report

    def _report_battery(self, report: Report, battery, detailed: bool):
        name = battery.name
        status = read_first_line(battery / 'status')
        if status:
            report.add_metric(Metric(f"{name} status", status))

        capacity = read_int(battery / 'capacity')
        if capacity is not None:
            depletion = 100 - capacity
            report.add_metric(Metric(f"{name} capacity", capacity, "%"))
            report.add_metric(Metric(f"{name} depletion", depletion, "%", DEPLETION_THRESHOLD))
            severity = DEPLETION_THRESHOLD.classify(depletion)
            if severity >= Severity.WARNING:
                charging = (status or '').lower() == 'charging'
                report.add_finding(Finding(
                    Severity.INFO if charging else severity,
                    "batt",
                    f"{name} at {capacity}%" + (" and charging" if charging else ": plug in or suspend soon"),
                ))

        if detailed:
            for attribute, unit in (('energy_now', 'µWh'), ('energy_full', 'µWh'),
                                    ('energy_full_design', 'µWh'), ('power_now', 'µW'),
                                    ('cycle_count', None)):
                value = read_int(battery / attribute)
                if value is not None:
                    report.add_metric(Metric(f"{name} {attribute}", value, unit))

            full = read_int(battery / 'energy_full')
            design = read_int(battery / 'energy_full_design')
            if full and design:
                health = round(100.0 * full / design, 1)
                report.add_metric(Metric(f"{name} health", health, "%"))
