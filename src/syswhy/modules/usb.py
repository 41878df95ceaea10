"""USB probe: connected devices and kernel USB errors"""

import logging

from ..core.errors import DiagnosticError
from ..core.models import Finding, Metric, Recommendation, Report, Severity
from ..core.module import ModuleConfig
from ..utils.files import list_dir
from .base import ProbeModule

logger = logging.getLogger(__name__)

MAX_LISTED_DEVICES = 15
MAX_DMESG_LINES = 10


def usb_error_lines(dmesg_output: str):
    """dmesg lines mentioning usb together with error, reset or fail"""
    lines = []
    for line in dmesg_output.splitlines():
        lower = line.lower()
        if 'usb' in lower and ('error' in lower or 'reset' in lower or 'fail' in lower):
            lines.append(line.strip())
    return lines


class UsbModule(ProbeModule):
    """Options: device (substring filter on lsusb lines), dmesg (scan kernel log)."""

    name = "usb"
    description = "Diagnose USB device problems and enumeration"

    def run(self, config: ModuleConfig) -> Report:
        report = Report(self.name, "USB diagnostics")
        runner = self.new_runner()
        device_filter = (config.extra('device') or '').lower()

        listed = False
        if runner.available('lsusb'):
            try:
                output = runner.run(['lsusb'])
            except DiagnosticError as e:
                logger.debug(f"lsusb failed: {e.message}")
            else:
                lines = [l.strip() for l in output.splitlines() if l.strip()]
                report.add_metric(Metric("USB devices (lsusb)", len(lines)))
                for line in lines[:MAX_LISTED_DEVICES]:
                    if device_filter and device_filter not in line.lower():
                        continue
                    report.add_finding(Finding(Severity.INFO, "usb", line))
                listed = True

        if not listed:
            devices = [e for e in list_dir(self.sysfs('bus', 'usb', 'devices')) if e.name[:1].isdigit()]
            if devices:
                report.add_metric(Metric("USB devices (sysfs)", len(devices)))

        if config.extra_bool('dmesg'):
            try:
                errors = usb_error_lines(runner.run(['dmesg', '-T']))
            except DiagnosticError as e:
                report.add_finding(Finding(Severity.INFO, "dmesg", "Could not read the kernel log", details=e.message))
            else:
                for line in errors[-MAX_DMESG_LINES:]:
                    report.add_finding(Finding(Severity.WARNING, "dmesg", line))

        if not report.findings and not report.metrics:
            report.add_finding(Finding(Severity.INFO, "usb", "No USB devices or lsusb/sysfs data available"))

        report.add_recommendation(Recommendation(
            priority=3,
            action="Inspect the USB topology as a tree",
            command=['lsusb', '-t'],
            explanation="Helps identify enumeration or power issues",
        ))

        report.finalize()
        return report
