"""
GPU probe: utilization, memory and temperature for NVIDIA, AMD and Intel.

Devices come from /sys/class/drm; metrics come from the first working
backend in the vendor's fallback chain. Thresholds: utilization 80/95 %,
memory used 85/95 %, temperature 75/85 °C (more is worse for all three).
"""

import logging
from typing import Dict, Optional, Sequence

from ..backends.base import Backend, Vendor
from ..backends.resolver import (
    INSTALL_HINTS,
    METRIC_LABELS,
    BackendResolver,
    CollectionResult,
    classify_sample,
    discover_devices,
)
from ..core.errors import NoDevicesFound
from ..core.models import Finding, Metric, Recommendation, Report, Severity
from ..core.module import ModuleConfig, Permission
from .base import ProbeModule

logger = logging.getLogger(__name__)

CATEGORIES = {
    'utilization': 'utilization',
    'memory_percent': 'memory',
    'temperature_c': 'temperature',
}


class GpuModule(ProbeModule):
    name = "gpu"
    description = "Explain GPU utilization, memory and temperature (NVIDIA/AMD/Intel)"

    def __init__(self, *args, chains: Optional[Dict[Vendor, Sequence[Backend]]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.chains = chains

    def required_permissions(self):
        return frozenset({Permission.READ_SYS})

    def run(self, config: ModuleConfig) -> Report:
        report = Report(self.name, "GPU diagnostics")
        devices = discover_devices(str(self.sys_root))

        vendor_filter = config.extra('vendor')
        if vendor_filter:
            try:
                wanted = Vendor(vendor_filter.lower())
            except ValueError:
                report.add_finding(Finding(
                    Severity.INFO,
                    "gpu",
                    f"Unknown vendor filter '{vendor_filter}', showing all GPUs",
                    details="Expected one of: " + ", ".join(v.value for v in Vendor),
                ))
                vendor_filter = None
            else:
                devices = [d for d in devices if d.vendor == wanted]

        if not devices:
            report.summary = "No GPU devices detected"
            report.add_finding(Finding.from_error(Severity.INFO, "gpu", NoDevicesFound(
                "No GPU devices detected",
                details=f"Nothing under {self.sysfs('class', 'drm')}"
                        + (f" for vendor {vendor_filter}" if vendor_filter else ""),
            )))
            report.finalize()
            return report

        resolver = BackendResolver(self.new_runner(), self.chains)
        results = [resolver.collect(device) for device in devices]

        hinted = set()
        for result in results:
            self._report_device(report, result)
            if result.exhausted and result.device.vendor not in hinted:
                hinted.add(result.device.vendor)
                self._recommend_install(report, result.device.vendor)

        collected = sum(1 for r in results if not r.exhausted)
        report.summary = f"{len(results)} GPU(s) detected, metrics for {collected}"

        if config.verbose:
            report.raw_data = {
                'devices': [
                    {
                        'card': r.device.card,
                        'vendor': r.device.vendor.value,
                        'vendor_id': r.device.vendor_id,
                        'pci_address': r.device.pci_address,
                        'backend': r.backend,
                        'attempts': [list(a) for a in r.attempts],
                    }
                    for r in results
                ],
            }

        report.finalize()
        return report

    def _report_device(self, report: Report, result: CollectionResult):
        device = result.device
        label = device.label
        sample = result.sample

        name = sample.name if sample and sample.name else device.card
        report.add_metric(Metric(f"{label} name", name))
        report.add_metric(Metric(f"{label} vendor", device.vendor.display_name))
        if device.pci_address:
            report.add_metric(Metric(f"{label} PCI address", device.pci_address))

        if device.vendor == Vendor.UNKNOWN:
            report.add_finding(Finding(
                Severity.INFO,
                "gpu",
                f"{label} has an unrecognized vendor ID ({device.vendor_id or 'unreadable'})",
                details="Only generic sysfs metrics can be read for this device",
            ))

        if result.exhausted:
            error = result.exhaustion_error()
            report.add_finding(Finding(
                Severity.INFO,
                "backend",
                f"No metrics for {label} ({device.vendor.display_name}): every backend failed",
                details=error.details,
            ))
            return

        report.add_metric(Metric(f"{label} backend", result.backend))

        for key, value, threshold, severity in classify_sample(sample):
            text, unit = METRIC_LABELS[key]
            report.add_metric(Metric(f"{label} {text}", round(value, 1), unit, threshold))
            if severity >= Severity.WARNING:
                limit = threshold.critical if severity == Severity.CRITICAL else threshold.warning
                report.add_finding(Finding(
                    severity,
                    CATEGORIES[key],
                    f"{label} {text} at {value:.1f}{unit} (threshold {limit:g}{unit})",
                ))

        if sample.memory_used_mib is not None:
            used = f"{sample.memory_used_mib:.0f}"
            if sample.memory_total_mib:
                used += f" / {sample.memory_total_mib:.0f}"
            report.add_metric(Metric(f"{label} memory", used, "MiB"))
        if sample.power_w is not None:
            report.add_metric(Metric(f"{label} power", round(sample.power_w, 1), "W"))

    def _recommend_install(self, report: Report, vendor: Vendor):
        report.add_recommendation(Recommendation(
            priority=3,
            action=INSTALL_HINTS[vendor],
            explanation=f"Live {vendor.display_name} GPU statistics need the vendor tool or a driver exposing sysfs metrics",
        ))
