"""Memory probe: /proc/meminfo usage, swap pressure and the largest processes"""

import logging

from ..core.errors import PermissionDenied
from ..core.models import Finding, Metric, Recommendation, Report, Severity, Threshold
from ..core.module import ModuleConfig, Permission
from ..utils.files import list_pids, parse_key_value_file, parse_status, process_name
from ..utils.format import format_bytes
from .base import ProbeModule, add_threshold_metric

logger = logging.getLogger(__name__)

MEMORY_THRESHOLD = Threshold(warning=80.0, critical=95.0)
SWAP_WARNING_PERCENT = 50.0
MIN_RSS_BYTES = 50 * 1024 * 1024


class MemModule(ProbeModule):
    name = "mem"
    description = "Explain memory consumption and identify top consumers"

    def required_permissions(self):
        return frozenset({Permission.READ_PROC})

    def is_available(self) -> bool:
        return self.procfs('meminfo').exists()

    def run(self, config: ModuleConfig) -> Report:
        meminfo = parse_key_value_file(self.procfs('meminfo'))
        total_kb = meminfo.get('MemTotal', 0)
        if not total_kb:
            raise PermissionDenied(f"Cannot read MemTotal from {self.procfs('meminfo')}")

        report = Report(self.name, "Memory analysis")

        available_kb = meminfo.get('MemAvailable', meminfo.get('MemFree', 0))
        used_kb = max(total_kb - available_kb, 0)
        usage = round(100.0 * used_kb / total_kb, 1)

        report.add_metric(Metric("Memory total", format_bytes(total_kb * 1024)))
        report.add_metric(Metric("Memory used", format_bytes(used_kb * 1024)))
        severity = add_threshold_metric(
            report, "Memory usage", usage, "%", MEMORY_THRESHOLD, "mem",
            "Memory usage at {value:.1f}% (threshold {limit:g}%); OOM risk if load increases",
        )

        if config.verbose:
            for key in ('Buffers', 'Cached', 'Shmem', 'Slab'):
                if key in meminfo:
                    report.add_metric(Metric(key, format_bytes(meminfo[key] * 1024)))

        if config.extra_bool('swap', True):
            swap_total = meminfo.get('SwapTotal', 0)
            swap_used = max(swap_total - meminfo.get('SwapFree', 0), 0)
            if swap_total > 0:
                swap_percent = 100.0 * swap_used / swap_total
                report.add_metric(Metric("Swap used", format_bytes(swap_used * 1024)))
                if swap_percent > SWAP_WARNING_PERCENT:
                    report.add_finding(Finding(
                        Severity.WARNING,
                        "swap",
                        f"High swap usage ({swap_percent:.0f}%); the system may be under memory pressure",
                        details="Consider adding RAM or reducing memory-hungry processes",
                    ))
            else:
                report.add_metric(Metric("Swap", "none configured"))

        consumers = []
        for pid in list_pids(self.proc_root):
            rss = parse_status(pid, self.proc_root).get('VmRSS')
            if not rss:
                continue
            try:
                rss_bytes = int(rss.split()[0]) * 1024
            except (IndexError, ValueError):
                continue
            if rss_bytes >= MIN_RSS_BYTES:
                consumers.append((rss_bytes, pid))
        consumers.sort(reverse=True)

        for rss_bytes, pid in consumers[:config.top_n]:
            report.add_finding(Finding(
                Severity.INFO,
                "process",
                f"{process_name(pid, self.proc_root)} (PID {pid}) uses {format_bytes(rss_bytes)}",
                details="RSS (resident set size)",
            ))

        if severity is not None and severity >= Severity.WARNING:
            report.add_recommendation(Recommendation(
                priority=1,
                action="Identify and reduce memory-heavy processes or add RAM",
                command=['ps', 'aux', '--sort=-%mem'],
                explanation="High memory usage causes swapping and slowdowns",
            ))

        report.finalize()
        return report
