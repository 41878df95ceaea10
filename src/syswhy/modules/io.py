"""Disk I/O probe: per-device totals from /proc/diskstats and the heaviest processes"""

import logging
from typing import List, Optional, Tuple

from ..core.models import Finding, Metric, Recommendation, Report, Severity
from ..core.module import ModuleConfig, Permission
from ..utils.files import list_pids, process_name, read_file_optional
from ..utils.format import format_bytes
from .base import ProbeModule

logger = logging.getLogger(__name__)

SECTOR_BYTES = 512
MIN_PROCESS_BYTES = 10 * 1024 * 1024


def parse_diskstats(content: str) -> List[Tuple[str, int, int]]:
    """(device, read bytes, written bytes); ram and loop devices are skipped"""
    devices = []
    for line in content.splitlines():
        fields = line.split()
        if len(fields) < 14:
            continue
        name = fields[2]
        if name.startswith(('ram', 'loop')):
            continue
        try:
            read_sectors = int(fields[5])
            write_sectors = int(fields[9])
        except ValueError:
            continue
        devices.append((name, read_sectors * SECTOR_BYTES, write_sectors * SECTOR_BYTES))
    return devices


def parse_pid_io(content: str) -> Optional[Tuple[int, int]]:
    values = {}
    for line in content.splitlines():
        key, sep, value = line.partition(':')
        if sep:
            try:
                values[key.strip()] = int(value)
            except ValueError:
                continue
    if 'read_bytes' not in values and 'write_bytes' not in values:
        return None
    return values.get('read_bytes', 0), values.get('write_bytes', 0)


class IoModule(ProbeModule):
    name = "io"
    description = "Explain high disk I/O and identify top readers/writers"

    def required_permissions(self):
        # /proc/<pid>/io of other users' processes needs root
        return frozenset({Permission.READ_PROC, Permission.ROOT})

    def is_available(self) -> bool:
        return self.procfs('diskstats').exists()

    def run(self, config: ModuleConfig) -> Report:
        report = Report(self.name, "Disk I/O analysis")
        device_filter = config.extra('device')

        content = read_file_optional(self.procfs('diskstats'))
        if content is None:
            report.add_finding(Finding(Severity.INFO, "io", f"Cannot read {self.procfs('diskstats')}"))
        else:
            for name, read_bytes, write_bytes in parse_diskstats(content):
                if device_filter and device_filter not in name:
                    continue
                if read_bytes + write_bytes == 0:
                    continue
                report.add_metric(Metric(f"{name} read", format_bytes(read_bytes)))
                report.add_metric(Metric(f"{name} write", format_bytes(write_bytes)))

        heavy = []
        for pid in list_pids(self.proc_root):
            io = read_file_optional(self.procfs(str(pid), 'io'))
            if io is None:
                continue
            counters = parse_pid_io(io)
            if counters is None:
                continue
            read_bytes, write_bytes = counters
            if read_bytes + write_bytes > MIN_PROCESS_BYTES:
                heavy.append((read_bytes + write_bytes, pid, read_bytes, write_bytes))
        heavy.sort(reverse=True)

        for _, pid, read_bytes, write_bytes in heavy[:config.top_n]:
            report.add_finding(Finding(
                Severity.INFO,
                "process",
                f"{process_name(pid, self.proc_root)} (PID {pid}): read {format_bytes(read_bytes)}, "
                f"write {format_bytes(write_bytes)}",
                details="Cumulative I/O since process start",
            ))

        if not report.findings and not report.metrics:
            report.summary = "No significant disk I/O detected"
        else:
            report.add_recommendation(Recommendation(
                priority=2,
                action="Use iotop for live per-process I/O monitoring",
                command=['iotop', '-o', '-b', '-n', '3'],
                explanation="Shows which processes cause I/O spikes right now",
            ))

        report.finalize()
        return report
