"""CPU probe: overall utilization, load average and the busiest processes"""

import logging
import time
from typing import Dict, Optional, Tuple

from ..core.errors import ParseError, PermissionDenied
from ..core.models import Finding, Metric, Recommendation, Report, Severity, Threshold
from ..core.module import ModuleConfig, Permission
from ..utils.files import list_pids, process_name, read_file_optional, read_first_line
from .base import ProbeModule, add_threshold_metric

logger = logging.getLogger(__name__)

CPU_THRESHOLD = Threshold(warning=70.0, critical=90.0)
PROCESS_WARNING_PERCENT = 50.0
PROCESS_MIN_PERCENT = 0.5


def parse_proc_stat(content: str) -> Tuple[Optional[Tuple[int, int]], int]:
    """
    Parse /proc/stat.

    Returns:
        ((total_jiffies, idle_jiffies) for the aggregate cpu line or None,
         number of per-CPU lines)
    """
    totals = None
    cores = 0
    for line in content.splitlines():
        fields = line.split()
        if not fields:
            continue
        if fields[0] == 'cpu':
            values = [int(v) for v in fields[1:]]
            # idle + iowait
            idle = values[3] + (values[4] if len(values) > 4 else 0)
            # guest time is already counted in user/nice
            total = sum(values[:8])
            totals = (total, idle)
        elif fields[0].startswith('cpu') and fields[0][3:].isdigit():
            cores += 1
    return totals, cores


def parse_pid_stat(content: str) -> Optional[int]:
    """utime + stime from /proc/<pid>/stat; comm may contain spaces and parens"""
    end = content.rfind(')')
    if end < 0:
        return None
    fields = content[end + 2:].split()
    # fields[0] is state (field 3); utime/stime are fields 14/15
    try:
        return int(fields[11]) + int(fields[12])
    except (IndexError, ValueError):
        return None


class CpuModule(ProbeModule):
    name = "cpu"
    description = "Explain high CPU usage and identify top consumers"

    def __init__(self, *args, sample_delay: float = 0.2, **kwargs):
        super().__init__(*args, **kwargs)
        self.sample_delay = sample_delay

    def required_permissions(self):
        return frozenset({Permission.READ_PROC})

    def is_available(self) -> bool:
        return self.procfs('stat').exists()

    def _snapshot(self) -> Tuple[Tuple[int, int], int, Dict[int, int]]:
        content = read_file_optional(self.procfs('stat'))
        if content is None:
            raise PermissionDenied(f"Cannot read {self.procfs('stat')}")
        try:
            totals, cores = parse_proc_stat(content)
        except (IndexError, ValueError) as e:
            raise ParseError(f"Malformed {self.procfs('stat')}", details=str(e))
        if totals is None:
            raise ParseError(f"No aggregate cpu line in {self.procfs('stat')}")

        ticks = {}
        for pid in list_pids(self.proc_root):
            stat = read_file_optional(self.procfs(str(pid), 'stat'))
            if stat is None:
                continue
            value = parse_pid_stat(stat)
            if value is not None:
                ticks[pid] = value
        return totals, cores, ticks

    def run(self, config: ModuleConfig) -> Report:
        (total1, idle1), cores, ticks1 = self._snapshot()
        if self.sample_delay:
            time.sleep(self.sample_delay)
        (total2, idle2), _, ticks2 = self._snapshot()

        elapsed = total2 - total1
        usage = 0.0
        if elapsed > 0:
            usage = round(100.0 * (elapsed - (idle2 - idle1)) / elapsed, 1)

        if usage > 80:
            summary = "High CPU utilization detected"
        elif usage > 50:
            summary = "Moderate CPU usage"
        else:
            summary = "CPU usage within normal range"
        report = Report(self.name, summary)

        loadavg = read_first_line(self.procfs('loadavg'))
        if loadavg:
            one, five, fifteen = loadavg.split()[:3]
            report.add_metric(Metric("Load average", f"{one} / {five} / {fifteen} (1m / 5m / 15m)"))
            try:
                if cores and float(one) > cores:
                    report.add_finding(Finding(
                        Severity.INFO,
                        "load",
                        f"1-minute load {one} exceeds the {cores} available cores",
                        details="Processes are queueing for CPU time",
                    ))
            except ValueError:
                pass

        add_threshold_metric(
            report, "CPU usage", usage, "%", CPU_THRESHOLD, "cpu",
            "CPU usage at {value:.1f}% (threshold {limit:g}%)",
        )
        report.add_metric(Metric("CPU cores", cores))

        # Share of one core over the sampling window
        per_core = elapsed / cores if cores else elapsed
        usages = []
        for pid, after in ticks2.items():
            before = ticks1.get(pid)
            if before is None or per_core <= 0:
                continue
            percent = 100.0 * (after - before) / per_core
            if percent >= PROCESS_MIN_PERCENT:
                usages.append((percent, pid))
        usages.sort(reverse=True)

        for percent, pid in usages[:config.top_n]:
            name = process_name(pid, self.proc_root)
            report.add_finding(Finding(
                Severity.WARNING if percent > PROCESS_WARNING_PERCENT else Severity.INFO,
                "process",
                f"{name} (PID {pid}) consuming {percent:.1f}% CPU",
            ))

        if usage > 80:
            report.add_recommendation(Recommendation(
                priority=1,
                action="Identify and reduce load from the top processes",
                command=['ps', 'aux', '--sort=-%cpu'],
                explanation="High CPU often comes from browsers, IDEs or background indexing",
            ))

        if config.verbose:
            report.raw_data = {'jiffies_elapsed': elapsed, 'cores': cores}

        report.finalize()
        return report
