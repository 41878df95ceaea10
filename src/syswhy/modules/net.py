"""Network probe: latency to a host, DNS resolution and interface counters"""

import logging
import re
from typing import List, Tuple

from ..core.errors import CommandFailed, DiagnosticError, ToolNotFound
from ..core.models import Finding, Metric, Recommendation, Report, Severity, Threshold
from ..core.module import ModuleConfig
from ..utils.files import read_file_optional
from .base import ProbeModule, add_threshold_metric

logger = logging.getLogger(__name__)

DEFAULT_HOST = "8.8.8.8"
DNS_FALLBACK_NAME = "google.com"
LATENCY_THRESHOLD = Threshold(warning=100.0, critical=500.0)

_TIME_RE = re.compile(r'time[=<]([\d.]+)\s*ms')
_IP_RE = re.compile(r'^[\d.]+$|^[0-9a-fA-F:]+:[0-9a-fA-F:]*$')


def parse_ping(output: str) -> List[float]:
    """Round-trip times in ms from ping output"""
    return [float(m) for m in _TIME_RE.findall(output)]


def parse_net_dev(content: str) -> List[Tuple[str, int, int]]:
    """(interface, rx bytes, tx bytes) from /proc/net/dev, loopback skipped"""
    interfaces = []
    for line in content.splitlines()[2:]:
        name, sep, rest = line.partition(':')
        if not sep:
            continue
        name = name.strip()
        fields = rest.split()
        if name == 'lo' or len(fields) < 9:
            continue
        try:
            interfaces.append((name, int(fields[0]), int(fields[8])))
        except ValueError:
            continue
    return interfaces


class NetModule(ProbeModule):
    """
    Options: host (default 8.8.8.8), count (ping packets, default 5),
    dns_only, interfaces (per-interface counters, default on).
    """

    name = "net"
    description = "Diagnose network issues: connectivity, DNS, interfaces"

    def run(self, config: ModuleConfig) -> Report:
        host = config.extra('host', DEFAULT_HOST)
        count = max(config.extra_int('count', 5), 1)
        runner = self.new_runner()

        report = Report(self.name, "Network diagnostics")
        report.add_metric(Metric("Target host", host))

        if not config.extra_bool('dns_only'):
            self._ping(report, runner, host, count)

        self._dns(report, runner, host)

        if config.extra_bool('interfaces', True):
            content = read_file_optional(self.procfs('net', 'dev'))
            for name, rx, tx in parse_net_dev(content or ''):
                if rx or tx:
                    report.add_metric(Metric(f"{name} rx", rx, "bytes"))
                    report.add_metric(Metric(f"{name} tx", tx, "bytes"))

        if not report.findings_at_least(Severity.WARNING):
            report.add_recommendation(Recommendation(
                priority=3,
                action="For deeper diagnosis inspect interfaces and routes",
                command=['ip', 'addr', 'show'],
                explanation="Also useful: ip route, nmcli, traceroute",
            ))

        report.finalize()
        return report

    def _ping(self, report: Report, runner, host: str, count: int):
        try:
            output = runner.run(['ping', '-c', str(count), '-W', '2', host])
        except ToolNotFound:
            report.add_finding(Finding(Severity.INFO, "connectivity", "ping is not installed; latency not measured"))
            return
        except CommandFailed as e:
            report.add_finding(Finding(
                Severity.WARNING,
                "connectivity",
                f"Ping to {host} failed; host may be unreachable",
                details=e.details or "Check firewall, routing and DNS",
            ))
            return
        except DiagnosticError as e:
            report.add_finding(Finding(Severity.INFO, "connectivity", "Could not run ping", details=e.message))
            return

        times = parse_ping(output)
        if not times:
            report.add_finding(Finding(Severity.WARNING, "connectivity", f"No replies from {host}"))
            return

        average = round(sum(times) / len(times), 2)
        add_threshold_metric(
            report, "Ping latency (avg)", average, "ms", LATENCY_THRESHOLD, "latency",
            "High latency to " + host.replace('{', '{{').replace('}', '}}') + " ({value:.0f} ms avg, threshold {limit:g} ms)",
        )
        lost = count - len(times)
        if lost > 0:
            report.add_finding(Finding(
                Severity.WARNING,
                "connectivity",
                f"{lost} of {count} ping packets to {host} lost",
            ))

    def _dns(self, report: Report, runner, host: str):
        hostname = DNS_FALLBACK_NAME if _IP_RE.match(host) else host
        tried = False
        for argv in (['getent', 'hosts', hostname], ['host', hostname]):
            try:
                output = runner.run(argv)
            except ToolNotFound:
                continue
            except DiagnosticError as e:
                logger.debug(f"{argv[0]} failed: {e.message}")
                tried = True
                continue
            tried = True
            if output.strip():
                report.add_finding(Finding(
                    Severity.OK,
                    "dns",
                    f"DNS resolution for {hostname} OK",
                    details=output.strip().splitlines()[0],
                ))
                return
        if not tried:
            report.add_finding(Finding(Severity.INFO, "dns", "Could not verify DNS: neither getent nor host is installed"))
            return
        report.add_finding(Finding(
            Severity.WARNING,
            "dns",
            f"Could not resolve {hostname}",
            details="Check /etc/resolv.conf or your DNS server",
        ))
