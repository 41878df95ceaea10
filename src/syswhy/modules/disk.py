"""Disk space probe: filesystem usage, large directories, large and old files"""

import logging
import os
import shutil
import stat
import time
from collections import defaultdict

from ..core.models import Finding, Metric, Recommendation, Report, Severity, Threshold
from ..core.module import ModuleConfig
from ..utils.format import format_bytes, parse_size_human
from .base import ProbeModule, add_threshold_metric

logger = logging.getLogger(__name__)

FILESYSTEM_THRESHOLD = Threshold(warning=85.0, critical=95.0)
MAX_DEPTH = 5
LARGE_DIRECTORY_BYTES = 100 * 1024 * 1024
CLEANUP_HINT_BYTES = 50 * 1024 ** 3


class DiskModule(ProbeModule):
    """
    Walks extra_args['path'] (default /) up to `depth` levels (at most 5).

    Options: hidden (include dot files), large (size such as 100M),
    old (days since last modification).
    """

    name = "disk"
    description = "Analyze disk space usage and find large or old files"

    def run(self, config: ModuleConfig) -> Report:
        root = config.extra('path', '/')
        depth = min(max(config.extra_int('depth', 3), 0), MAX_DEPTH)
        include_hidden = config.extra_bool('hidden')
        large_text = config.extra('large')
        large_bytes = parse_size_human(large_text) if large_text else None
        old_days = config.extra_int('old', 0) or None

        report = Report(self.name, "Disk space analysis")

        if not os.path.exists(root):
            report.add_finding(Finding(Severity.CRITICAL, "disk", f"Path does not exist: {root}"))
            report.finalize()
            return report
        if large_text and large_bytes is None:
            report.add_finding(Finding(Severity.INFO, "disk", f"Ignoring unrecognized size {large_text!r}"))

        report.add_metric(Metric("Path analyzed", root))

        try:
            usage = shutil.disk_usage(root)
        except OSError as e:
            logger.debug(f"disk_usage({root}) failed: {e}")
        else:
            percent = round(100.0 * usage.used / usage.total, 1) if usage.total else 0.0
            add_threshold_metric(
                report, "Filesystem used", percent, "%", FILESYSTEM_THRESHOLD, "filesystem",
                "Filesystem holding " + root.replace('{', '{{').replace('}', '}}')
                + " is {value:.1f}% full (threshold {limit:g}%)",
            )
            report.add_metric(Metric("Filesystem free", format_bytes(usage.free)))

        total, dir_sizes, large_files, old_files, errors = self._walk(
            root, depth, include_hidden, large_bytes, old_days)

        report.add_metric(Metric("Total size (sampled)", format_bytes(total)))
        if errors:
            report.add_metric(Metric("Unreadable entries", errors))

        large_files.sort(reverse=True)
        for size, path in large_files[:config.top_n]:
            report.add_finding(Finding(
                Severity.INFO, "file", f"{path}: {format_bytes(size)}",
                details="Consider moving or compressing",
            ))

        old_files.sort()
        for mtime, path in old_files[:config.top_n]:
            age_days = int((time.time() - mtime) / 86400)
            report.add_finding(Finding(
                Severity.INFO, "file", f"{path} not modified for {age_days} days",
            ))

        for path, size in sorted(dir_sizes.items(), key=lambda item: item[1], reverse=True)[:10]:
            if size > LARGE_DIRECTORY_BYTES:
                report.add_finding(Finding(Severity.INFO, "directory", f"{path} uses {format_bytes(size)}"))

        if total > CLEANUP_HINT_BYTES:
            report.add_recommendation(Recommendation(
                priority=2,
                action="Review large directories such as /var/log and caches, and clean old data",
                command=['du', '-sh', '--max-depth=1', root],
                explanation="Logs and caches often consume significant space",
            ))

        report.finalize()
        return report

    def _walk(self, root, depth, include_hidden, large_bytes, old_days):
        total = 0
        errors = 0
        dir_sizes = defaultdict(int)
        large_files = []
        old_files = []
        cutoff = time.time() - old_days * 86400 if old_days else None
        base_depth = root.rstrip(os.sep).count(os.sep)

        def on_error(_):
            nonlocal errors
            errors += 1

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            level = dirpath.rstrip(os.sep).count(os.sep) - base_depth
            if not include_hidden:
                dirnames[:] = [d for d in dirnames if not d.startswith('.')]
            if level >= depth - 1:
                dirnames[:] = []
            if level >= depth:
                continue

            for filename in filenames:
                if not include_hidden and filename.startswith('.'):
                    continue
                path = os.path.join(dirpath, filename)
                try:
                    st = os.lstat(path)
                except OSError:
                    errors += 1
                    continue
                if not stat.S_ISREG(st.st_mode):
                    continue
                total += st.st_size
                dir_sizes[dirpath] += st.st_size
                if large_bytes is not None and st.st_size >= large_bytes:
                    large_files.append((st.st_size, path))
                if cutoff is not None and st.st_mtime < cutoff:
                    old_files.append((st.st_mtime, path))

        return total, dir_sizes, large_files, old_files, errors
