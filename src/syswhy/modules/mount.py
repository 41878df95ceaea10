"""Mount probe: read-only and NFS mounts, mount options, fstab"""

import logging
from pathlib import Path

from ..core.errors import PermissionDenied
from ..core.models import Finding, Metric, Recommendation, Report, Severity
from ..core.module import ModuleConfig
from ..utils.files import read_file_optional
from .base import ProbeModule

logger = logging.getLogger(__name__)

NFS_TYPES = ('nfs', 'nfs4')
PSEUDO_DEVICES = ('tmpfs', 'cgroup', 'proc', 'sysfs', 'devtmpfs', 'squashfs')
MAX_LISTED = 5


def parse_mounts(content: str):
    """(device, mountpoint, fstype, options list) per /proc/mounts line"""
    mounts = []
    for line in content.splitlines():
        fields = line.split()
        if len(fields) < 4:
            continue
        # /proc/mounts escapes spaces as \040
        mountpoint = fields[1].replace('\\040', ' ')
        mounts.append((fields[0], mountpoint, fields[2], fields[3].split(',')))
    return mounts


class MountModule(ProbeModule):
    """Options: mountpoint (substring filter), nfs, options."""

    name = "mount"
    description = "Diagnose mount point issues and filesystem checks"

    def __init__(self, *args, fstab_path: str = '/etc/fstab', **kwargs):
        super().__init__(*args, **kwargs)
        self.fstab_path = Path(fstab_path)

    def is_available(self) -> bool:
        return self.procfs('mounts').exists()

    def run(self, config: ModuleConfig) -> Report:
        content = read_file_optional(self.procfs('mounts'))
        if content is None:
            raise PermissionDenied(f"Cannot read {self.procfs('mounts')}")

        report = Report(self.name, "Mount diagnostics")
        mountpoint_filter = config.extra('mountpoint')
        check_nfs = config.extra_bool('nfs')
        show_options = config.extra_bool('options')

        count = 0
        read_only = []
        nfs = []
        for device, mountpoint, fstype, options in parse_mounts(content):
            if mountpoint_filter and mountpoint_filter not in mountpoint:
                continue
            count += 1

            if 'ro' in options and fstype not in PSEUDO_DEVICES and not device.startswith(PSEUDO_DEVICES):
                read_only.append(f"{device} on {mountpoint}")
            if check_nfs and fstype in NFS_TYPES:
                nfs.append(f"{mountpoint} ({','.join(options)})")
            if show_options and mountpoint.startswith('/') and len(mountpoint) <= 50:
                report.add_metric(Metric(mountpoint, ','.join(options)))

        report.add_metric(Metric("Mount count", count))

        for entry in read_only[:MAX_LISTED]:
            report.add_finding(Finding(Severity.INFO, "mount", f"Read-only: {entry}"))
        for entry in nfs[:MAX_LISTED]:
            report.add_finding(Finding(Severity.INFO, "nfs", entry, details="Check the NFS server and network"))

        fstab = read_file_optional(self.fstab_path)
        if fstab is not None:
            entries = [l for l in fstab.splitlines() if l.strip() and not l.strip().startswith('#')]
            report.add_metric(Metric("fstab entries", len(entries)))

        if not report.findings and not show_options:
            report.summary = "Mounts look normal"

        report.add_recommendation(Recommendation(
            priority=3,
            action="Show the full mount tree with options",
            command=['findmnt'],
            explanation="Shows hierarchy and options of every mount",
        ))

        report.finalize()
        return report
