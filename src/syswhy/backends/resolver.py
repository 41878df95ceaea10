"""
GPU backend resolution.

Per device: discover under /sys/class/drm, classify the vendor from its
PCI ID, walk that vendor's fallback chain until one backend returns data,
then classify the metrics against GPU_THRESHOLDS. Missing tools, unknown
vendors and partial metrics are normal outcomes, never errors.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.errors import BackendExhausted, DiagnosticError
from ..core.models import Severity, Threshold
from ..utils.files import list_dir, read_first_line
from .amd import RadeontopBackend, RocmSmiBackend
from .base import Backend, Device, GpuSample, ToolRunner, Vendor
from .intel import IntelGpuTopBackend
from .nvidia import NvidiaSmiBackend, NvtopBackend
from .sysfs import SysfsBackend

logger = logging.getLogger(__name__)

# Ordered, first success wins
FALLBACK_CHAINS: Dict[Vendor, Tuple[Backend, ...]] = {
    Vendor.NVIDIA: (NvidiaSmiBackend(), NvtopBackend(), SysfsBackend()),
    Vendor.AMD: (RocmSmiBackend(), RadeontopBackend(), SysfsBackend()),
    Vendor.INTEL: (IntelGpuTopBackend(), SysfsBackend()),
    Vendor.UNKNOWN: (SysfsBackend(),),
}

# Suggested when a vendor's chain is exhausted
INSTALL_HINTS = {
    Vendor.NVIDIA: "Install the NVIDIA driver utilities (nvidia-smi) or nvtop",
    Vendor.AMD: "Install rocm-smi or radeontop",
    Vendor.INTEL: "Install intel-gpu-tools (intel_gpu_top)",
    Vendor.UNKNOWN: "Install the vendor's GPU monitoring tool",
}

# More is worse for all three
GPU_THRESHOLDS = {
    'utilization': Threshold(warning=80.0, critical=95.0),
    'memory_percent': Threshold(warning=85.0, critical=95.0),
    'temperature_c': Threshold(warning=75.0, critical=85.0),
}

METRIC_LABELS = {
    'utilization': ('utilization', '%'),
    'memory_percent': ('memory used', '%'),
    'temperature_c': ('temperature', '°C'),
}

_CARD_RE = re.compile(r'^card(\d+)$')


def discover_devices(sys_root: str = '/sys') -> List[Device]:
    """
    Enumerate cardN entries under <sys_root>/class/drm.

    Connector entries (card0-HDMI-A-1) are skipped. A missing drm directory
    yields an empty list.
    """
    drm = Path(sys_root) / 'class' / 'drm'
    cards = []
    for entry in list_dir(drm):
        match = _CARD_RE.match(entry.name)
        if match:
            cards.append((int(match.group(1)), entry))
    cards.sort()

    devices = []
    positions: Dict[Vendor, int] = {}
    for index, entry in cards:
        device_path = entry / 'device'
        vendor_id = read_first_line(device_path / 'vendor')
        vendor = Vendor.from_pci_id(vendor_id)

        pci_address = None
        if device_path.exists():
            pci_address = os.path.basename(os.path.realpath(device_path))
            if ':' not in pci_address:
                pci_address = None

        devices.append(Device(
            index=index,
            vendor=vendor,
            pci_address=pci_address,
            sysfs_path=device_path,
            vendor_id=vendor_id,
            vendor_position=positions.get(vendor, 0),
        ))
        positions[vendor] = positions.get(vendor, 0) + 1

    logger.debug(f"Discovered {len(devices)} GPU device(s) under {drm}")
    return devices


@dataclass
class CollectionResult:
    """Outcome of walking one device's fallback chain"""
    device: Device
    sample: Optional[GpuSample] = None
    backend: Optional[str] = None
    attempts: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.sample is None

    def exhaustion_error(self) -> BackendExhausted:
        return BackendExhausted(
            f"All {self.device.vendor.display_name} backends failed for {self.device.card}",
            attempts=self.attempts,
        )


class BackendResolver:
    """
    Walks vendor fallback chains.

    Args:
        runner: ToolRunner for this probe run
        chains: Vendor to ordered backends (default FALLBACK_CHAINS)
    """

    def __init__(self, runner: ToolRunner, chains: Optional[Dict[Vendor, Sequence[Backend]]] = None):
        self.runner = runner
        self.chains = chains if chains is not None else FALLBACK_CHAINS

    def chain_for(self, vendor: Vendor) -> Sequence[Backend]:
        return self.chains.get(vendor) or self.chains.get(Vendor.UNKNOWN, ())

    def collect(self, device: Device) -> CollectionResult:
        result = CollectionResult(device=device)

        for backend in self.chain_for(device.vendor):
            if not backend.is_available(self.runner):
                result.attempts.append((backend.name, backend.unavailable_reason()))
                continue
            try:
                sample = backend.collect(device, self.runner)
            except DiagnosticError as e:
                logger.debug(f"{device.card}: {backend.name} failed: {e.message}")
                result.attempts.append((backend.name, e.message))
                continue
            if not sample.has_data:
                result.attempts.append((backend.name, "returned no metrics"))
                continue

            result.sample = sample
            result.backend = backend.name
            logger.debug(f"{device.card}: metrics from {backend.name}")
            return result

        logger.info(f"{device.card}: every backend failed ({len(result.attempts)} tried)")
        return result


def classify_sample(sample: GpuSample) -> List[Tuple[str, float, Threshold, Severity]]:
    """Classify each available metric of a sample independently"""
    classified = []
    for key, threshold in GPU_THRESHOLDS.items():
        value = getattr(sample, key)
        if value is None:
            continue
        classified.append((key, value, threshold, threshold.classify(value)))
    return classified
