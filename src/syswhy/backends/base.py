"""
GPU backend building blocks.

A Backend is one way of getting metrics for a device: a vendor CLI, a
community tool or raw sysfs reads. Each backend keeps its output parsing
in a single parse function so new tool output formats only touch that
function.
"""

import logging
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

from ..core.errors import DiagnosticError, ToolNotFound
from ..utils.system import run_cmd

logger = logging.getLogger(__name__)


class Vendor(Enum):
    """GPU vendors with a known PCI vendor ID, plus UNKNOWN"""
    NVIDIA = "nvidia"
    AMD = "amd"
    INTEL = "intel"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def from_pci_id(cls, vendor_id: Optional[str]) -> 'Vendor':
        """Map a sysfs vendor file value such as '0x10de' to a Vendor"""
        if not vendor_id:
            return cls.UNKNOWN
        return PCI_VENDOR_IDS.get(vendor_id.strip().lower(), cls.UNKNOWN)


PCI_VENDOR_IDS = {
    '0x10de': Vendor.NVIDIA,
    '0x1002': Vendor.AMD,
    '0x8086': Vendor.INTEL,
}

_DISPLAY_NAMES = {
    Vendor.NVIDIA: 'NVIDIA',
    Vendor.AMD: 'AMD',
    Vendor.INTEL: 'Intel',
    Vendor.UNKNOWN: 'Unknown',
}


def normalize_pci_address(address: Optional[str]) -> Optional[str]:
    """
    Canonical 'dddd:bb:dd.f' form, lower case.

    nvidia-smi prints an 8-digit domain ('00000000:01:00.0'), sysfs a
    4-digit one ('0000:01:00.0'); both normalize to the same string.
    """
    if not address:
        return None
    parts = address.strip().lower().split(':')
    if len(parts) == 2:
        parts.insert(0, '0')
    if len(parts) != 3:
        return None
    domain, bus, devfn = parts
    try:
        return f"{int(domain, 16):04x}:{int(bus, 16):02x}:{devfn}"
    except ValueError:
        return None


@dataclass(frozen=True)
class Device:
    """
    One GPU as discovered under /sys/class/drm.

    Attributes:
        index: N from cardN
        vendor: Classified vendor
        vendor_id: Raw PCI vendor ID as read, if any
        pci_address: e.g. '0000:01:00.0', None if the device link is missing
        sysfs_path: The card's device directory
        vendor_position: Position among discovered devices of the same vendor
    """
    index: int
    vendor: Vendor
    pci_address: Optional[str]
    sysfs_path: Path
    vendor_id: Optional[str] = None
    vendor_position: int = 0

    @property
    def card(self) -> str:
        return f"card{self.index}"

    @property
    def label(self) -> str:
        return f"GPU {self.index}"


def percent_of(used: Optional[float], total: Optional[float]) -> Optional[float]:
    if used is None or not total:
        return None
    return round(100.0 * used / total, 1)


@dataclass
class GpuSample:
    """Metrics one backend managed to read for one device. Any field may be missing."""
    name: Optional[str] = None
    utilization: Optional[float] = None
    memory_used_mib: Optional[float] = None
    memory_total_mib: Optional[float] = None
    memory_percent: Optional[float] = None
    temperature_c: Optional[float] = None
    power_w: Optional[float] = None

    def __post_init__(self):
        if self.memory_percent is None:
            self.memory_percent = percent_of(self.memory_used_mib, self.memory_total_mib)

    @property
    def has_data(self) -> bool:
        """True when at least one numeric metric is present"""
        return any(v is not None for v in (
            self.utilization, self.memory_used_mib, self.memory_percent,
            self.temperature_c, self.power_w,
        ))


class ToolRunner:
    """
    Executes external tools for one probe run.

    Identical argument vectors are executed once per runner; create a new
    runner for every run() so nothing is cached across runs. Failures are
    memoized as well and re-raised.
    """

    def __init__(self, timeout: Optional[float] = None,
                 which: Callable[[str], Optional[str]] = shutil.which):
        self.timeout = timeout
        self._which = which
        self._cache: Dict[Tuple[str, ...], Union[str, DiagnosticError]] = {}
        self.calls = []

    def available(self, tool: str) -> bool:
        return self._which(tool) is not None

    def run(self, argv: Sequence[str]) -> str:
        """Run argv and return stdout; raises DiagnosticError subclasses"""
        key = tuple(argv)
        if key in self._cache:
            cached = self._cache[key]
            if isinstance(cached, DiagnosticError):
                raise cached
            return cached

        self.calls.append(key)
        try:
            output = run_cmd(list(argv), timeout=self.timeout).stdout
        except DiagnosticError as e:
            self._cache[key] = e
            raise
        self._cache[key] = output
        return output


class Backend(ABC):
    """
    One way of collecting GpuSample data.

    Subclasses set `name` and `tool` (None for file-based backends) and
    implement collect(). collect() raises a DiagnosticError on failure;
    the resolver records it and moves to the next backend.
    """

    name: str = ""
    tool: Optional[str] = None

    def is_available(self, runner: ToolRunner) -> bool:
        return self.tool is None or runner.available(self.tool)

    def unavailable_reason(self) -> str:
        return ToolNotFound(self.tool).message if self.tool else "not available"

    @abstractmethod
    def collect(self, device: Device, runner: ToolRunner) -> GpuSample:
        """Read metrics for one device"""

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


def strip_unit(text, units: Sequence[str] = ('%', 'C', 'W', 'MHz')) -> Optional[float]:
    """Parse '45C' or '12 %' to a float; None for N/A markers"""
    if text is None:
        return None
    if isinstance(text, (int, float)):
        return float(text)
    value = str(text).strip()
    for unit in units:
        if value.endswith(unit):
            value = value[:-len(unit)].strip()
            break
    try:
        return float(value)
    except ValueError:
        return None
