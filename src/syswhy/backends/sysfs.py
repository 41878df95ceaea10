"""Raw sysfs/hwmon backend, the last resort for every vendor"""

import logging
from pathlib import Path

from ..core.errors import ParseError
from ..utils.files import list_dir, read_int
from .base import Backend, Device, GpuSample, ToolRunner

logger = logging.getLogger(__name__)

_MIB = 1024 * 1024


def _first_hwmon_value(device_path: Path, attribute: str):
    for hwmon in list_dir(device_path / 'hwmon'):
        value = read_int(hwmon / attribute)
        if value is not None:
            return value
    return None


def parse_sysfs(device_path: Path) -> GpuSample:
    """
    Read whatever the kernel driver exposes under the card's device dir.

    amdgpu provides gpu_busy_percent and mem_info_vram_*; most drivers
    provide an hwmon temperature. Raises ParseError if nothing is readable.
    """
    device_path = Path(device_path)
    if not device_path.is_dir():
        raise ParseError(f"{device_path} does not exist")

    busy = read_int(device_path / 'gpu_busy_percent')
    used = read_int(device_path / 'mem_info_vram_used')
    total = read_int(device_path / 'mem_info_vram_total')
    temp = _first_hwmon_value(device_path, 'temp1_input')
    power = _first_hwmon_value(device_path, 'power1_average')

    sample = GpuSample(
        utilization=float(busy) if busy is not None else None,
        memory_used_mib=used / _MIB if used is not None else None,
        memory_total_mib=total / _MIB if total is not None else None,
        # hwmon units: millidegrees Celsius, microwatts
        temperature_c=temp / 1000.0 if temp is not None else None,
        power_w=power / 1_000_000.0 if power is not None else None,
    )
    if not sample.has_data:
        raise ParseError(f"no GPU metrics exposed under {device_path}")
    return sample


class SysfsBackend(Backend):
    """Reads kernel attribute files directly; no external tool needed"""

    name = "sysfs"
    tool = None

    def collect(self, device: Device, runner: ToolRunner) -> GpuSample:
        return parse_sysfs(device.sysfs_path)
