"""NVIDIA backends: nvidia-smi CSV query and nvtop JSON snapshot"""

import json
import logging
from typing import Dict, List

from ..core.errors import ParseError
from ..utils.format import parse_size_human
from .base import Backend, Device, GpuSample, ToolRunner, normalize_pci_address, strip_unit

logger = logging.getLogger(__name__)

NVIDIA_SMI_FIELDS = (
    'pci.bus_id',
    'name',
    'utilization.gpu',
    'memory.used',
    'memory.total',
    'temperature.gpu',
    'power.draw',
)

NVIDIA_SMI_ARGS = [
    'nvidia-smi',
    f"--query-gpu={','.join(NVIDIA_SMI_FIELDS)}",
    '--format=csv,noheader,nounits',
]


def _number(text: str):
    """nvidia-smi prints '[N/A]' or '[Not Supported]' for missing values"""
    text = text.strip()
    if not text or text.startswith('['):
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_nvidia_smi(output: str) -> Dict[str, GpuSample]:
    """
    Parse nvidia-smi --query-gpu CSV output.

    Returns:
        Samples keyed by normalized PCI address, in output order
    """
    samples = {}
    for line_no, line in enumerate(output.splitlines(), 1):
        if not line.strip():
            continue
        parts = [p.strip() for p in line.split(',')]
        if len(parts) < len(NVIDIA_SMI_FIELDS):
            raise ParseError(
                f"nvidia-smi line {line_no} has {len(parts)} fields, expected {len(NVIDIA_SMI_FIELDS)}",
                details=line,
            )
        bus_id, name, util, mem_used, mem_total, temp, power = parts[:7]
        address = normalize_pci_address(bus_id) or f"row{line_no}"
        samples[address] = GpuSample(
            name=name or None,
            utilization=_number(util),
            memory_used_mib=_number(mem_used),
            memory_total_mib=_number(mem_total),
            temperature_c=_number(temp),
            power_w=_number(power),
        )
    if not samples:
        raise ParseError("nvidia-smi produced no GPU rows")
    return samples


def _pick(samples: Dict[str, GpuSample], device: Device, tool: str) -> GpuSample:
    address = normalize_pci_address(device.pci_address)
    if address and address in samples:
        return samples[address]
    if len(samples) == 1:
        return next(iter(samples.values()))
    raise ParseError(f"{tool} reported no GPU at {device.pci_address or device.card}")


class NvidiaSmiBackend(Backend):
    """Primary NVIDIA backend: one CSV row per GPU, matched by PCI bus ID"""

    name = "nvidia-smi"
    tool = "nvidia-smi"

    def collect(self, device: Device, runner: ToolRunner) -> GpuSample:
        # Same argv for every NVIDIA device; the runner executes it once per run
        samples = parse_nvidia_smi(runner.run(NVIDIA_SMI_ARGS))
        return _pick(samples, device, self.name)


def _memory_mib(value):
    """nvtop reports memory as raw bytes or with a unit suffix"""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return value / (1024 * 1024)
    size = parse_size_human(str(value))
    return size / (1024 * 1024) if size is not None else None


def parse_nvtop(output: str) -> List[dict]:
    """
    Parse `nvtop -s` JSON snapshot.

    Returns:
        One dict per GPU with utilization, memory and temperature keys
    """
    try:
        data = json.loads(output)
    except ValueError as e:
        raise ParseError("nvtop output is not JSON", details=str(e))
    if not isinstance(data, list):
        raise ParseError("nvtop output is not a device list")

    gpus = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        gpus.append({
            'name': entry.get('device_name'),
            'utilization': strip_unit(entry.get('gpu_util')),
            'temperature_c': strip_unit(entry.get('temp')),
            'power_w': strip_unit(entry.get('power_draw')),
            'memory_used_mib': _memory_mib(entry.get('mem_used')),
            'memory_total_mib': _memory_mib(entry.get('mem_total')),
            'memory_percent': strip_unit(entry.get('mem_util')),
        })
    return gpus


class NvtopBackend(Backend):
    """
    Secondary backend via nvtop.

    nvtop lists GPUs of every vendor without bus IDs; entries are matched by
    name when possible, otherwise by position among devices of this vendor.
    """

    name = "nvtop"
    tool = "nvtop"
    name_hint = "NVIDIA"

    def collect(self, device: Device, runner: ToolRunner) -> GpuSample:
        gpus = parse_nvtop(runner.run(['nvtop', '-s']))
        matching = [g for g in gpus if self.name_hint.lower() in (g.get('name') or '').lower()]
        candidates = matching or gpus
        if not candidates:
            raise ParseError("nvtop reported no GPUs")
        position = device.vendor_position if device.vendor_position < len(candidates) else None
        if position is None:
            if len(candidates) != 1:
                raise ParseError(f"nvtop has no entry for {device.card}")
            position = 0
        return GpuSample(**candidates[position])
