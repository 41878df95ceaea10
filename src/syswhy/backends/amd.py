"""AMD backends: rocm-smi JSON and radeontop dump"""

import json
import logging
import re
from typing import Dict

from ..core.errors import ParseError
from .base import Backend, Device, GpuSample, ToolRunner, normalize_pci_address, percent_of

logger = logging.getLogger(__name__)

ROCM_SMI_ARGS = [
    'rocm-smi',
    '--showuse',
    '--showtemp',
    '--showmeminfo', 'vram',
    '--showbus',
    '--showproductname',
    '--json',
]

_MIB = 1024 * 1024


def _find(entry: dict, *prefixes):
    """First value whose key starts with one of the prefixes"""
    for prefix in prefixes:
        for key, value in entry.items():
            if key.startswith(prefix):
                return value
    return None


def _float(value):
    if value is None:
        return None
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def parse_rocm_smi(output: str) -> Dict[str, GpuSample]:
    """
    Parse `rocm-smi --json` output.

    Returns:
        Samples keyed by normalized PCI bus (or by 'cardN' when the bus is
        not reported)
    """
    try:
        data = json.loads(output)
    except ValueError as e:
        raise ParseError("rocm-smi output is not JSON", details=str(e))
    if not isinstance(data, dict):
        raise ParseError("rocm-smi output is not an object")

    samples = {}
    for card, entry in data.items():
        if not card.startswith('card') or not isinstance(entry, dict):
            continue
        used = _float(_find(entry, 'VRAM Total Used Memory'))
        total = _float(_find(entry, 'VRAM Total Memory'))
        sample = GpuSample(
            name=_find(entry, 'Card series', 'Card model', 'Card SKU'),
            utilization=_float(_find(entry, 'GPU use')),
            memory_used_mib=used / _MIB if used is not None else None,
            memory_total_mib=total / _MIB if total is not None else None,
            temperature_c=_float(_find(entry, 'Temperature (Sensor edge)', 'Temperature')),
            power_w=_float(_find(entry, 'Average Graphics Package Power', 'Current Socket Graphics Package Power')),
        )
        key = normalize_pci_address(_find(entry, 'PCI Bus')) or card
        samples[key] = sample

    if not samples:
        raise ParseError("rocm-smi reported no cards")
    return samples


class RocmSmiBackend(Backend):
    """Primary AMD backend"""

    name = "rocm-smi"
    tool = "rocm-smi"

    def collect(self, device: Device, runner: ToolRunner) -> GpuSample:
        samples = parse_rocm_smi(runner.run(ROCM_SMI_ARGS))
        address = normalize_pci_address(device.pci_address)
        for key in (address, device.card):
            if key and key in samples:
                return samples[key]
        if len(samples) == 1:
            return next(iter(samples.values()))
        raise ParseError(f"rocm-smi reported no GPU at {device.pci_address or device.card}")


_RADEONTOP_GPU = re.compile(r'\bgpu\s+([\d.]+)%')
_RADEONTOP_VRAM = re.compile(r'\bvram\s+([\d.]+)%\s+([\d.]+)mb')


def parse_radeontop(output: str) -> GpuSample:
    """
    Parse one radeontop dump line, e.g.

        1700000000.1: bus 03, gpu 12.50%, ee 0.00%, ..., vram 5.32% 435.52mb, ...
    """
    lines = [line for line in output.splitlines() if _RADEONTOP_GPU.search(line)]
    if not lines:
        raise ParseError("radeontop output has no gpu field", details=output.strip()[:200] or None)
    line = lines[-1]

    utilization = float(_RADEONTOP_GPU.search(line).group(1))
    memory_percent = memory_used = memory_total = None
    vram = _RADEONTOP_VRAM.search(line)
    if vram:
        memory_percent = float(vram.group(1))
        memory_used = float(vram.group(2))
        if memory_percent > 0:
            memory_total = round(memory_used * 100.0 / memory_percent, 1)

    return GpuSample(
        utilization=utilization,
        memory_used_mib=memory_used,
        memory_total_mib=memory_total,
        memory_percent=memory_percent if memory_percent is not None else percent_of(memory_used, memory_total),
    )


class RadeontopBackend(Backend):
    """Secondary AMD backend: a single radeontop sample on stdout"""

    name = "radeontop"
    tool = "radeontop"

    def argv(self, device: Device):
        argv = ['radeontop', '-d', '-', '-l', '1']
        address = normalize_pci_address(device.pci_address)
        if address:
            argv += ['-b', address.split(':')[1]]
        return argv

    def collect(self, device: Device, runner: ToolRunner) -> GpuSample:
        return parse_radeontop(runner.run(self.argv(device)))
