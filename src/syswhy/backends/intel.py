"""Intel backend: intel_gpu_top JSON sample"""

import json
import logging

from ..core.errors import ParseError
from .base import Backend, Device, GpuSample, ToolRunner, normalize_pci_address

logger = logging.getLogger(__name__)


def _load_samples(output: str) -> list:
    """
    intel_gpu_top -J writes a JSON array that may be left unterminated when
    the tool is stopped, or bare comma-separated objects on older versions.
    """
    text = output.strip()
    if not text:
        raise ParseError("intel_gpu_top produced no output")
    if text.startswith('['):
        text = text[1:]
    text = text.rstrip().rstrip(']').rstrip().rstrip(',')
    try:
        data = json.loads(f"[{text}]")
    except ValueError as e:
        raise ParseError("intel_gpu_top output is not JSON", details=str(e))
    return [d for d in data if isinstance(d, dict)]


def parse_intel_gpu_top(output: str) -> GpuSample:
    """
    Parse intel_gpu_top -J output; the last sample wins.

    Utilization is the busiest engine (Render/3D, Video, Blitter...).
    intel_gpu_top has no memory or temperature figures.
    """
    samples = _load_samples(output)
    if not samples:
        raise ParseError("intel_gpu_top produced no samples")
    sample = samples[-1]

    engines = sample.get('engines')
    if not isinstance(engines, dict) or not engines:
        raise ParseError("intel_gpu_top sample has no engines")

    busy = []
    for engine in engines.values():
        if isinstance(engine, dict) and isinstance(engine.get('busy'), (int, float)):
            busy.append(float(engine['busy']))
    if not busy:
        raise ParseError("intel_gpu_top engines report no busy values")

    power = sample.get('power')
    power_w = None
    if isinstance(power, dict):
        value = power.get('GPU', power.get('value'))
        if isinstance(value, (int, float)):
            power_w = float(value)

    return GpuSample(utilization=round(max(busy), 1), power_w=power_w)


class IntelGpuTopBackend(Backend):
    """Primary Intel backend; usually needs root or CAP_PERFMON"""

    name = "intel_gpu_top"
    tool = "intel_gpu_top"

    def argv(self, device: Device):
        argv = ['intel_gpu_top', '-J', '-s', '500', '-n', '1']
        address = normalize_pci_address(device.pci_address)
        if address:
            argv += ['-d', f"pci:slot={address}"]
        return argv

    def collect(self, device: Device, runner: ToolRunner) -> GpuSample:
        return parse_intel_gpu_top(runner.run(self.argv(device)))
