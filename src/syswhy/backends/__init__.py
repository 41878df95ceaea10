"""
Hardware backends for vendor-diverse probes.

Usage:
    from syswhy.backends import BackendResolver, ToolRunner, discover_devices

    resolver = BackendResolver(ToolRunner())
    for device in discover_devices():
        result = resolver.collect(device)
"""

from .base import Backend, Device, GpuSample, ToolRunner, Vendor
from .resolver import (
    FALLBACK_CHAINS,
    GPU_THRESHOLDS,
    BackendResolver,
    CollectionResult,
    classify_sample,
    discover_devices,
)

__all__ = [
    'Backend',
    'BackendResolver',
    'CollectionResult',
    'Device',
    'FALLBACK_CHAINS',
    'GPU_THRESHOLDS',
    'GpuSample',
    'ToolRunner',
    'Vendor',
    'classify_sample',
    'discover_devices',
]
