"""
Built-in diagnostic modules.

The registry order is the order `syswhy all` reports in.

Usage:
    from syswhy.modules import get_module, all_modules

    cpu = get_module("cpu")
    probes = all_modules(sys_root="/tmp/fake-sys")
"""

from typing import List

from ..core.module import DiagnosticModule
from .base import ProbeModule, add_threshold_metric
from .batt import BattModule
from .boot import BootModule
from .cpu import CpuModule
from .disk import DiskModule
from .fan import FanModule
from .gpu import GpuModule
from .io import IoModule
from .mem import MemModule
from .mount import MountModule
from .net import NetModule
from .sleep import SleepModule
from .temp import TempModule
from .usb import UsbModule

MODULE_CLASSES = (
    BootModule,
    CpuModule,
    MemModule,
    DiskModule,
    IoModule,
    NetModule,
    FanModule,
    TempModule,
    GpuModule,
    BattModule,
    SleepModule,
    UsbModule,
    MountModule,
)

_BY_NAME = {cls.name: cls for cls in MODULE_CLASSES}


def module_names() -> List[str]:
    return [cls.name for cls in MODULE_CLASSES]


def get_module(name: str, **kwargs) -> DiagnosticModule:
    """
    Instantiate a module by name.

    Keyword arguments (proc_root, sys_root, runner_factory) are passed to
    the module constructor.

    Raises:
        KeyError: Unknown module name
    """
    try:
        cls = _BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown module '{name}'. Available: {', '.join(module_names())}") from None
    return cls(**kwargs)


def all_modules(**kwargs) -> List[DiagnosticModule]:
    """One instance of every module, in registration order"""
    return [cls(**kwargs) for cls in MODULE_CLASSES]


__all__ = [
    'MODULE_CLASSES',
    'ProbeModule',
    'add_threshold_metric',
    'all_modules',
    'get_module',
    'module_names',
] + [cls.__name__ for cls in MODULE_CLASSES]
