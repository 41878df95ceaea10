"""
Diagnostic Module Contract

Every probe subclasses DiagnosticModule so the runner can treat them all
alike: check availability, check permissions, call run(), present the Report.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional

from .models import Report

logger = logging.getLogger(__name__)


class Permission(Enum):
    """Privileges a probe may need"""
    ROOT = "root"
    READ_PROC = "read_proc"
    READ_SYS = "read_sys"
    NET_ADMIN = "net_admin"
    PERF_EVENT = "perf_event"


_TRUE_STRINGS = ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class ModuleConfig:
    """
    Settings for one run() call.

    Attributes:
        verbose: Include low-priority detail
        watch: Running inside the polling loop
        interval: Seconds between watch iterations
        top_n: Length of ranked lists (top processes, slow services...)
        json_output: Presentation only; probes must not branch on it
        extra_args: Module-specific flags, e.g. {"host": "1.1.1.1"}
    """
    verbose: bool = False
    watch: bool = False
    interval: float = 2
    top_n: int = 10
    json_output: bool = False
    extra_args: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")
        if self.top_n <= 0:
            raise ValueError(f"top_n must be positive, got {self.top_n}")
        frozen = MappingProxyType({str(k): str(v) for k, v in dict(self.extra_args).items()})
        object.__setattr__(self, 'extra_args', frozen)

    def extra(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.extra_args.get(key, default)

    def extra_bool(self, key: str, default: bool = False) -> bool:
        value = self.extra_args.get(key)
        if value is None:
            return default
        return value.strip().lower() in _TRUE_STRINGS

    def extra_int(self, key: str, default: int = 0) -> int:
        value = self.extra_args.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Ignoring non-integer {key}={value!r}")
            return default

    def extra_float(self, key: str, default: float = 0.0) -> float:
        value = self.extra_args.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Ignoring non-numeric {key}={value!r}")
            return default

    @classmethod
    def from_env(cls, **overrides) -> 'ModuleConfig':
        """Defaults from SYSWHY_* settings, then explicit overrides"""
        from ..utils.env_config import get_config_int

        values = {
            'interval': get_config_int('SYSWHY_INTERVAL', 2),
            'top_n': get_config_int('SYSWHY_TOP', 10),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class DiagnosticModule(ABC):
    """
    Base class for all probes.

    Subclasses set `name` and `description` and implement run(). run() must
    turn partial failures (missing tool, unreadable file) into Findings and
    only raise a DiagnosticError when no meaningful Report can be built.

    Example:
        class UptimeModule(DiagnosticModule):
            name = "uptime"
            description = "How long the host has been up"

            def run(self, config):
                report = Report(self.name, "Uptime")
                ...
                report.finalize()
                return report
    """

    name: str = ""
    description: str = ""

    def __init__(self):
        if not self.name:
            raise TypeError(f"{type(self).__name__} must define a module name")

    @abstractmethod
    def run(self, config: ModuleConfig) -> Report:
        """Do the probe's work and return a finalized Report"""

    def required_permissions(self) -> FrozenSet[Permission]:
        return frozenset()

    def is_available(self) -> bool:
        """Cheap pre-check without side effects"""
        return True

    def missing_permissions(self) -> FrozenSet[Permission]:
        """Declared permissions the current process does not hold"""
        from ..utils.system import has_permission

        return frozenset(p for p in self.required_permissions() if not has_permission(p))

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"
