"""
syswhy core: report model, module contract, error taxonomy and runner.

Usage:
    from syswhy.core import ModuleConfig, run_module
    from syswhy.modules import get_module

    outcome = run_module(get_module("cpu"), ModuleConfig())
    if outcome.ok:
        print(outcome.report.overall_severity)
"""

from .errors import (
    BackendExhausted,
    CommandFailed,
    DiagnosticError,
    ErrorKind,
    ModuleUnavailable,
    NoDevicesFound,
    ParseError,
    PermissionDenied,
    ReportFinalizedError,
    ToolNotFound,
)
from .models import (
    Finding,
    Metric,
    MetricKind,
    MetricValue,
    Recommendation,
    Report,
    Severity,
    Threshold,
    classify,
)
from .module import DiagnosticModule, ModuleConfig, Permission
from .runner import (
    ModuleOutcome,
    WatchLoop,
    exit_code_for,
    install_signal_handlers,
    run_all_modules,
    run_module,
)

__all__ = [
    # Errors
    'BackendExhausted',
    'CommandFailed',
    'DiagnosticError',
    'ErrorKind',
    'ModuleUnavailable',
    'NoDevicesFound',
    'ParseError',
    'PermissionDenied',
    'ReportFinalizedError',
    'ToolNotFound',
    # Report model
    'Finding',
    'Metric',
    'MetricKind',
    'MetricValue',
    'Recommendation',
    'Report',
    'Severity',
    'Threshold',
    'classify',
    # Contract
    'DiagnosticModule',
    'ModuleConfig',
    'Permission',
    # Runner
    'ModuleOutcome',
    'WatchLoop',
    'exit_code_for',
    'install_signal_handlers',
    'run_all_modules',
    'run_module',
]
