"""
syswhy - explain WHY a Linux host behaves the way it does.

Probes read kernel and vendor interfaces and turn what they see into
findings, metrics and recommendations.

Usage:
    from syswhy.core import ModuleConfig, run_module
    from syswhy.modules import get_module

    outcome = run_module(get_module("gpu"), ModuleConfig())
    print(outcome.report.summary)
"""

from .__version__ import __version__

__all__ = ['__version__']
