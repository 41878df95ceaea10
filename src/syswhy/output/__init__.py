"""Presentation adapters: rich terminal output and JSON"""

from .json_output import outcomes_to_json, report_to_json
from .terminal import TerminalRenderer, make_console

__all__ = ['TerminalRenderer', 'make_console', 'outcomes_to_json', 'report_to_json']
