"""
Error taxonomy for diagnostic probes.

Only a probe's own run() decides a condition is fatal for that probe; it does
so by raising one of these. Everything else degrades to a Finding.
"""

from enum import Enum
from typing import List, Optional, Tuple


class ErrorKind(Enum):
    """Kinds of probe failures, as shown to the user."""
    TOOL_NOT_FOUND = "tool_not_found"
    PERMISSION_DENIED = "permission_denied"
    PARSE_ERROR = "parse_error"
    COMMAND_FAILED = "command_failed"
    BACKEND_EXHAUSTED = "backend_exhausted"
    NO_DEVICES_FOUND = "no_devices_found"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"


class DiagnosticError(Exception):
    """Base exception for probe failures."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class ToolNotFound(DiagnosticError):
    """A required external executable is not on PATH."""

    kind = ErrorKind.TOOL_NOT_FOUND

    def __init__(self, tool: str, details: Optional[str] = None):
        super().__init__(f"{tool} not found", details)
        self.tool = tool


class PermissionDenied(DiagnosticError):
    """A privileged kernel interface or tool could not be read."""

    kind = ErrorKind.PERMISSION_DENIED


class ParseError(DiagnosticError):
    """Tool or kernel output did not have the expected shape."""

    kind = ErrorKind.PARSE_ERROR


class CommandFailed(DiagnosticError):
    """An external tool exited with a non-zero status."""

    kind = ErrorKind.COMMAND_FAILED

    def __init__(self, message: str, returncode: int, details: Optional[str] = None):
        super().__init__(message, details)
        self.returncode = returncode


class BackendExhausted(DiagnosticError):
    """Every backend in a vendor fallback chain failed."""

    kind = ErrorKind.BACKEND_EXHAUSTED

    def __init__(self, message: str, attempts: List[Tuple[str, str]] = None):
        self.attempts = list(attempts or [])
        details = "; ".join(f"{name}: {reason}" for name, reason in self.attempts) or None
        super().__init__(message, details)


class NoDevicesFound(DiagnosticError):
    """Zero devices of the relevant class exist. Probes degrade it to an Info Finding."""

    kind = ErrorKind.NO_DEVICES_FOUND


class ModuleUnavailable(DiagnosticError):
    """The module cannot run on this host at all; becomes the skipped report's Finding."""

    kind = ErrorKind.UNAVAILABLE


class ReportFinalizedError(RuntimeError):
    """A report was modified after its overall severity was computed.

    This is a programming error in a probe, never a host condition.
    """
