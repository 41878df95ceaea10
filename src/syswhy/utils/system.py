"""System utilities: privilege checks, host information and external commands"""

import logging
import os
import platform
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import distro
import psutil

from ..core.errors import CommandFailed, PermissionDenied, ToolNotFound
from .env_config import get_config_float

logger = logging.getLogger(__name__)


def check_root():
    """Check if running with root privileges"""
    return os.geteuid() == 0


def can_read_proc(proc_root: str = '/proc') -> bool:
    """Check /proc is mounted and readable"""
    try:
        with open(os.path.join(proc_root, 'self', 'status'), 'r') as f:
            f.read(1)
        return True
    except OSError:
        return False


def can_read_sys(sys_root: str = '/sys') -> bool:
    """Check /sys/class can be listed"""
    try:
        os.listdir(os.path.join(sys_root, 'class'))
        return True
    except OSError:
        return False


# NetAdmin and PerfEvent are approximated by root; capability sets are not inspected.
_PERMISSION_CHECKS = {
    'root': check_root,
    'read_proc': can_read_proc,
    'read_sys': can_read_sys,
    'net_admin': check_root,
    'perf_event': check_root,
}


def has_permission(permission) -> bool:
    """Check whether the current process holds a core.module.Permission"""
    check = _PERMISSION_CHECKS.get(permission.value)
    if check is None:
        return False
    return check()


def get_system_info():
    """Get host information for report headers"""
    info = {}

    info['hostname'] = platform.node() or 'unknown'
    info['os'] = distro.name(pretty=True) or 'Unknown Linux'
    info['os_version'] = distro.version() or 'Unknown'
    info['kernel'] = platform.release()
    info['arch'] = platform.machine()
    info['python'] = platform.python_version()
    info['root'] = check_root()
    info['uptime'] = max(time.time() - psutil.boot_time(), 0.0)
    info['memory_total'] = psutil.virtual_memory().total

    return info


@dataclass
class CommandOutput:
    """Captured result of an external command"""
    argv: Sequence[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


def default_timeout() -> float:
    """Timeout applied to every external tool, in seconds"""
    return get_config_float('SYSWHY_TOOL_TIMEOUT', 10.0)


def run_cmd(argv: Sequence[str], timeout: Optional[float] = None, check: bool = True) -> CommandOutput:
    """
    Run an external tool with an explicit argument list.

    Never goes through a shell. A missing executable is detected before
    spawning and raised as ToolNotFound.

    Args:
        argv: Program and arguments
        timeout: Seconds before the tool is killed (default SYSWHY_TOOL_TIMEOUT)
        check: Raise CommandFailed on a non-zero exit status

    Raises:
        ToolNotFound: executable not on PATH
        PermissionDenied: executable or its resources not accessible
        CommandFailed: non-zero exit (when check=True) or timeout
    """
    if not argv:
        raise ValueError("run_cmd requires at least one argument")

    argv = [str(a) for a in argv]
    executable = shutil.which(argv[0])
    if executable is None:
        raise ToolNotFound(argv[0])

    if timeout is None:
        timeout = default_timeout()

    logger.debug(f"Running: {argv}")
    try:
        result = subprocess.run(
            [executable] + argv[1:],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise CommandFailed(f"{argv[0]} timed out after {timeout:g}s", returncode=-1)
    except PermissionError as e:
        raise PermissionDenied(f"Cannot execute {argv[0]}", details=str(e))
    except FileNotFoundError:
        # Removed between which() and exec
        raise ToolNotFound(argv[0])

    output = CommandOutput(
        argv=argv,
        returncode=result.returncode,
        stdout=result.stdout or '',
        stderr=result.stderr or '',
    )

    if check and not output.success:
        raise CommandFailed(
            f"{argv[0]} exited with status {result.returncode}",
            returncode=result.returncode,
            details=output.stderr.strip() or None,
        )

    return output
