"""Helpers for reading kernel pseudo-files under /proc and /sys.

Every helper is read-only and returns None (or an empty collection) for a
missing or unreadable file, so probes can skip a metric instead of failing.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_file_optional(path: PathLike) -> Optional[str]:
    """Read a whole file, None if it is absent or unreadable"""
    try:
        with open(path, 'r', errors='replace') as f:
            return f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return None


def read_first_line(path: PathLike) -> Optional[str]:
    """Read the first line of a file, stripped (typical for sysfs attributes)"""
    content = read_file_optional(path)
    if content is None:
        return None
    lines = content.splitlines()
    return lines[0].strip() if lines else ''


def read_int(path: PathLike) -> Optional[int]:
    """Read an integer attribute; hex values with a 0x prefix are accepted"""
    line = read_first_line(path)
    if not line:
        return None
    try:
        return int(line, 0) if line.lower().startswith('0x') else int(line)
    except ValueError:
        return None


def list_dir(path: PathLike) -> List[Path]:
    """Sorted directory entries, empty if the directory does not exist"""
    path = Path(path)
    try:
        return sorted(path.iterdir())
    except OSError:
        return []


def parse_key_value(line: str):
    """Split 'Key:   1234 kB' into ('Key', '1234'); None if there is no colon"""
    key, sep, rest = line.partition(':')
    if not sep:
        return None
    fields = rest.split()
    if not fields:
        return None
    return key.strip(), fields[0]


def parse_key_value_file(path: PathLike) -> Dict[str, int]:
    """Parse /proc/meminfo-style files into integers (units dropped)"""
    values = {}
    content = read_file_optional(path)
    if content is None:
        return values
    for line in content.splitlines():
        pair = parse_key_value(line)
        if pair is None:
            continue
        try:
            values[pair[0]] = int(pair[1])
        except ValueError:
            continue
    return values


# === Per-process readers ===

def list_pids(proc_root: PathLike = '/proc') -> List[int]:
    """Numeric entries of /proc"""
    pids = []
    try:
        names = os.listdir(proc_root)
    except OSError:
        return pids
    for name in names:
        if name.isdigit():
            pids.append(int(name))
    return sorted(pids)


def process_name(pid: int, proc_root: PathLike = '/proc') -> str:
    """Process name from comm, falling back to the first cmdline word"""
    base = Path(proc_root) / str(pid)
    name = read_first_line(base / 'comm')
    if not name:
        cmdline = read_file_optional(base / 'cmdline') or ''
        words = cmdline.replace('\0', ' ').split()
        name = words[0] if words else ''
    return name or f"[pid {pid}]"


def parse_status(pid: int, proc_root: PathLike = '/proc') -> Dict[str, str]:
    """Key/value pairs of /proc/<pid>/status"""
    status = {}
    content = read_file_optional(Path(proc_root) / str(pid) / 'status')
    if content is None:
        return status
    for line in content.splitlines():
        key, sep, value = line.partition(':')
        if sep:
            status[key.strip()] = value.strip()
    return status
