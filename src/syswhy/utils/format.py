"""Human-readable formatting and parsing of sizes, durations and percentages"""

import re
from typing import Optional

_BINARY_UNITS = ['B', 'KiB', 'MiB', 'GiB', 'TiB', 'PiB']

_SIZE_FACTORS = {
    '': 1,
    'B': 1,
    'K': 1000, 'KB': 1000,
    'KI': 1024, 'KIB': 1024,
    'M': 1000 ** 2, 'MB': 1000 ** 2,
    'MI': 1024 ** 2, 'MIB': 1024 ** 2,
    'G': 1000 ** 3, 'GB': 1000 ** 3,
    'GI': 1024 ** 3, 'GIB': 1024 ** 3,
    'T': 1000 ** 4, 'TB': 1000 ** 4,
    'TI': 1024 ** 4, 'TIB': 1024 ** 4,
}

_SIZE_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*([A-Za-z]*)\s*$')


def format_bytes(num_bytes: float) -> str:
    """Format a byte count with binary units, e.g. '1.2 GiB'"""
    value = float(num_bytes)
    for unit in _BINARY_UNITS:
        if abs(value) < 1024 or unit == _BINARY_UNITS[-1]:
            if unit == 'B':
                return f"{int(value)} B"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} PiB"


def format_duration(seconds: float) -> str:
    """Format seconds compactly, e.g. '3h 24m' or '1.52s'"""
    if seconds < 60:
        return f"{seconds:.2f}s"
    total = int(seconds)
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs and not days:
        parts.append(f"{secs}s")
    return ' '.join(parts)


def parse_size_human(text: str) -> Optional[int]:
    """Parse sizes like '100M', '1G' or '512KiB' into bytes.

    Decimal suffixes (K, M, G, T) are powers of 1000; 'i' suffixes are
    powers of 1024. Returns None if the text is not a size.
    """
    match = _SIZE_RE.match(text or '')
    if not match:
        return None
    number, suffix = match.groups()
    factor = _SIZE_FACTORS.get(suffix.upper())
    if factor is None:
        return None
    return int(float(number) * factor)


def parse_systemd_duration(text: str) -> Optional[float]:
    """Parse systemd-analyze durations such as '1min 2.345s' or '812ms' into seconds"""
    units = {'ms': 0.001, 's': 1.0, 'min': 60.0, 'h': 3600.0}
    total = 0.0
    found = False
    for number, unit in re.findall(r'(\d+(?:\.\d+)?)(ms|min|s|h)\b', text or ''):
        total += float(number) * units[unit]
        found = True
    return total if found else None
