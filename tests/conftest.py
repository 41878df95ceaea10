"""
Shared fixtures: fake tool runners and fake /proc and /sys trees.

Nothing here touches the host's real hardware or executes real tools.
"""

import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from syswhy.backends.base import ToolRunner
from syswhy.core.errors import CommandFailed, ToolNotFound


class FakeRunner(ToolRunner):
    """
    ToolRunner answering from a table instead of spawning processes.

    outputs maps an argv tuple (exact match) or a program name to stdout
    text, or to an exception instance to raise. Programs listed in
    outputs (or in `tools`) count as installed.
    """

    def __init__(self, outputs=None, tools=None):
        self.outputs = dict(outputs or {})
        installed = set(tools or ())
        for key in self.outputs:
            installed.add(key[0] if isinstance(key, tuple) else key)
        self.installed = installed
        super().__init__(which=lambda tool: f"/usr/bin/{tool}" if tool in self.installed else None)

    def run(self, argv):
        key = tuple(argv)
        self.calls.append(key)
        if argv[0] not in self.installed:
            raise ToolNotFound(argv[0])
        result = self.outputs.get(key, self.outputs.get(argv[0]))
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise CommandFailed(f"{argv[0]} exited with status 1", returncode=1)
        return result


def write_tree(root: Path, files: dict) -> Path:
    """Create files from {relative path: content}"""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def make_drm_card(sys_root: Path, index: int, vendor_id: str, pci_address: str, attributes=None) -> Path:
    """
    Build /sys/class/drm/cardN -> device symlink the way the kernel lays it out.

    Returns the PCI device directory.
    """
    device_dir = sys_root / 'devices' / 'pci0000:00' / pci_address
    device_dir.mkdir(parents=True, exist_ok=True)
    (device_dir / 'vendor').write_text(f"{vendor_id}\n")
    for relative, content in (attributes or {}).items():
        path = device_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)

    card_dir = sys_root / 'class' / 'drm' / f"card{index}"
    card_dir.mkdir(parents=True, exist_ok=True)
    os.symlink(device_dir, card_dir / 'device')
    return device_dir


@pytest.fixture
def fake_runner():
    """Factory for FakeRunner instances"""
    return FakeRunner


@pytest.fixture
def sys_root(tmp_path):
    root = tmp_path / 'sys'
    root.mkdir()
    return root


@pytest.fixture
def proc_root(tmp_path):
    root = tmp_path / 'proc'
    root.mkdir()
    return root


@pytest.fixture
def no_tools():
    """runner_factory for probes that must not find any external tool"""
    return lambda: FakeRunner()
