"""
Tests for pseudo-file readers and human-readable formatting.

Run: python3 -m pytest tests/test_utils.py -v
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from conftest import write_tree
from syswhy.utils.files import (
    list_dir,
    list_pids,
    parse_key_value,
    parse_key_value_file,
    parse_status,
    process_name,
    read_file_optional,
    read_first_line,
    read_int,
)
from syswhy.utils.format import format_bytes, format_duration, parse_size_human, parse_systemd_duration


class TestFileReaders:
    """Tests for read_* helpers."""

    def test_missing_file(self, tmp_path):
        assert read_file_optional(tmp_path / 'absent') is None
        assert read_first_line(tmp_path / 'absent') is None
        assert read_int(tmp_path / 'absent') is None

    def test_first_line_stripped(self, tmp_path):
        path = tmp_path / 'type'
        path.write_text("  Battery  \nsecond\n")
        assert read_first_line(path) == 'Battery'

    def test_read_int_hex(self, tmp_path):
        """Test PCI vendor IDs such as 0x10de parse as hex."""
        path = tmp_path / 'vendor'
        path.write_text("0x10de\n")
        assert read_int(path) == 0x10de

    def test_read_int_garbage(self, tmp_path):
        path = tmp_path / 'capacity'
        path.write_text("unknown\n")
        assert read_int(path) is None

    def test_directory_is_unreadable(self, tmp_path):
        assert read_file_optional(tmp_path) is None

    def test_list_dir_sorted(self, tmp_path):
        for name in ('hwmon2', 'hwmon0', 'hwmon1'):
            (tmp_path / name).mkdir()
        assert [p.name for p in list_dir(tmp_path)] == ['hwmon0', 'hwmon1', 'hwmon2']
        assert list_dir(tmp_path / 'absent') == []


class TestKeyValue:
    """Tests for meminfo-style parsing."""

    def test_parse_line(self):
        assert parse_key_value("MemTotal:       16318480 kB") == ('MemTotal', '16318480')
        assert parse_key_value("no colon here") is None
        assert parse_key_value("Empty:") is None

    def test_parse_file(self, tmp_path):
        path = tmp_path / 'meminfo'
        path.write_text("MemTotal: 100 kB\nHugePages_Total: 0\nBogus: abc\n")
        assert parse_key_value_file(path) == {'MemTotal': 100, 'HugePages_Total': 0}


class TestProcessHelpers:
    """Tests for /proc/<pid> helpers."""

    @pytest.fixture
    def proc(self, tmp_path):
        return write_tree(tmp_path, {
            '1/comm': "systemd\n",
            '1/status': "Name:\tsystemd\nVmRSS:\t   12000 kB\n",
            '22/cmdline': "/usr/bin/python3\0-m\0http.server\0",
            'self/status': "Name:\tpytest\n",
            'meminfo': "MemTotal: 1 kB\n",
        })

    def test_list_pids(self, proc):
        assert list_pids(proc) == [1, 22]

    def test_process_name_from_comm(self, proc):
        assert process_name(1, proc) == 'systemd'

    def test_process_name_from_cmdline(self, proc):
        assert process_name(22, proc) == '/usr/bin/python3'

    def test_process_name_unknown(self, proc):
        assert process_name(999, proc) == '[pid 999]'

    def test_parse_status(self, proc):
        assert parse_status(1, proc)['VmRSS'] == '12000 kB'
        assert parse_status(999, proc) == {}


class TestFormatBytes:
    """Tests for format_bytes function."""

    def test_small(self):
        assert format_bytes(512) == '512 B'

    def test_binary_units(self):
        assert format_bytes(1024) == '1.0 KiB'
        assert format_bytes(1536 * 1024 * 1024) == '1.5 GiB'


class TestFormatDuration:
    """Tests for format_duration function."""

    def test_seconds(self):
        assert format_duration(1.523) == '1.52s'

    def test_minutes(self):
        assert format_duration(125) == '2m 5s'

    def test_days_drop_seconds(self):
        assert format_duration(86400 + 3600 + 7) == '1d 1h'


class TestParseSizeHuman:
    """Tests for parse_size_human function."""

    def test_decimal_and_binary(self):
        assert parse_size_human('100M') == 100_000_000
        assert parse_size_human('1G') == 1_000_000_000
        assert parse_size_human('512KiB') == 512 * 1024
        assert parse_size_human('1.5k') == 1500

    def test_plain_bytes(self):
        assert parse_size_human('4096') == 4096

    def test_invalid(self):
        assert parse_size_human('lots') is None
        assert parse_size_human('10Q') is None
        assert parse_size_human('') is None


class TestParseSystemdDuration:
    """Tests for parse_systemd_duration function."""

    def test_units(self):
        assert parse_systemd_duration('812ms') == pytest.approx(0.812)
        assert parse_systemd_duration('1min 2.345s') == pytest.approx(62.345)
        assert parse_systemd_duration('1h 2min') == pytest.approx(3720)

    def test_no_duration(self):
        assert parse_systemd_duration('n/a') is None
