"""
Tests for the report model: severity ordering, thresholds, metric values,
recommendations and report finalization.

Run: python3 -m pytest tests/test_models.py -v
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

SRC_DIR = str(Path(__file__).parent.parent / 'src')
sys.path.insert(0, SRC_DIR)

from syswhy.core.errors import NoDevicesFound, ReportFinalizedError
from syswhy.core.models import (
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


class TestSeverity:
    """Tests for Severity ordering and helpers."""

    def test_total_order(self):
        """Test Ok < Info < Warning < Critical."""
        assert Severity.OK < Severity.INFO < Severity.WARNING < Severity.CRITICAL
        assert Severity.CRITICAL > Severity.OK
        assert Severity.WARNING >= Severity.WARNING

    def test_sorting(self):
        """Test severities sort by rank, not by name."""
        ordered = sorted([Severity.WARNING, Severity.OK, Severity.CRITICAL, Severity.INFO])
        assert ordered == [Severity.OK, Severity.INFO, Severity.WARNING, Severity.CRITICAL]

    def test_max(self):
        """Test combining two severities yields the greater."""
        assert Severity.max(Severity.INFO, Severity.WARNING) == Severity.WARNING
        assert Severity.max(Severity.CRITICAL, Severity.OK) == Severity.CRITICAL
        assert Severity.max(Severity.INFO, Severity.INFO) == Severity.INFO

    def test_worst_of_empty_is_ok(self):
        """Test worst() of nothing is OK."""
        assert Severity.worst([]) == Severity.OK

    def test_worst(self):
        assert Severity.worst([Severity.INFO, Severity.CRITICAL, Severity.WARNING]) == Severity.CRITICAL

    def test_serialized_values(self):
        """Test lowercase string values."""
        assert [s.value for s in Severity] == ["ok", "info", "warning", "critical"]

    def test_label(self):
        assert Severity.WARNING.label == "WARNING"

    def test_compare_with_other_type(self):
        """Test comparison with a non-Severity is rejected."""
        with pytest.raises(TypeError):
            Severity.OK < 1


class TestThreshold:
    """Tests for threshold classification."""

    @pytest.fixture
    def threshold(self):
        return Threshold(warning=80.0, critical=95.0)

    def test_below_warning_is_ok(self, threshold):
        assert threshold.classify(79.9) == Severity.OK

    def test_warning_boundary_inclusive(self, threshold):
        """Test the warning boundary itself is Warning."""
        assert threshold.classify(80.0) == Severity.WARNING
        assert threshold.classify(94.9) == Severity.WARNING

    def test_critical_boundary_inclusive(self, threshold):
        """Test the critical boundary itself is Critical."""
        assert threshold.classify(95.0) == Severity.CRITICAL
        assert threshold.classify(250) == Severity.CRITICAL

    def test_free_function_matches_method(self, threshold):
        for value in (0, 80, 90, 95, 100):
            assert classify(value, threshold) == threshold.classify(value)

    def test_warning_above_critical_rejected(self):
        """Test construction with warning > critical raises ValueError."""
        with pytest.raises(ValueError):
            Threshold(warning=90.0, critical=80.0)

    def test_equal_boundaries_allowed(self):
        threshold = Threshold(warning=50.0, critical=50.0)
        assert threshold.classify(50) == Severity.CRITICAL
        assert threshold.classify(49) == Severity.OK


class TestMetricValue:
    """Tests for the tagged metric value."""

    def test_bool_is_not_integer(self):
        """Test booleans are tagged boolean, never integer."""
        assert MetricValue.of(True).kind == MetricKind.BOOLEAN
        assert MetricValue.of(0).kind == MetricKind.INTEGER

    def test_kinds(self):
        assert MetricValue.of(1.5).kind == MetricKind.FLOAT
        assert MetricValue.of("text").kind == MetricKind.TEXT
        assert MetricValue.of(["a", "b"]).kind == MetricKind.LIST

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            MetricValue.of({"a": 1})

    def test_numeric(self):
        assert MetricValue.of(3).is_numeric
        assert MetricValue.of(3.0).is_numeric
        assert not MetricValue.of("3").is_numeric
        assert not MetricValue.of(False).is_numeric

    def test_serialization(self):
        """Test {"kind", "value"} shape."""
        assert MetricValue.of(42).to_dict() == {"kind": "integer", "value": 42}
        assert MetricValue.of(["x"]).to_dict() == {"kind": "list", "value": ["x"]}

    def test_from_dict(self):
        value = MetricValue.from_dict({"kind": "list", "value": ["x", "y"]})
        assert value == MetricValue.of(("x", "y"))

    def test_display(self):
        assert MetricValue.of(2.0).display() == "2.00"
        assert MetricValue.of(True).display() == "yes"
        assert MetricValue.of(["a", "b"]).display() == "a, b"


class TestMetric:
    """Tests for Metric classification and display."""

    def test_severity_with_threshold(self):
        metric = Metric("usage", 92.0, "%", Threshold(80, 90))
        assert metric.severity() == Severity.CRITICAL

    def test_no_threshold_no_severity(self):
        assert Metric("usage", 92.0, "%").severity() is None

    def test_text_value_with_threshold(self):
        """Test non-numeric values are never classified."""
        assert Metric("name", "GeForce", None, Threshold(1, 2)).severity() is None

    def test_display_units(self):
        assert Metric("usage", 50, "%").display() == "50%"
        assert Metric("power", 12, "W").display() == "12 W"
        assert Metric("count", 3).display() == "3"

    def test_round_trip_dict(self):
        metric = Metric("temp", 71.5, "°C", Threshold(75, 85))
        assert Metric.from_dict(metric.to_dict()) == metric


class TestFinding:
    """Tests for Finding."""

    def test_from_error(self):
        """Test a DiagnosticError degrades to a Finding with its message and details."""
        finding = Finding.from_error(Severity.INFO, "gpu", NoDevicesFound("No GPU devices detected", details="drm"))
        assert finding == Finding(Severity.INFO, "gpu", "No GPU devices detected", details="drm")


class TestRecommendation:
    """Tests for Recommendation."""

    def test_priority_must_be_positive(self):
        with pytest.raises(ValueError):
            Recommendation(priority=0, action="nothing")

    def test_command_quoted_for_display(self):
        """Test the argument vector is shell-quoted only for display."""
        rec = Recommendation(priority=1, action="List", command=["du", "-sh", "/my dir"])
        assert rec.command == ("du", "-sh", "/my dir")
        assert rec.command_text == "du -sh '/my dir'"

    def test_to_dict_carries_argv(self):
        rec = Recommendation(priority=2, action="Check", command=["lsusb", "-t"])
        data = rec.to_dict()
        assert data["command"] == "lsusb -t"
        assert data["argv"] == ["lsusb", "-t"]

    def test_no_command(self):
        rec = Recommendation(priority=3, action="Install a tool")
        assert rec.command_text is None
        assert rec.to_dict()["argv"] is None


class TestReport:
    """Tests for Report aggregation and the finalize lifecycle."""

    def test_empty_report_is_ok(self):
        """Test a report with no findings finalizes to OK."""
        report = Report("cpu", "nothing to see")
        assert report.compute_overall_severity() == Severity.OK
        assert report.finalized

    def test_overall_is_worst_finding(self):
        report = Report("gpu", "GPU diagnostics")
        report.add_finding(Finding(Severity.INFO, "gpu", "a"))
        report.add_finding(Finding(Severity.WARNING, "gpu", "b"))
        report.add_finding(Finding(Severity.INFO, "gpu", "c"))
        assert report.finalize() == Severity.WARNING
        assert report.overall_severity == Severity.WARNING

    def test_metrics_do_not_affect_severity(self):
        """Test only findings contribute to the overall severity."""
        report = Report("mem", "Memory")
        report.add_metric(Metric("usage", 99.0, "%", Threshold(80, 95)))
        assert report.finalize() == Severity.OK

    def test_refinalize_idempotent(self):
        report = Report("x", "y")
        report.add_finding(Finding(Severity.CRITICAL, "c", "m"))
        first = report.finalize()
        assert report.finalize() == first

    def test_append_after_finalize_raises(self):
        """Test appending after finalize is an invariant violation."""
        report = Report("x", "y")
        report.finalize()
        with pytest.raises(ReportFinalizedError):
            report.add_finding(Finding(Severity.INFO, "c", "late"))
        with pytest.raises(ReportFinalizedError):
            report.add_metric(Metric("late", 1))
        with pytest.raises(ReportFinalizedError):
            report.add_recommendation(Recommendation(1, "late"))

    def test_append_after_finalize_optimized_rederives(self):
        """Test under python -O a late append logs and re-derives the severity."""
        script = (
            "from syswhy.core.models import Finding, Report, Severity\n"
            "report = Report('x', 'y')\n"
            "report.finalize()\n"
            "report.add_finding(Finding(Severity.CRITICAL, 'c', 'late'))\n"
            "print(report.overall_severity.value)\n"
        )
        env = dict(os.environ, PYTHONPATH=SRC_DIR)
        result = subprocess.run(
            [sys.executable, "-O", "-c", script],
            capture_output=True, text=True, env=env, timeout=30,
        )
        assert result.returncode == 0, result.stderr
        assert result.stdout.strip() == Severity.CRITICAL.value
        assert 're-deriving severity' in result.stderr

    def test_recommendations_by_priority_stable(self):
        report = Report("x", "y")
        report.add_recommendation(Recommendation(3, "c"))
        report.add_recommendation(Recommendation(1, "a"))
        report.add_recommendation(Recommendation(3, "d"))
        report.add_recommendation(Recommendation(2, "b"))
        assert [r.action for r in report.recommendations_by_priority()] == ["a", "b", "c", "d"]

    def test_findings_at_least(self):
        report = Report("x", "y")
        report.add_finding(Finding(Severity.INFO, "c", "info"))
        report.add_finding(Finding(Severity.CRITICAL, "c", "crit"))
        assert [f.message for f in report.findings_at_least(Severity.WARNING)] == ["crit"]

    def test_to_dict_fields(self):
        """Test the machine-readable payload uses the stable field names."""
        report = Report("net", "Network diagnostics")
        report.add_finding(Finding(Severity.WARNING, "dns", "Could not resolve", details="resolv.conf"))
        report.finalize()
        data = report.to_dict()
        assert set(data) == {
            "module", "timestamp", "overall_severity", "summary",
            "findings", "recommendations", "metrics", "raw_data",
        }
        assert data["overall_severity"] == "warning"
        assert data["findings"][0]["severity"] == "warning"
        assert data["timestamp"].endswith("+00:00")

    def test_from_dict(self):
        report = Report("net", "Network diagnostics")
        report.add_finding(Finding(Severity.WARNING, "dns", "x"))
        report.add_metric(Metric("latency", 12.5, "ms"))
        report.add_recommendation(Recommendation(3, "ip", command=["ip", "addr", "show"]))
        report.finalize()

        restored = Report.from_dict(report.to_dict())
        assert restored.finalized
        assert restored.overall_severity == Severity.WARNING
        assert restored.findings == report.findings
        assert restored.metrics == report.metrics
        assert restored.recommendations == report.recommendations
        assert restored.timestamp == report.timestamp
