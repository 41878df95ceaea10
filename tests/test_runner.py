"""
Tests for the module runner: failure isolation, concurrent ordering,
exit codes and the watch loop.

Run: python3 -m pytest tests/test_runner.py -v
"""

import sys
import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from syswhy.core.errors import ErrorKind, ParseError, PermissionDenied, ReportFinalizedError
from syswhy.core.models import Finding, Report, Severity
from syswhy.core.module import DiagnosticModule, ModuleConfig, Permission
from syswhy.core.runner import (
    ModuleOutcome,
    WatchLoop,
    exit_code_for,
    install_signal_handlers,
    run_all_modules,
    run_module,
)


class StubModule(DiagnosticModule):
    """Module whose behavior is set per instance"""

    description = "stub"

    def __init__(self, name, severity=Severity.OK, delay=0.0, error=None,
                 available=True, permissions=frozenset(), finalize=True):
        self.name = name
        super().__init__()
        self.severity = severity
        self.delay = delay
        self.error = error
        self.available = available
        self.permissions = permissions
        self.do_finalize = finalize
        self.calls = 0

    def required_permissions(self):
        return self.permissions

    def is_available(self):
        return self.available

    def run(self, config):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        report = Report(self.name, f"{self.name} ran")
        report.add_finding(Finding(self.severity, "stub", "result"))
        if self.do_finalize:
            report.finalize()
        return report


class UnreadableModule(StubModule):
    """Availability check fails the way Path.exists() does on EACCES"""

    def is_available(self):
        raise PermissionError(13, "Permission denied", "/proc/stat")


class PermissionCheckFails(StubModule):
    def missing_permissions(self):
        raise PermissionDenied("cannot read capabilities")


class LateAppendModule(DiagnosticModule):
    name = "late"

    def run(self, config):
        report = Report(self.name, "late")
        report.finalize()
        report.add_finding(Finding(Severity.INFO, "late", "after finalize"))
        return report


@pytest.fixture
def config():
    return ModuleConfig()


class TestModuleConfig:
    """Tests for ModuleConfig validation and helpers."""

    def test_defaults(self):
        config = ModuleConfig()
        assert config.interval == 2
        assert config.top_n == 10
        assert config.verbose is False
        assert dict(config.extra_args) == {}

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            ModuleConfig(interval=0)

    def test_invalid_top(self):
        with pytest.raises(ValueError):
            ModuleConfig(top_n=0)

    def test_extra_args_read_only(self):
        """Test extra_args cannot be mutated after construction."""
        config = ModuleConfig(extra_args={"host": "1.1.1.1"})
        with pytest.raises(TypeError):
            config.extra_args["host"] = "8.8.8.8"

    def test_extra_helpers(self):
        config = ModuleConfig(extra_args={"dns_only": "true", "count": "3", "threshold": "2.5", "bad": "x"})
        assert config.extra("missing", "d") == "d"
        assert config.extra_bool("dns_only") is True
        assert config.extra_bool("missing", True) is True
        assert config.extra_int("count") == 3
        assert config.extra_float("threshold") == 2.5
        assert config.extra_int("bad", 7) == 7

    def test_from_env(self):
        """Test SYSWHY_* settings provide defaults and overrides win."""
        with patch.dict('os.environ', {'SYSWHY_INTERVAL': '5', 'SYSWHY_TOP': '3'}):
            config = ModuleConfig.from_env(top_n=None, verbose=True)
        assert config.interval == 5
        assert config.top_n == 3
        assert config.verbose is True

    def test_module_requires_name(self):
        class Nameless(DiagnosticModule):
            def run(self, config):
                return Report("x", "y")

        with pytest.raises(TypeError):
            Nameless()


class TestRunModule:
    """Tests for run_module failure isolation."""

    def test_success(self, config):
        outcome = run_module(StubModule("a", Severity.WARNING), config)
        assert outcome.ok
        assert outcome.status == "ok"
        assert outcome.report.overall_severity == Severity.WARNING

    def test_unfinalized_report_is_finalized(self, config):
        outcome = run_module(StubModule("a", Severity.CRITICAL, finalize=False), config)
        assert outcome.report.finalized
        assert outcome.report.overall_severity == Severity.CRITICAL

    def test_diagnostic_error_becomes_failure(self, config):
        outcome = run_module(StubModule("a", error=PermissionDenied("no access")), config)
        assert not outcome.ok
        assert outcome.status == "failed"
        assert outcome.error.kind == ErrorKind.PERMISSION_DENIED

    def test_unexpected_exception_contained(self, config):
        """Test a crashing module becomes an internal failure entry."""
        outcome = run_module(StubModule("a", error=ZeroDivisionError("boom")), config)
        assert not outcome.ok
        assert outcome.error.kind == ErrorKind.INTERNAL
        assert "ZeroDivisionError" in outcome.error.message

    def test_unavailable_module_skipped(self, config):
        """Test an unavailable module is not invoked and gets a skip report."""
        module = StubModule("a", available=False)
        outcome = run_module(module, config)
        assert module.calls == 0
        assert outcome.skipped
        assert outcome.ok
        assert outcome.status == "skipped"
        assert "skipped" in outcome.report.findings[0].message
        assert outcome.report.findings[0].details == "stub"
        assert outcome.report.overall_severity == Severity.INFO

    def test_missing_permissions_recorded(self, config):
        module = StubModule("a", permissions=frozenset({Permission.ROOT}))
        with patch('os.geteuid', return_value=1000):
            outcome = run_module(module, config)
        assert outcome.ok
        assert outcome.missing_permissions == frozenset({Permission.ROOT})
        assert outcome.to_dict()["missing_permissions"] == ["root"]

    def test_availability_check_error_contained(self, config):
        """Test an exception from is_available() becomes an internal failure."""
        module = UnreadableModule("cpu")
        outcome = run_module(module, config)
        assert module.calls == 0
        assert outcome.status == "failed"
        assert outcome.error.kind == ErrorKind.INTERNAL
        assert "PermissionError" in outcome.error.message

    def test_permission_check_error_contained(self, config):
        outcome = run_module(PermissionCheckFails("io"), config)
        assert outcome.status == "failed"
        assert outcome.error.kind == ErrorKind.PERMISSION_DENIED

    def test_report_finalized_error_propagates(self, config):
        """Test appending after finalize is never swallowed."""
        with pytest.raises(ReportFinalizedError):
            run_module(LateAppendModule(), config)


class TestModuleOutcome:
    """Tests for outcome serialization."""

    def test_failure_entry(self):
        outcome = ModuleOutcome(module="gpu", error=ParseError("bad output", details="line 1"))
        assert outcome.to_dict() == {
            "module": "gpu",
            "status": "failed",
            "error": {"kind": "parse_error", "message": "bad output", "details": "line 1"},
        }

    def test_success_entry(self, config):
        outcome = run_module(StubModule("cpu"), config)
        data = outcome.to_dict()
        assert data["module"] == "cpu"
        assert data["status"] == "ok"
        assert data["overall_severity"] == "ok"


class TestRunAllModules:
    """Tests for concurrent all-module runs."""

    def test_registration_order_preserved(self, config):
        """Test results come back in registration order, not completion order."""
        modules = [
            StubModule("slow", delay=0.3),
            StubModule("medium", delay=0.1),
            StubModule("fast"),
        ]
        outcomes = run_all_modules(modules, config)
        assert [o.module for o in outcomes] == ["slow", "medium", "fast"]

    def test_failure_isolated(self, config):
        """Test one failing module does not affect the others."""
        modules = [
            StubModule("first", Severity.INFO),
            StubModule("broken", error=ParseError("unexpected output")),
            StubModule("third", Severity.CRITICAL),
        ]
        outcomes = run_all_modules(modules, config)
        assert [o.status for o in outcomes] == ["ok", "failed", "ok"]
        assert outcomes[0].report.overall_severity == Severity.INFO
        assert outcomes[1].error.kind == ErrorKind.PARSE_ERROR
        assert outcomes[2].report.overall_severity == Severity.CRITICAL

    def test_availability_error_isolated(self, config):
        """Test a module whose availability check raises does not stop the others."""
        modules = [StubModule("boot"), UnreadableModule("cpu"), StubModule("mem")]
        outcomes = run_all_modules(modules, config)
        assert [o.status for o in outcomes] == ["ok", "failed", "ok"]
        assert outcomes[1].error.kind == ErrorKind.INTERNAL

    def test_runs_concurrently(self, config):
        """Test modules overlap in time."""
        modules = [StubModule(f"m{i}", delay=0.3) for i in range(4)]
        start = time.monotonic()
        run_all_modules(modules, config)
        assert time.monotonic() - start < 1.0

    def test_empty(self, config):
        assert run_all_modules([], config) == []


class TestExitCode:
    """Tests for the exit status policy."""

    def test_any_report_is_success(self, config):
        outcomes = [
            run_module(StubModule("a", error=ParseError("x")), config),
            run_module(StubModule("b"), config),
        ]
        assert exit_code_for(outcomes) == 0

    def test_all_failed(self, config):
        outcomes = [run_module(StubModule("a", error=ParseError("x")), config)]
        assert exit_code_for(outcomes) == 1

    def test_skipped_counts_as_report(self, config):
        outcomes = [run_module(StubModule("a", available=False), config)]
        assert exit_code_for(outcomes) == 0


class TestWatchLoop:
    """Tests for the cooperative watch loop."""

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            WatchLoop(0)

    def test_max_iterations(self):
        rendered = []
        loop = WatchLoop(0.01, max_iterations=3)
        count = loop.run(lambda: len(rendered), rendered.append)
        assert count == 3
        assert rendered == [0, 1, 2]

    def test_cancel_after_n_iterations(self):
        """Test cancelling during the Nth step renders exactly N-1 reports."""
        rendered = []
        steps = []
        loop = WatchLoop(0.01)

        def step():
            steps.append(1)
            if len(steps) == 3:
                loop.cancel()
            return len(steps)

        count = loop.run(step, rendered.append)
        assert count == 2
        assert rendered == [1, 2]
        assert len(steps) == 3

    def test_cancel_during_sleep(self):
        """Test cancellation interrupts the wait between iterations."""
        rendered = []
        loop = WatchLoop(30)
        timer = threading.Timer(0.1, loop.cancel)
        timer.start()
        start = time.monotonic()
        loop.run(lambda: "report", rendered.append)
        timer.cancel()
        assert time.monotonic() - start < 5
        assert rendered == ["report"]

    def test_pre_cancelled(self):
        event = threading.Event()
        event.set()
        calls = []
        loop = WatchLoop(1, cancel_event=event)
        assert loop.run(lambda: calls.append(1), print) == 0
        assert calls == []

    def test_no_overlap(self):
        """Test a step never starts before the previous render finishes."""
        events = []
        loop = WatchLoop(0.01, max_iterations=3)

        def step():
            events.append("step")

        def render(_):
            events.append("render")

        loop.run(step, render)
        assert events == ["step", "render"] * 3

    def test_signal_handlers_cancel(self):
        loop = WatchLoop(1)
        handlers = {}
        with patch('signal.signal', side_effect=lambda sig, handler: handlers.setdefault(sig, handler)):
            install_signal_handlers(loop)
        assert len(handlers) == 2
        for handler in handlers.values():
            handler(2, None)
        assert loop.cancelled
