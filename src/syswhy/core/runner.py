"""
Module runner: single runs, concurrent all-module runs and the watch loop.

One probe's failure never reaches another probe. Results of an all-module
run come back in registration order, whatever order the probes finish in.
"""

import logging
import signal
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, List, Optional, Sequence

from .errors import DiagnosticError, ErrorKind, ModuleUnavailable, ReportFinalizedError
from .models import Finding, Report, Severity
from .module import DiagnosticModule, ModuleConfig, Permission

logger = logging.getLogger(__name__)


@dataclass
class ModuleOutcome:
    """
    Result of invoking one module.

    Exactly one of report/error is set. A skipped module carries a
    synthesized report explaining why it was not run.
    """
    module: str
    report: Optional[Report] = None
    error: Optional[DiagnosticError] = None
    skipped: bool = False
    missing_permissions: FrozenSet[Permission] = field(default_factory=frozenset)
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.report is not None

    @property
    def status(self) -> str:
        if self.skipped:
            return "skipped"
        return "ok" if self.ok else "failed"

    def to_dict(self) -> dict:
        if self.report is None:
            error = self.error
            return {
                "module": self.module,
                "status": "failed",
                "error": {
                    "kind": error.kind.value if error else ErrorKind.INTERNAL.value,
                    "message": error.message if error else "no report produced",
                    "details": error.details if error else None,
                },
            }
        data = self.report.to_dict()
        data["status"] = self.status
        if self.missing_permissions:
            data["missing_permissions"] = sorted(p.value for p in self.missing_permissions)
        return data


def _skipped_report(module: DiagnosticModule) -> Report:
    report = Report(module.name, f"{module.name}: not available on this system")
    report.add_finding(Finding.from_error(Severity.INFO, "availability", ModuleUnavailable(
        f"Module '{module.name}' skipped: prerequisites not found on this system",
        details=module.description or None,
    )))
    report.finalize()
    return report


def _failed_outcome(module: DiagnosticModule, error: DiagnosticError, missing, start: float) -> ModuleOutcome:
    return ModuleOutcome(
        module=module.name,
        error=error,
        missing_permissions=missing,
        elapsed=time.monotonic() - start,
    )


def run_module(module: DiagnosticModule, config: ModuleConfig) -> ModuleOutcome:
    """
    Run one module with failure isolation.

    Unavailable modules are not invoked. DiagnosticErrors become failed
    outcomes; any other exception is logged and recorded as an internal
    failure. This covers the availability and permission checks as well as
    run(). ReportFinalizedError propagates: it is a bug, not a host state.
    """
    start = time.monotonic()
    missing = frozenset()

    try:
        if not module.is_available():
            logger.info(f"Skipping {module.name}: not available")
            return ModuleOutcome(
                module=module.name,
                report=_skipped_report(module),
                skipped=True,
                elapsed=time.monotonic() - start,
            )

        missing = module.missing_permissions()
        if missing:
            names = ', '.join(sorted(p.value for p in missing))
            logger.info(f"{module.name}: running without {names}; results may be partial")

        report = module.run(config)
    except ReportFinalizedError:
        raise
    except DiagnosticError as e:
        logger.warning(f"{module.name} failed: {e.kind.value}: {e.message}")
        return _failed_outcome(module, e, missing, start)
    except Exception as e:
        logger.exception(f"{module.name} raised an unexpected error")
        return _failed_outcome(module, DiagnosticError(f"{type(e).__name__}: {e}"), missing, start)

    if not report.finalized:
        report.finalize()

    elapsed = time.monotonic() - start
    logger.debug(f"{module.name} finished in {elapsed:.2f}s ({report.overall_severity.value})")
    return ModuleOutcome(
        module=module.name,
        report=report,
        missing_permissions=missing,
        elapsed=elapsed,
    )


def run_all_modules(
    modules: Sequence[DiagnosticModule],
    config: ModuleConfig,
    max_workers: Optional[int] = None,
) -> List[ModuleOutcome]:
    """
    Run every module concurrently, one task per module.

    Returns:
        One outcome per module, in the order the modules were given
    """
    modules = list(modules)
    if not modules:
        return []

    workers = max_workers or len(modules)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="syswhy") as executor:
        futures = [executor.submit(run_module, module, config) for module in modules]
        # Indexed by registration position, not completion order
        return [future.result() for future in futures]


def exit_code_for(outcomes: Sequence[ModuleOutcome]) -> int:
    """0 if at least one module produced a report, 1 otherwise"""
    return 0 if any(outcome.ok for outcome in outcomes) else 1


class WatchLoop:
    """
    Repeat step, render, sleep until cancelled.

    Iterations never overlap. Cancellation is checked after each step (a
    result obtained after cancellation is dropped) and while sleeping.

    Example:
        loop = WatchLoop(interval=2)
        install_signal_handlers(loop)
        loop.run(lambda: run_module(mod, cfg), render)
    """

    def __init__(self, interval: float, cancel_event: Optional[threading.Event] = None,
                 max_iterations: Optional[int] = None):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.cancel_event = cancel_event or threading.Event()
        self.max_iterations = max_iterations
        self.iterations = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def run(self, step: Callable[[], object], render: Callable[[object], None]) -> int:
        """
        Run until cancelled or max_iterations reached.

        Returns:
            Number of iterations rendered
        """
        while not self.cancelled:
            result = step()
            if self.cancelled:
                logger.debug("Cancelled during step; discarding result")
                break
            render(result)
            self.iterations += 1
            if self.max_iterations is not None and self.iterations >= self.max_iterations:
                break
            # wait() returns True as soon as the event is set
            if self.cancel_event.wait(self.interval):
                break
        return self.iterations


def install_signal_handlers(loop: WatchLoop) -> None:
    """Map SIGINT/SIGTERM onto the loop's cancel event"""
    def signal_handler(sig, frame):
        logger.debug(f"Received signal {sig}, stopping watch loop")
        loop.cancel()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
