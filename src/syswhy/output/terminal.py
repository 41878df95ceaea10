"""
Rich terminal rendering of module outcomes.

Reports go to stdout through a rich Console; logging stays on stderr.
"""

from typing import Optional, Sequence

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..core.models import Report, Severity
from ..core.runner import ModuleOutcome
from ..utils.format import format_duration

SEVERITY_STYLES = {
    Severity.OK: "green",
    Severity.INFO: "cyan",
    Severity.WARNING: "yellow",
    Severity.CRITICAL: "bold red",
}

SEVERITY_ICONS = {
    Severity.OK: "✓",
    Severity.INFO: "i",
    Severity.WARNING: "!",
    Severity.CRITICAL: "✗",
}


def make_console(no_color: bool = False) -> Console:
    return Console(no_color=no_color, highlight=False)


def severity_text(severity: Severity) -> Text:
    return Text(f"{SEVERITY_ICONS[severity]} {severity.label}", style=SEVERITY_STYLES[severity])


class TerminalRenderer:
    """
    Render reports as panels with findings, metrics and recommendations.

    Args:
        console: Target console (tests pass Console(file=StringIO()))
        verbose: Also show finding details and raw recommendation commands
        top_n: Maximum findings per report (Critical and Warning always shown)
    """

    def __init__(self, console: Optional[Console] = None, verbose: bool = False, top_n: Optional[int] = None):
        self.console = console or make_console()
        self.verbose = verbose
        self.top_n = top_n

    def render_outcomes(self, outcomes: Sequence[ModuleOutcome]) -> None:
        for outcome in outcomes:
            self.render_outcome(outcome)
        if len(outcomes) > 1:
            self.render_summary(outcomes)

    def render_outcome(self, outcome: ModuleOutcome) -> None:
        if outcome.report is not None:
            self.render_report(outcome.report, skipped=outcome.skipped)
            return

        error = outcome.error
        body = Text()
        if error is not None:
            body.append(f"{error.kind.value}: ", style="bold red")
            body.append(error.message)
            if error.details and self.verbose:
                body.append(f"\n{error.details}", style="dim")
        else:
            body.append("No report produced", style="bold red")
        self.console.print(Panel(
            body,
            title=f"[bold red]{outcome.module}[/bold red] failed",
            border_style="red",
            box=ROUNDED,
        ))

    def render_report(self, report: Report, skipped: bool = False) -> None:
        severity = report.overall_severity
        style = "dim" if skipped else SEVERITY_STYLES[severity]

        parts = [Text(report.summary, style="bold")]

        findings = self._visible_findings(report)
        if findings:
            table = Table(show_header=True, header_style="bold magenta", box=None, padding=(0, 1))
            table.add_column("Severity", no_wrap=True)
            table.add_column("Category", style="cyan", no_wrap=True)
            table.add_column("Finding")
            for finding in findings:
                message = Text(finding.message)
                if finding.details and self.verbose:
                    message.append(f"\n{finding.details}", style="dim")
                table.add_row(severity_text(finding.severity), finding.category, message)
            parts.append(Text())
            parts.append(table)

        if report.metrics:
            metrics = Table(show_header=True, header_style="bold magenta", box=None, padding=(0, 1))
            metrics.add_column("Metric", style="cyan")
            metrics.add_column("Value", style="green")
            for metric in report.metrics:
                metric_severity = metric.severity()
                value = Text(metric.display())
                if metric_severity is not None and metric_severity >= Severity.WARNING:
                    value.stylize(SEVERITY_STYLES[metric_severity])
                metrics.add_row(metric.name, value)
            parts.append(Text())
            parts.append(metrics)

        recommendations = report.recommendations_by_priority()
        if recommendations:
            parts.append(Text())
            parts.append(Text("Recommendations", style="bold"))
            for rec in recommendations:
                line = Text(f"  [{rec.priority}] ", style="bold")
                line.append(rec.action)
                if rec.command_text:
                    line.append(f"\n      $ {rec.command_text}", style="dim cyan")
                if rec.explanation and self.verbose:
                    line.append(f"\n      {rec.explanation}", style="dim")
                parts.append(line)

        title = f"[{style}]{report.module}[/{style}]  {SEVERITY_ICONS[severity]} {severity.label}"
        if skipped:
            title += " (skipped)"
        self.console.print(Panel(Group(*parts), title=title, border_style=style, box=ROUNDED))

    def render_summary(self, outcomes: Sequence[ModuleOutcome]) -> None:
        table = Table(title="Summary", show_header=True, header_style="bold magenta", box=ROUNDED)
        table.add_column("Module", style="cyan")
        table.add_column("Status")
        table.add_column("Severity")
        table.add_column("Time", justify="right", style="dim")
        for outcome in outcomes:
            if outcome.report is not None:
                severity = severity_text(outcome.report.overall_severity)
            else:
                severity = Text("-", style="dim")
            status_style = {"ok": "green", "skipped": "dim", "failed": "bold red"}[outcome.status]
            table.add_row(outcome.module, Text(outcome.status, style=status_style), severity,
                          format_duration(outcome.elapsed))
        self.console.print(table)

    def _visible_findings(self, report: Report):
        findings = sorted(report.findings, key=lambda f: f.severity.rank, reverse=True)
        if self.top_n is None or len(findings) <= self.top_n:
            return findings
        urgent = [f for f in findings if f.severity >= Severity.WARNING]
        return findings[:max(self.top_n, len(urgent))]
