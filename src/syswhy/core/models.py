"""
Diagnostic Report Model

These data structures are shared by every probe and every output format:
- Probes build a Report through append-only operations
- The orchestrator hands a finalized Report to a presentation adapter
- JSON serialization built-in (stable field names, tagged metric values)
"""

import logging
import shlex
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import total_ordering
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .errors import ReportFinalizedError

logger = logging.getLogger(__name__)


# === Severity ===

@total_ordering
class Severity(Enum):
    """Severity of a finding or a whole report. Ok < Info < Warning < Critical."""
    OK = "ok"
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def label(self) -> str:
        """Upper-case label for terminal output."""
        return self.name

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    @staticmethod
    def max(a: 'Severity', b: 'Severity') -> 'Severity':
        """Combine two severities, yielding the greater."""
        return a if a >= b else b

    @classmethod
    def worst(cls, severities: Iterable['Severity']) -> 'Severity':
        """Greatest severity of an iterable, OK when empty."""
        result = cls.OK
        for severity in severities:
            if severity > result:
                result = severity
        return result


_SEVERITY_RANK = {sev: i for i, sev in enumerate(Severity)}


# === Thresholds ===

@dataclass(frozen=True)
class Threshold:
    """
    Warning/critical boundaries for a numeric metric.

    Thresholds carry no polarity: higher values are always worse. A probe
    where "less is worse" (free space, battery charge) classifies the
    complementary quantity instead and says so in its docstring.
    """
    warning: float
    critical: float

    def __post_init__(self):
        if self.warning > self.critical:
            raise ValueError(
                f"warning threshold {self.warning} is above critical {self.critical}"
            )

    def classify(self, value: float) -> Severity:
        if value >= self.critical:
            return Severity.CRITICAL
        if value >= self.warning:
            return Severity.WARNING
        return Severity.OK

    def to_dict(self) -> dict:
        return {"warning": self.warning, "critical": self.critical}


def classify(value: float, threshold: Threshold) -> Severity:
    """Ok below warning, Warning from warning up to critical, Critical at or above critical."""
    return threshold.classify(value)


# === Metric values ===

class MetricKind(Enum):
    """Discriminator for MetricValue."""
    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    BOOLEAN = "boolean"
    LIST = "list"


@dataclass(frozen=True)
class MetricValue:
    """Tagged union of integer, float, text, boolean and list-of-text."""
    kind: MetricKind
    value: Union[int, float, str, bool, tuple]

    @classmethod
    def of(cls, value: Any) -> 'MetricValue':
        """Wrap a plain Python value, inferring its kind."""
        if isinstance(value, MetricValue):
            return value
        # bool is a subclass of int; check it first
        if isinstance(value, bool):
            return cls(MetricKind.BOOLEAN, value)
        if isinstance(value, int):
            return cls(MetricKind.INTEGER, value)
        if isinstance(value, float):
            return cls(MetricKind.FLOAT, value)
        if isinstance(value, str):
            return cls(MetricKind.TEXT, value)
        if isinstance(value, (list, tuple)):
            return cls(MetricKind.LIST, tuple(str(v) for v in value))
        raise TypeError(f"Unsupported metric value type: {type(value).__name__}")

    @property
    def is_numeric(self) -> bool:
        return self.kind in (MetricKind.INTEGER, MetricKind.FLOAT)

    def display(self) -> str:
        """Human-readable rendering."""
        if self.kind == MetricKind.FLOAT:
            return f"{self.value:.2f}"
        if self.kind == MetricKind.BOOLEAN:
            return "yes" if self.value else "no"
        if self.kind == MetricKind.LIST:
            return ", ".join(self.value)
        return str(self.value)

    def to_dict(self) -> dict:
        value = list(self.value) if self.kind == MetricKind.LIST else self.value
        return {"kind": self.kind.value, "value": value}

    @classmethod
    def from_dict(cls, data: dict) -> 'MetricValue':
        kind = MetricKind(data["kind"])
        value = data["value"]
        if kind == MetricKind.LIST:
            value = tuple(value)
        elif kind == MetricKind.FLOAT:
            value = float(value)
        return cls(kind, value)


# === Report entries ===

@dataclass(frozen=True)
class Finding:
    """
    One discrete observation.

    Attributes:
        severity: How bad it is
        category: Free-form tag, e.g. "temperature", "process"
        message: Human sentence
        details: Optional supporting detail
    """
    severity: Severity
    category: str
    message: str
    details: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "category": self.category,
            "message": self.message,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Finding':
        return cls(
            severity=Severity(data["severity"]),
            category=data["category"],
            message=data["message"],
            details=data.get("details"),
        )

    @classmethod
    def from_error(cls, severity: Severity, category: str, error) -> 'Finding':
        """Degrade a DiagnosticError to an observation"""
        return cls(severity, category, error.message, details=error.details)


@dataclass(frozen=True)
class Recommendation:
    """
    An action for the user.

    Attributes:
        priority: 1 is the most urgent
        action: Imperative sentence
        command: Literal argument vector, never a shell string
        explanation: Why it helps
    """
    priority: int
    action: str
    command: Optional[Sequence[str]] = None
    explanation: str = ""

    def __post_init__(self):
        if self.priority < 1:
            raise ValueError(f"Recommendation priority must be >= 1, got {self.priority}")
        if self.command is not None:
            object.__setattr__(self, "command", tuple(self.command))

    @property
    def command_text(self) -> Optional[str]:
        """The argument vector quoted for display."""
        if not self.command:
            return None
        return shlex.join(self.command)

    def to_dict(self) -> dict:
        return {
            "priority": self.priority,
            "action": self.action,
            "command": self.command_text,
            "argv": list(self.command) if self.command else None,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Recommendation':
        argv = data.get("argv")
        if argv is None and data.get("command"):
            argv = shlex.split(data["command"])
        return cls(
            priority=data["priority"],
            action=data["action"],
            command=argv,
            explanation=data.get("explanation", ""),
        )


@dataclass(frozen=True)
class Metric:
    """A named value with optional unit and thresholds."""
    name: str
    value: MetricValue
    unit: Optional[str] = None
    threshold: Optional[Threshold] = None

    def __post_init__(self):
        object.__setattr__(self, "value", MetricValue.of(self.value))

    def severity(self) -> Optional[Severity]:
        """Classification against the threshold, None if not applicable."""
        if self.threshold is None or not self.value.is_numeric:
            return None
        return self.threshold.classify(self.value.value)

    def display(self) -> str:
        text = self.value.display()
        if self.unit:
            text = f"{text} {self.unit}" if self.unit[0].isalpha() else f"{text}{self.unit}"
        return text

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "value": self.value.to_dict(),
            "unit": self.unit,
            "threshold": self.threshold.to_dict() if self.threshold else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Metric':
        threshold = data.get("threshold")
        return cls(
            name=data["name"],
            value=MetricValue.from_dict(data["value"]),
            unit=data.get("unit"),
            threshold=Threshold(**threshold) if threshold else None,
        )


# === Report ===

@dataclass
class Report:
    """
    Everything one probe invocation has to say.

    Lifecycle: created with a summary, appended to by exactly one probe run,
    finalized once with compute_overall_severity(), then presented.
    """
    module: str
    summary: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    overall_severity: Severity = Severity.OK
    findings: List[Finding] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)
    metrics: List[Metric] = field(default_factory=list)
    raw_data: Optional[Any] = None
    _finalized: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    def finalized(self) -> bool:
        return self._finalized

    def _reopen_check(self, what: str) -> bool:
        """Guard appends after finalize. Returns True if severity must be re-derived."""
        if not self._finalized:
            return False
        if __debug__:
            raise ReportFinalizedError(
                f"{self.module}: {what} appended after compute_overall_severity()"
            )
        logger.warning(f"{self.module}: {what} appended after finalize; re-deriving severity")
        return True

    def add_finding(self, finding: Finding) -> None:
        rederive = self._reopen_check("finding")
        self.findings.append(finding)
        if rederive:
            self.compute_overall_severity()

    def add_recommendation(self, recommendation: Recommendation) -> None:
        self._reopen_check("recommendation")
        self.recommendations.append(recommendation)

    def add_metric(self, metric: Metric) -> None:
        self._reopen_check("metric")
        self.metrics.append(metric)

    def compute_overall_severity(self) -> Severity:
        """Set overall severity to the worst finding (OK if none) and finalize."""
        self.overall_severity = Severity.worst(f.severity for f in self.findings)
        self._finalized = True
        return self.overall_severity

    finalize = compute_overall_severity

    def findings_at_least(self, severity: Severity) -> List[Finding]:
        return [f for f in self.findings if f.severity >= severity]

    def recommendations_by_priority(self) -> List[Recommendation]:
        """Recommendations sorted by priority; stable for equal priorities."""
        return sorted(self.recommendations, key=lambda r: r.priority)

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "module": self.module,
            "timestamp": self.timestamp.isoformat(),
            "overall_severity": self.overall_severity.value,
            "summary": self.summary,
            "findings": [f.to_dict() for f in self.findings],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "metrics": [m.to_dict() for m in self.metrics],
            "raw_data": self.raw_data,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Report':
        """Deserialize a finalized report."""
        report = cls(
            module=data["module"],
            summary=data["summary"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            overall_severity=Severity(data["overall_severity"]),
            findings=[Finding.from_dict(f) for f in data.get("findings", [])],
            recommendations=[Recommendation.from_dict(r) for r in data.get("recommendations", [])],
            metrics=[Metric.from_dict(m) for m in data.get("metrics", [])],
            raw_data=data.get("raw_data"),
        )
        report._finalized = True
        return report
