"""
Core data models for the checkup engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Severity(Enum):
    """Уровень серьёзности результата проверки."""
    SUCCESS = "success"  # Проверка пройдена
    INFO = "info"        # Информация, действий не требуется
    WARNING = "warning"  # Стоит обратить внимание
    ERROR = "error"      # Состояние системы отличается от ожидаемого


class ComparisonStatus(Enum):
    """Результат сравнения (snapshot или предикат)."""
    EQUAL = "equal"
    DIFFERING = "differing"
    PASSED = "passed"
    FAILED = "failed"
    BASELINE_MISSING = "baseline_missing"
    UNAVAILABLE = "unavailable"
    NO_DATA = "no_data"
    SKIPPED = "skipped"


class RunState(Enum):
    """Состояние запуска аудита."""
    STARTED = "started"
    RUNNING = "running"
    ABORTED = "aborted"
    SUMMARIZED = "summarized"


@dataclass(frozen=True)
class Comparison:
    """Результат Comparator'а до классификации."""

    status: ComparisonStatus
    evidence: Tuple[str, ...] = ()
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (ComparisonStatus.EQUAL, ComparisonStatus.PASSED)


@dataclass(frozen=True)
class Skipped:
    """Ответ collector'а: проверка неприменима в этом запуске."""

    reason: str = ""


@dataclass(frozen=True)
class Unavailable:
    """Ответ collector'а: источник данных недоступен."""

    reason: str = ""


@dataclass(frozen=True)
class CheckOutcome:
    """Результат одной проверки (topic) в одном запуске."""

    topic_key: str
    label: str
    severity: Severity
    message: str
    evidence: Optional[str] = None
    fatal: bool = False
    acknowledge: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Преобразовать в словарь для JSON."""
        return {
            "topic_key": self.topic_key,
            "label": self.label,
            "severity": self.severity.value,
            "message": self.message,
            "evidence": self.evidence,
            "fatal": self.fatal,
        }

    def to_markdown(self) -> str:
        """Преобразовать в markdown для отчёта."""
        severity_emoji = {
            Severity.SUCCESS: "🟢",
            Severity.INFO: "🔵",
            Severity.WARNING: "🟡",
            Severity.ERROR: "🔴",
        }

        md = f"### {severity_emoji[self.severity]} [{self.severity.value.upper()}] {self.label}\n\n"
        md += f"**Topic:** `{self.topic_key}`\n\n"
        md += f"**Message:** {self.message}\n\n"

        if self.evidence:
            md += f"**Evidence:**\n```\n{self.evidence}\n```\n\n"

        return md


@dataclass
class RunSummary:
    """
    Итог одного запуска: упорядоченный список результатов и счётчики.

    Счётчики меняются только через record(), поэтому всегда совпадают
    с количеством результатов Warning/Error в outcomes.
    """

    outcomes: List[CheckOutcome] = field(default_factory=list)
    warning_count: int = 0
    error_count: int = 0
    state: RunState = RunState.STARTED
    abort_reason: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    duration_seconds: float = 0.0

    def record(self, outcome: CheckOutcome) -> None:
        """Добавить результат и обновить счётчики."""
        if self.state in (RunState.ABORTED, RunState.SUMMARIZED):
            raise RuntimeError(f"Run is already finalized ({self.state.value})")

        self.state = RunState.RUNNING
        self.outcomes.append(outcome)

        if outcome.severity == Severity.WARNING:
            self.warning_count += 1
        elif outcome.severity == Severity.ERROR:
            self.error_count += 1

    def abort(self, reason: str) -> None:
        self.state = RunState.ABORTED
        self.abort_reason = reason

    def finalize(self, duration_seconds: float) -> None:
        self.duration_seconds = duration_seconds
        if self.state != RunState.ABORTED:
            self.state = RunState.SUMMARIZED

    @property
    def aborted(self) -> bool:
        return self.state == RunState.ABORTED

    @property
    def success(self) -> bool:
        return not self.aborted and self.error_count == 0 and self.warning_count == 0

    def by_severity(self, severity: Severity) -> List[CheckOutcome]:
        return [o for o in self.outcomes if o.severity == severity]

    def banner(self) -> str:
        """Итоговая строка запуска."""
        if self.aborted:
            return f"*** ABORTED: {self.abort_reason} ***"

        warning_str = "warnings" if self.warning_count >= 2 else "warning"
        error_str = "errors" if self.error_count >= 2 else "error"

        if self.error_count == 0:
            if self.warning_count == 0:
                return "*** DONE (success) ***"
            return f"*** DONE with {self.warning_count} {warning_str} ***"
        if self.warning_count == 0:
            return f"*** DONE with {self.error_count} {error_str} ***"
        return (
            f"*** DONE with {self.error_count} {error_str} "
            f"+ {self.warning_count} {warning_str} ***"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Преобразовать в словарь для JSON."""
        return {
            "started_at": self.started_at.isoformat(),
            "state": self.state.value,
            "abort_reason": self.abort_reason,
            "warning_count": self.warning_count,
            "error_count": self.error_count,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "duration_seconds": self.duration_seconds,
        }
