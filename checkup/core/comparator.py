"""
Comparator: text equality for snapshots and predicates for scalar facts.

Predicate specs are small frozen dataclasses with an evaluate(fact) method
returning a Comparison. Composite specs (AllOf / AnyOf) let a single topic
combine several conditions while still producing exactly one result.
"""

import difflib
import re
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Pattern, Sequence, Tuple, Union

from .models import Comparison, ComparisonStatus

PatternLike = Union[str, Pattern]


def diff_lines(saved: str, current: str) -> List[str]:
    """
    Минимальный построчный diff без заголовков.

    Returns:
        Список строк вида "-removed" / "+added"
    """
    diff = list(difflib.unified_diff(
        saved.splitlines(),
        current.splitlines(),
        n=0,
        lineterm="",
    ))
    # Первые две строки - заголовки ---/+++, далее хунки @@
    return [line for line in diff[2:] if not line.startswith("@@")]


def compare(saved_canonical: str, current_canonical: str) -> Comparison:
    """Сравнение двух нормализованных текстов."""
    if saved_canonical == current_canonical:
        return Comparison(ComparisonStatus.EQUAL)

    evidence = diff_lines(saved_canonical, current_canonical)
    if not evidence:
        # Тексты различаются только переводами строк
        evidence = ["~line endings differ"]
    return Comparison(ComparisonStatus.DIFFERING, tuple(evidence))


@dataclass(frozen=True)
class Ratio:
    """Отношение двух счётчиков (например, enforce / all processes)."""

    numerator: Optional[int]
    denominator: Optional[int]

    def percent(self) -> Optional[int]:
        """Целочисленный процент с отбрасыванием дробной части; None при нулевом знаменателе."""
        if self.numerator is None or self.denominator is None or self.denominator == 0:
            return None
        value = 100 * self.numerator
        quotient = abs(value) // abs(self.denominator)
        # Усечение к нулю, как в целочисленной арифметике shell
        return quotient if (value >= 0) == (self.denominator > 0) else -quotient

    def __str__(self) -> str:
        return f"{self.numerator} out of {self.denominator}"


class ThresholdSpec(ABC):
    """Базовый класс предиката."""

    description = "predicate"

    @abstractmethod
    def evaluate(self, fact: Any) -> Comparison:
        pass

    def _result(self, passed: bool, evidence: Iterable[str] = (), detail: str = "") -> Comparison:
        status = ComparisonStatus.PASSED if passed else ComparisonStatus.FAILED
        return Comparison(status, tuple(evidence), detail or self.description)


def _as_int(fact: Any) -> Optional[int]:
    if fact is None or isinstance(fact, bool):
        return None
    if isinstance(fact, int):
        return fact
    text = str(fact).strip()
    if re.fullmatch(r"-?[0-9]+", text):
        return int(text)
    return None


def _compile(pattern: PatternLike, flags: int) -> Pattern:
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern, flags)


def _no_data(detail: str) -> Comparison:
    return Comparison(ComparisonStatus.NO_DATA, (), detail)


@dataclass(frozen=True)
class MinCount(ThresholdSpec):
    minimum: int

    @property
    def description(self) -> str:
        return f"at least {self.minimum}"

    def evaluate(self, fact: Any) -> Comparison:
        value = _as_int(fact)
        if value is None:
            return _no_data(f"no count available ({fact!r})")
        return self._result(value >= self.minimum, detail=f"{value} (expected {self.description})")


@dataclass(frozen=True)
class MaxCount(ThresholdSpec):
    maximum: int

    @property
    def description(self) -> str:
        return f"at most {self.maximum}"

    def evaluate(self, fact: Any) -> Comparison:
        value = _as_int(fact)
        if value is None:
            return _no_data(f"no count available ({fact!r})")
        return self._result(value <= self.maximum, detail=f"{value} (expected {self.description})")


@dataclass(frozen=True)
class OneOf(ThresholdSpec):
    """Точное совпадение с одним из ожидаемых значений."""

    expected: Tuple[Any, ...]

    @property
    def description(self) -> str:
        return "one of " + ", ".join(repr(e) for e in self.expected)

    def evaluate(self, fact: Any) -> Comparison:
        if isinstance(fact, str):
            fact = fact.strip()
        passed = fact in self.expected
        evidence = () if passed else (f"expected: {self.description}", f"current:  {fact!r}")
        return self._result(passed, evidence, detail=repr(fact))


@dataclass(frozen=True)
class RegexMustMatch(ThresholdSpec):
    pattern: PatternLike
    flags: int = re.MULTILINE
    label: str = ""

    @property
    def description(self) -> str:
        pattern = self.pattern.pattern if isinstance(self.pattern, re.Pattern) else self.pattern
        return self.label or f"must match /{pattern}/"

    def evaluate(self, fact: Any) -> Comparison:
        text = "" if fact is None else str(fact)
        passed = _compile(self.pattern, self.flags).search(text) is not None
        return self._result(passed, () if passed else (self.description,))


@dataclass(frozen=True)
class RegexMustNotMatch(ThresholdSpec):
    """Ни одна строка не должна совпадать; совпавшие строки - evidence."""

    pattern: PatternLike
    flags: int = 0
    label: str = ""

    @property
    def description(self) -> str:
        pattern = self.pattern.pattern if isinstance(self.pattern, re.Pattern) else self.pattern
        return self.label or f"must not match /{pattern}/"

    def evaluate(self, fact: Any) -> Comparison:
        text = "" if fact is None else str(fact)
        compiled = _compile(self.pattern, self.flags)
        matched = [line for line in text.splitlines() if compiled.search(line)]
        return self._result(not matched, matched)


NOT_EMPTY = r"\S"


@dataclass(frozen=True)
class OlderThanDays(ThresholdSpec):
    """
    Проверка давности: факт (дата или возраст в днях) не должен быть
    старше max_days.
    """

    max_days: int
    today: Optional[date] = None

    @property
    def description(self) -> str:
        return f"not older than {self.max_days} days"

    def age_in_days(self, fact: Any) -> Optional[int]:
        if isinstance(fact, datetime):
            fact = fact.date()
        if isinstance(fact, date):
            today = self.today or date.today()
            return (today - fact).days
        return _as_int(fact)

    def evaluate(self, fact: Any) -> Comparison:
        age = self.age_in_days(fact)
        if age is None:
            return _no_data(f"no date available ({fact!r})")
        return self._result(age <= self.max_days, detail=f"{age} days old (expected {self.description})")


@dataclass(frozen=True)
class MinRatio(ThresholdSpec):
    """Минимальный процент (целочисленный). Нулевой знаменатель - NO_DATA, а не ошибка."""

    minimum_percent: int

    @property
    def description(self) -> str:
        return f"at least {self.minimum_percent}%"

    def evaluate(self, fact: Any) -> Comparison:
        if not isinstance(fact, Ratio):
            return _no_data(f"no ratio available ({fact!r})")
        percent = fact.percent()
        if percent is None:
            return _no_data(f"no data ({fact})")
        return self._result(
            percent >= self.minimum_percent,
            detail=f"{fact}: {percent}% (expected {self.description})",
        )


@dataclass(frozen=True)
class Tally(ThresholdSpec):
    """Информационный отчёт: самые частые строки. Всегда проходит."""

    limit: int = 25

    description = "most frequent lines"

    def evaluate(self, fact: Any) -> Comparison:
        text = "" if fact is None else str(fact)
        counts = Counter(line.strip() for line in text.splitlines() if line.strip())
        # Детерминированный порядок: по убыванию частоты, затем по тексту
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[: self.limit]
        evidence = [f"- {count} {line}" for line, count in ranked]
        return self._result(True, evidence, detail=f"{len(counts)} distinct lines")


@dataclass(frozen=True)
class AllOf(ThresholdSpec):
    """Все условия должны выполняться; evidence собирается со всех провалов."""

    specs: Sequence[ThresholdSpec]
    label: str = ""

    @property
    def description(self) -> str:
        return self.label or "all conditions"

    def evaluate(self, fact: Any) -> Comparison:
        evidence: List[str] = []
        failed = False
        for spec in self.specs:
            result = spec.evaluate(fact)
            if result.status == ComparisonStatus.NO_DATA:
                return result
            if not result.ok:
                failed = True
                evidence.extend(result.evidence or (spec.description,))
        return self._result(not failed, evidence)


@dataclass(frozen=True)
class AnyOf(ThresholdSpec):
    """Достаточно одного выполненного условия."""

    specs: Sequence[ThresholdSpec]
    label: str = ""

    @property
    def description(self) -> str:
        return self.label or "any condition"

    def evaluate(self, fact: Any) -> Comparison:
        evidence: List[str] = []
        for spec in self.specs:
            result = spec.evaluate(fact)
            if result.ok:
                return self._result(True)
            evidence.extend(result.evidence or (spec.description,))
        return self._result(False, evidence)


def evaluate(fact: Any, spec: ThresholdSpec) -> bool:
    """Предикатный режим: True, если факт удовлетворяет порогу."""
    return spec.evaluate(fact).ok
