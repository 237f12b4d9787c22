"""
Base classes for audit topics.

A topic owns its collector and knows how to turn the collected fact into a
Comparison. Classification, bookkeeping and the interaction gate are done by
the orchestrator, never by the topic itself.
"""

import asyncio
import inspect
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .baseline import BaselineStore
from .classifier import TopicPolicy, policy_for
from .comparator import ThresholdSpec, compare
from .models import Comparison, ComparisonStatus, Skipped, Unavailable
from .normalizer import NormalizerRegistry

logger = logging.getLogger(__name__)

Collector = Callable[[Any], Union[Any, Awaitable[Any]]]
Transform = Callable[[Any, Any], Any]


@dataclass
class AuditContext:
    """Состояние одного запуска, общее для всех topic'ов."""

    policy: Any
    store: BaselineStore
    normalizers: NormalizerRegistry = field(default_factory=NormalizerRegistry)
    today: date = field(default_factory=date.today)
    facts: Dict[str, Any] = field(default_factory=dict)

    async def fact(self, name: str, collector: Collector) -> Any:
        """
        Получить факт с кешированием на время запуска.

        Несколько topic'ов (например, правила ufw) используют один вывод
        команды; команда выполняется один раз. Ошибка или таймаут тоже
        запоминаются: остальные topic'и получают Unavailable без повторного
        запуска команды.
        """
        if name not in self.facts:
            try:
                self.facts[name] = await call_collector(collector, self.policy)
            except asyncio.CancelledError:
                self.facts[name] = Unavailable(f"{name} was interrupted (timeout)")
                raise
            except Exception as e:
                self.facts[name] = Unavailable(f"{name} failed: {type(e).__name__}: {e}")
                raise
        return self.facts[name]


async def call_collector(collector: Collector, policy: Any) -> Any:
    """Вызвать sync или async collector."""
    result = collector(policy)
    if inspect.isawaitable(result):
        result = await result
    return result


def sentinel(fact: Any) -> Optional[Comparison]:
    """Ответы collector'а, после которых сравнение не выполняется."""
    if fact is None:
        return Comparison(ComparisonStatus.UNAVAILABLE)
    if isinstance(fact, Unavailable):
        return Comparison(ComparisonStatus.UNAVAILABLE, detail=fact.reason)
    if isinstance(fact, Skipped):
        return Comparison(ComparisonStatus.SKIPPED, detail=fact.reason)
    return None


class BaseCheck(ABC):
    """
    Базовый класс для всех topic'ов.

    Предоставляет:
    - Шаблон метода run()
    - Error handling
    - Timeout support
    - Логирование
    """

    requires_baseline = False

    def __init__(
        self,
        key: str,
        label: str,
        collector: Collector,
        section: str = "",
        fact_name: Optional[str] = None,
        transform: Optional[Transform] = None,
        expensive: bool = False,
        timeout_seconds: Optional[float] = None,
        severity_policy: Optional[TopicPolicy] = None,
    ):
        """
        Args:
            key: Стабильный идентификатор topic
            label: Название для вывода
            collector: Fact Collector (получает Policy)
            section: Раздел отчёта (Network, Disk, ...)
            fact_name: Имя факта для общего кеша (None = без кеша)
            transform: Преобразование факта после кеша (fact, policy) -> fact
            expensive: Долгая проверка, пропускается при skip_expensive_checks
            timeout_seconds: Таймаут (по умолчанию из Policy)
            severity_policy: Политика серьёзности (по умолчанию из POLICY_TABLE)
        """
        self.key = key
        self.label = label
        self.collector = collector
        self.section = section
        self.fact_name = fact_name
        self.transform = transform
        self.expensive = expensive
        self.timeout_seconds = timeout_seconds
        self._severity_policy = severity_policy
        self.logger = logging.getLogger(f"checkup.{key}")

    @property
    def severity_policy(self) -> TopicPolicy:
        return self._severity_policy or policy_for(self.key)

    def _timeout(self, context: AuditContext) -> float:
        if self.timeout_seconds is not None:
            return self.timeout_seconds
        if self.expensive:
            return float(getattr(context.policy, "expensive_timeout_seconds", 900.0))
        return float(getattr(context.policy, "command_timeout_seconds", 30.0))

    async def run(self, context: AuditContext) -> Comparison:
        """
        Выполнить проверку с error handling и timeout.

        Returns:
            Comparison; исключения и таймауты превращаются в UNAVAILABLE
        """
        if self.expensive and getattr(context.policy, "skip_expensive_checks", False):
            return Comparison(ComparisonStatus.SKIPPED, detail="expensive checks are disabled")

        self.logger.debug(f"Starting {self.key}...")
        start_time = time.perf_counter()
        timeout = self._timeout(context)

        try:
            comparison = await asyncio.wait_for(self._evaluate(context), timeout=timeout)

        except asyncio.TimeoutError:
            self.logger.error(f"{self.key} timed out after {timeout}s")
            return Comparison(ComparisonStatus.UNAVAILABLE, detail=f"timed out after {timeout:g}s")

        except Exception as e:
            self.logger.error(f"{self.key} failed with exception: {e}", exc_info=True)
            return Comparison(ComparisonStatus.UNAVAILABLE, detail=f"{type(e).__name__}: {e}")

        duration_ms = (time.perf_counter() - start_time) * 1000
        self.logger.debug(f"Completed {self.key}: {comparison.status.value}, duration={duration_ms:.2f}ms")
        return comparison

    async def collect(self, context: AuditContext) -> Any:
        if self.fact_name:
            fact = await context.fact(self.fact_name, self.collector)
        else:
            fact = await call_collector(self.collector, context.policy)
        if self.transform is not None and sentinel(fact) is None:
            fact = self.transform(fact, context.policy)
        return fact

    @abstractmethod
    async def _evaluate(self, context: AuditContext) -> Comparison:
        """Собрать факт и сравнить его (реализуется в подклассах)."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r})"


class PredicateCheck(BaseCheck):
    """Проверка факта по порогу / шаблону."""

    def __init__(self, key: str, label: str, collector: Collector, spec: ThresholdSpec, **kwargs):
        super().__init__(key, label, collector, **kwargs)
        self.spec = spec

    async def _evaluate(self, context: AuditContext) -> Comparison:
        fact = await self.collect(context)
        early = sentinel(fact)
        if early is not None:
            return early
        if isinstance(fact, str):
            fact = context.normalizers.normalize(self.key, fact)
        return self.spec.evaluate(fact)


class SnapshotCheck(BaseCheck):
    """Сравнение текущего состояния с сохранённым snapshot'ом."""

    requires_baseline = True

    async def _evaluate(self, context: AuditContext) -> Comparison:
        store = context.store
        if not store.available:
            return Comparison(ComparisonStatus.BASELINE_MISSING, detail=f"folder {store.folder}")

        raw = await self.collect(context)
        early = sentinel(raw)
        if early is not None:
            return early

        current = context.normalizers.normalize(self.key, str(raw))
        store.write_current_capture(self.key, current)

        saved_raw = store.read_snapshot(self.key)
        if saved_raw is None:
            return Comparison(
                ComparisonStatus.BASELINE_MISSING,
                detail=f"file {store.saved_path(self.key)}",
            )

        saved = context.normalizers.normalize(self.key, saved_raw)
        return self._compare(saved, current)

    def _compare(self, saved: str, current: str) -> Comparison:
        return compare(saved, current)


_COMPLAIN_COUNT = re.compile(r"^\s*([0-9]+) processes are in complain mode", re.MULTILINE)


class ComplainModeCheck(SnapshotCheck):
    """
    Snapshot процессов AppArmor в режиме complain.

    Изменение списка сообщается только если процессов стало больше,
    чем saved + tolerance.
    """

    def __init__(self, key: str, label: str, collector: Collector, tolerance: int = 3, **kwargs):
        super().__init__(key, label, collector, **kwargs)
        self.tolerance = tolerance

    @staticmethod
    def count(text: str) -> Optional[int]:
        match = _COMPLAIN_COUNT.search(text)
        return int(match.group(1)) if match else None

    def _compare(self, saved: str, current: str) -> Comparison:
        saved_count = self.count(saved)
        current_count = self.count(current)
        if saved_count is None or current_count is None:
            return Comparison(
                ComparisonStatus.NO_DATA,
                detail=f"numbers of processes cannot be extracted: {saved_count}, {current_count}",
            )
        if current_count - saved_count <= self.tolerance:
            return Comparison(ComparisonStatus.EQUAL, detail=f"{current_count} processes")
        return compare(saved, current)
