"""
Audit orchestrator.

Features:
- Strictly sequential execution in catalogue order
- Graceful degradation (a failing topic never stops later ones)
- Prerequisite topics that abort the run
- Single RunSummary as the only place where counts are kept
"""

import logging
import time
from datetime import date
from typing import Optional, Protocol, Sequence

from .checkers import build_registry
from .core.base_check import AuditContext, BaseCheck
from .core.baseline import BaselineStore
from .core.classifier import classify
from .core.gate import InteractionGate
from .core.models import CheckOutcome, Comparison, ComparisonStatus, RunSummary
from .core.normalizer import NormalizerRegistry

logger = logging.getLogger(__name__)


class OutcomeReporter(Protocol):
    """Получатель результатов по мере их появления."""

    def start(self, topic: BaseCheck) -> None:
        ...

    def report(self, outcome: CheckOutcome) -> None:
        ...


class AuditOrchestrator:
    """Оркестратор для управления выполнением аудита."""

    def __init__(
        self,
        policy,
        store: Optional[BaselineStore] = None,
        normalizers: Optional[NormalizerRegistry] = None,
        gate: Optional[InteractionGate] = None,
        reporter: Optional[OutcomeReporter] = None,
        today: Optional[date] = None,
    ):
        """
        Args:
            policy: Policy запуска (только чтение)
            store: Хранилище snapshot'ов (по умолчанию policy.checkup_folder)
            normalizers: Реестр нормализаторов (по умолчанию build_registry)
            gate: Interaction Gate (по умолчанию из stop-флагов policy)
            reporter: Вывод результатов (None = без вывода)
            today: Дата запуска для проверок давности
        """
        self.policy = policy
        self.store = store or BaselineStore(policy.checkup_folder)
        self.normalizers = normalizers if normalizers is not None else build_registry(policy)
        self.gate = gate or InteractionGate(
            stop_on_warnings=policy.stop_on_warnings,
            stop_on_errors=policy.stop_on_errors,
        )
        self.reporter = reporter
        self.today = today or date.today()

    def _context(self) -> AuditContext:
        return AuditContext(
            policy=self.policy,
            store=self.store,
            normalizers=self.normalizers,
            today=self.today,
        )

    async def evaluate(self, topic: BaseCheck, context: AuditContext) -> CheckOutcome:
        """
        Выполнить один topic и классифицировать результат.

        Исключения внутри topic уже превращены в UNAVAILABLE в BaseCheck.run();
        здесь страхуется только сама классификация.
        """
        comparison = await topic.run(context)
        try:
            return classify(topic.key, topic.label, comparison, topic.severity_policy)
        except Exception as e:
            logger.error(f"Classification of {topic.key} failed: {e}", exc_info=True)
            fallback = Comparison(ComparisonStatus.UNAVAILABLE, detail=f"{type(e).__name__}: {e}")
            return classify(topic.key, topic.label, fallback)

    async def run_audit(self, topics: Sequence[BaseCheck]) -> RunSummary:
        """
        Запустить topic'и последовательно.

        Args:
            topics: Упорядоченный список topic'ов

        Returns:
            RunSummary (SUMMARIZED или ABORTED)
        """
        keys = [topic.key for topic in topics]
        if len(set(keys)) != len(keys):
            raise ValueError("Topic keys must be unique")

        summary = RunSummary()
        context = self._context()
        start_time = time.perf_counter()
        total = len(topics)

        logger.info(f"Running {total} topics sequentially...")

        for i, topic in enumerate(topics, 1):
            logger.debug(f"[{i}/{total}] Running {topic.key}...")
            if self.reporter is not None:
                self.reporter.start(topic)

            outcome = await self.evaluate(topic, context)
            summary.record(outcome)

            if self.reporter is not None:
                self.reporter.report(outcome)
            self.gate.review(outcome)

            if outcome.fatal:
                logger.warning(f"Prerequisite {topic.key} failed, aborting run")
                summary.abort(outcome.message)
                break

        summary.finalize(time.perf_counter() - start_time)
        logger.info(
            f"Audit {summary.state.value}: {summary.error_count} errors, "
            f"{summary.warning_count} warnings, {len(summary.outcomes)}/{total} topics"
        )
        return summary


async def run_audit(
    policy,
    topics: Sequence[BaseCheck],
    **kwargs,
) -> RunSummary:
    """
    Запустить аудит (удобная обёртка над AuditOrchestrator).

    Args:
        policy: Policy запуска
        topics: Упорядоченный список topic'ов
        **kwargs: Параметры AuditOrchestrator (store, normalizers, gate, reporter, today)
    """
    orchestrator = AuditOrchestrator(policy, **kwargs)
    return await orchestrator.run_audit(topics)


__all__ = ["AuditOrchestrator", "OutcomeReporter", "run_audit"]
