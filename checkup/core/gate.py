"""
Interaction gate: pause for operator acknowledgment after selected outcomes.
"""

import logging
from typing import Callable, List, Optional

from .models import CheckOutcome, Severity

logger = logging.getLogger(__name__)

ACKNOWLEDGE_PROMPT = "Press Enter to ignore..."


def _console_prompt(message: str) -> str:
    from rich.console import Console

    return Console().input(message)


class InteractionGate:
    """
    Решает, нужно ли остановиться и дождаться оператора.

    Пауза никогда не меняет и не отменяет уже записанный результат.
    """

    def __init__(
        self,
        stop_on_warnings: bool = False,
        stop_on_errors: bool = False,
        prompt: Optional[Callable[[str], str]] = None,
    ):
        """
        Args:
            stop_on_warnings: Останавливаться на каждом Warning
            stop_on_errors: Останавливаться на каждом Error
            prompt: Функция ожидания ввода (по умолчанию rich Console.input)
        """
        self.stop_on_warnings = stop_on_warnings
        self.stop_on_errors = stop_on_errors
        self.prompt = prompt or _console_prompt
        self.acknowledged: List[str] = []

    def should_suspend(self, outcome: CheckOutcome) -> bool:
        if outcome.severity == Severity.WARNING and (self.stop_on_warnings or outcome.acknowledge):
            return True
        if outcome.severity == Severity.ERROR and (self.stop_on_errors or outcome.acknowledge):
            return True
        return False

    def review(self, outcome: CheckOutcome) -> bool:
        """
        Показать паузу, если требуется.

        Returns:
            True, если запуск приостанавливался
        """
        if not self.should_suspend(outcome):
            return False

        logger.debug(f"Waiting for acknowledgment of {outcome.topic_key}")
        self.prompt(ACKNOWLEDGE_PROMPT)
        self.acknowledged.append(outcome.topic_key)
        return True
