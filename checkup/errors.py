"""
Exceptions raised outside the audit engine (CLI and operator actions).

The engine itself never raises for a failing check: every problem becomes a
CheckOutcome.
"""


class CheckupError(Exception):
    """Базовая ошибка checkup."""


class ConfigurationError(CheckupError):
    """Некорректная конфигурация (.env / переменные окружения)."""


class UpdateFlowError(CheckupError):
    """Шаг процесса обновления завершился с ошибкой."""

    def __init__(self, step: str, returncode: int):
        super().__init__(f"{step} failed (exit code {returncode})")
        self.step = step
        self.returncode = returncode
