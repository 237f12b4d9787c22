"""
Pytest configuration and fixtures.

Использование:
    pytest tests/ -v

Ни один тест не обращается к реальной системе: collector'ы подменяются
фейками, а baseline-директория создаётся во временной папке.
"""

from datetime import date
from pathlib import Path
from typing import Any, List

import pytest

from checkup.config import Policy
from checkup.core.baseline import BaselineStore
from checkup.core.gate import InteractionGate


# ═══════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════

def make_policy(home: Path, **overrides) -> Policy:
    """Policy без .env файла и с home во временной директории."""
    return Policy(_env_file=None, home=home, **overrides)


@pytest.fixture
def policy(tmp_path):
    return make_policy(tmp_path)


@pytest.fixture
def policy_factory(tmp_path):
    """Policy с переопределёнными полями."""
    def factory(**overrides):
        return make_policy(tmp_path, **overrides)
    return factory


@pytest.fixture
def store(policy):
    """Baseline store с существующей директорией."""
    policy.checkup_folder.mkdir(parents=True, exist_ok=True)
    return BaselineStore(policy.checkup_folder)


# ═══════════════════════════════════════════════════════
# FAKES
# ═══════════════════════════════════════════════════════

class FakeCollector:
    """Collector с заранее заданным ответом и счётчиком вызовов."""

    def __init__(self, value: Any = None, error: Exception = None):
        self.value = value
        self.error = error
        self.calls = 0

    def __call__(self, policy):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.value


class AsyncFakeCollector(FakeCollector):
    async def __call__(self, policy):
        return super().__call__(policy)


class RecordingPrompt:
    """Подмена ожидания оператора."""

    def __init__(self):
        self.messages: List[str] = []

    def __call__(self, message: str) -> str:
        self.messages.append(message)
        return ""


@pytest.fixture
def fake():
    return FakeCollector


@pytest.fixture
def async_fake():
    return AsyncFakeCollector


@pytest.fixture
def today():
    return date(2025, 3, 1)


@pytest.fixture
def prompt():
    return RecordingPrompt()


@pytest.fixture
def gate(prompt):
    return InteractionGate(prompt=prompt)
