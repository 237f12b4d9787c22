"""
Topic catalogue.

Contains the ordered audit topics:
- system - accounts, sessions, network, disk, runtime
- apparmor - AppArmor enforcement
- install - repositories, updates, startup, PATH
- browsers - Firefox and Chromium settings
- packages - packages and suspicious artifacts
- snaps - snap packages
"""

from datetime import date
from typing import List, Optional

from ..core.base_check import BaseCheck
from ..core.normalizer import NormalizerRegistry
from . import apparmor, browsers, install, packages, snaps, system

_SECTIONS = (system, apparmor, install, browsers, packages, snaps)


def build_topics(policy, today: Optional[date] = None) -> List[BaseCheck]:
    """
    Создать упорядоченный список topic'ов.

    Args:
        policy: Policy запуска
        today: Дата для проверок давности (по умолчанию сегодня)

    Returns:
        Topic'и в порядке выполнения
    """
    topics: List[BaseCheck] = []
    topics += system.build(policy)
    topics += apparmor.build(policy)
    topics += install.build(policy)
    topics += browsers.build(policy)
    topics += packages.build(policy)
    topics += snaps.build(policy, today=today)
    topics += packages.build_installed(policy)

    keys = [topic.key for topic in topics]
    duplicates = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates:
        raise ValueError(f"Duplicate topic keys: {duplicates}")
    return topics


def build_registry(policy) -> NormalizerRegistry:
    """Реестр нормализаторов для всех topic'ов."""
    registry = NormalizerRegistry()
    for section in _SECTIONS:
        section.register_normalizers(registry, policy)
    return registry


__all__ = ["build_topics", "build_registry"]
