"""
Severity classification.

All severity rules live in one table keyed by topic identifier, so which
mismatch is an error and which is only a warning can be read (and tested)
without looking at any collection code.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from .models import CheckOutcome, Comparison, ComparisonStatus, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopicPolicy:
    """Политика серьёзности для одного topic."""

    passed: Severity = Severity.SUCCESS
    mismatch: Severity = Severity.ERROR
    missing_baseline: Severity = Severity.WARNING
    unavailable: Severity = Severity.WARNING
    no_data: Severity = Severity.WARNING
    skipped: Severity = Severity.INFO
    prerequisite: bool = False
    acknowledge: bool = False

    def __post_init__(self):
        # "Не настроено" никогда не должно выглядеть как "сломано"
        for name in ("missing_baseline", "unavailable", "no_data", "skipped"):
            if getattr(self, name) in (Severity.ERROR, Severity.SUCCESS):
                raise ValueError(f"{name} must be INFO or WARNING")


DEFAULT_POLICY = TopicPolicy()
SOFT = TopicPolicy(mismatch=Severity.WARNING)
INFORMATIONAL = TopicPolicy(passed=Severity.INFO, mismatch=Severity.INFO, unavailable=Severity.INFO)


POLICY_TABLE: Dict[str, TopicPolicy] = {
    # === Accounts ===
    "baseline-folder": SOFT,
    "sudo-password": TopicPolicy(skipped=Severity.WARNING),
    "sudoers": DEFAULT_POLICY,
    # === Sessions ===
    "wayland-session-available": DEFAULT_POLICY,
    "wayland-session-active": DEFAULT_POLICY,
    "xsession-available": SOFT,
    "other-user-sessions": SOFT,
    # === Network ===
    "network-reachable": TopicPolicy(prerequisite=True, acknowledge=True),
    "wireless-disabled": SOFT,
    "firewall-enabled": DEFAULT_POLICY,
    "firewall-incoming-denied": DEFAULT_POLICY,
    "firewall-outgoing-allowed": DEFAULT_POLICY,
    "firewall-routed-disabled": DEFAULT_POLICY,
    "firewall-logging": SOFT,
    # === Disk ===
    "disk-usage": SOFT,
    "disk-size": DEFAULT_POLICY,
    "disk-health": DEFAULT_POLICY,
    "disk-attribute-errors": DEFAULT_POLICY,
    "disk-attribute-warnings": SOFT,
    "disk-encryption": TopicPolicy(mismatch=Severity.INFO),
    # === Runtime ===
    "journal-critical-errors": INFORMATIONAL,
    "suspicious-processes": DEFAULT_POLICY,
    "deleted-executables": DEFAULT_POLICY,
    "zombie-processes": SOFT,
    # === AppArmor ===
    "apparmor-service": DEFAULT_POLICY,
    "apparmor-enforced-profiles": DEFAULT_POLICY,
    "apparmor-profiled-processes": DEFAULT_POLICY,
    "apparmor-enforce-ratio": DEFAULT_POLICY,
    "apparmor-userns-restricted": DEFAULT_POLICY,
    "apparmor-prompt-processes": SOFT,
    "apparmor-unconfined-processes": SOFT,
    "apparmor-mixed-processes": SOFT,
    "apparmor-complain-processes": SOFT,
    # === Install ===
    "repository-urls": DEFAULT_POLICY,
    "repository-sources": DEFAULT_POLICY,
    "repository-list": DEFAULT_POLICY,
    "update-schedule": DEFAULT_POLICY,
    "update-download": SOFT,
    "update-unattended": DEFAULT_POLICY,
    "update-parameters": DEFAULT_POLICY,
    "startup-applications": DEFAULT_POLICY,
    "startup-services": DEFAULT_POLICY,
    "sysvinit-ownership": DEFAULT_POLICY,
    "login-shell-files": DEFAULT_POLICY,
    "startup-scripts": DEFAULT_POLICY,
    "cron-jobs": DEFAULT_POLICY,
    "timers": DEFAULT_POLICY,
    "setuid-files": DEFAULT_POLICY,
    "path-variable": DEFAULT_POLICY,
    "usr-local-sbin": DEFAULT_POLICY,
    "usr-local-bin": DEFAULT_POLICY,
    "apt-get-check": DEFAULT_POLICY,
    # === Browsers ===
    "firefox-settings": DEFAULT_POLICY,
    "firefox-profiles": DEFAULT_POLICY,
    "firefox-addons": DEFAULT_POLICY,
    "firefox-extensions": DEFAULT_POLICY,
    "default-browser": SOFT,
    "chromium-settings": DEFAULT_POLICY,
    "chromium-extensions": SOFT,
    # === Packages ===
    "package-files": DEFAULT_POLICY,
    "binary-checksums": DEFAULT_POLICY,
    "unsafe-packages": DEFAULT_POLICY,
    "kde-wallet": TopicPolicy(mismatch=Severity.WARNING, unavailable=Severity.INFO),
    "suspicious-files": DEFAULT_POLICY,
    "suspicious-modules": DEFAULT_POLICY,
    "suspicious-packages": DEFAULT_POLICY,
    "flatpak-installed": SOFT,
    "restricted-packages": DEFAULT_POLICY,
    "multiverse-packages": DEFAULT_POLICY,
    "backports-packages": DEFAULT_POLICY,
    "obsolete-packages": SOFT,
    "autoremovable-packages": SOFT,
    # === Snaps ===
    "snap-list": DEFAULT_POLICY,
    "snapd-running": DEFAULT_POLICY,
    "snap-confinement": DEFAULT_POLICY,
    "snap-publishers": DEFAULT_POLICY,
    "snap-channels": DEFAULT_POLICY,
    "snap-held": DEFAULT_POLICY,
    "snap-refresh-schedule": SOFT,
    "snap-refresh-retain": DEFAULT_POLICY,
    "snap-info-confinement": DEFAULT_POLICY,
    "snap-store-urls": DEFAULT_POLICY,
    "snap-licenses": DEFAULT_POLICY,
    "snap-tracking": DEFAULT_POLICY,
    "package-refresh-staleness": TopicPolicy(mismatch=Severity.WARNING, unavailable=Severity.INFO),
    "snap-snapshots": SOFT,
    "snap-network": DEFAULT_POLICY,
    # === Installed packages ===
    "held-packages": DEFAULT_POLICY,
    "package-origins": DEFAULT_POLICY,
}


def policy_for(topic_key: str, table: Optional[Mapping[str, TopicPolicy]] = None) -> TopicPolicy:
    """
    Найти политику для topic.

    Ключи вида "family/item" (например, package-refresh-staleness/firefox)
    наследуют политику "family", если своей записи нет.
    """
    table = POLICY_TABLE if table is None else table
    if topic_key in table:
        return table[topic_key]
    family = topic_key.split("/", 1)[0]
    if family in table:
        return table[family]
    logger.debug(f"No severity policy for {topic_key}, using default")
    return DEFAULT_POLICY


def _message(topic_key: str, label: str, comparison: Comparison, severity: Severity) -> str:
    status = comparison.status
    detail = f" ({comparison.detail})" if comparison.detail else ""

    if status in (ComparisonStatus.EQUAL, ComparisonStatus.PASSED):
        return f"{label}{detail}" if severity == Severity.INFO else label
    if status == ComparisonStatus.DIFFERING:
        return f"{label} has changed{detail}, check the changes and run 'checkup promote {topic_key}' to accept them"
    if status == ComparisonStatus.FAILED:
        return f"{label} check failed{detail}"
    if status == ComparisonStatus.BASELINE_MISSING:
        return f"{label} check is skipped because reference {comparison.detail or 'snapshot'} does not exist"
    if status == ComparisonStatus.UNAVAILABLE:
        return f"{label} check is skipped because data is unavailable{detail}"
    if status == ComparisonStatus.NO_DATA:
        return f"{label}: no data{detail}"
    return f"{label} check is skipped{detail}"


def classify(
    topic_key: str,
    label: str,
    comparison: Comparison,
    policy: Optional[TopicPolicy] = None,
) -> CheckOutcome:
    """
    Сопоставить результат Comparator'а с уровнем серьёзности.

    Args:
        topic_key: Ключ topic
        label: Человекочитаемое название
        comparison: Результат сравнения
        policy: Политика topic (по умолчанию из POLICY_TABLE)

    Returns:
        CheckOutcome
    """
    policy = policy or policy_for(topic_key)
    status = comparison.status

    if status in (ComparisonStatus.EQUAL, ComparisonStatus.PASSED):
        severity = policy.passed
    elif status in (ComparisonStatus.DIFFERING, ComparisonStatus.FAILED):
        severity = policy.mismatch
    elif status == ComparisonStatus.BASELINE_MISSING:
        severity = policy.missing_baseline
    elif status == ComparisonStatus.UNAVAILABLE:
        severity = policy.unavailable
    elif status == ComparisonStatus.NO_DATA:
        severity = policy.no_data
    else:
        severity = policy.skipped

    evidence = "\n".join(comparison.evidence) if comparison.evidence else None

    return CheckOutcome(
        topic_key=topic_key,
        label=label,
        severity=severity,
        message=_message(topic_key, label, comparison, severity),
        evidence=evidence,
        fatal=policy.prerequisite and severity == Severity.ERROR,
        acknowledge=policy.acknowledge,
    )


__all__ = [
    "TopicPolicy",
    "POLICY_TABLE",
    "DEFAULT_POLICY",
    "SOFT",
    "INFORMATIONAL",
    "policy_for",
    "classify",
]
