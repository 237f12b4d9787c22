"""
AppArmor topics.

Most of them read the same aa-status output, collected once per run.
"""

from typing import List

from ..collectors import system
from ..core.base_check import BaseCheck, ComplainModeCheck, PredicateCheck
from ..core.comparator import AllOf, MaxCount, MinCount, MinRatio, OneOf, RegexMustMatch
from ..core.normalizer import MaskPattern, NormalizerRegistry, SliceSection

APPARMOR = "Apparmor"
AA_STATUS = "aa-status"


def _counted(key: str, label: str, phrase: str, spec) -> PredicateCheck:
    return PredicateCheck(
        key, label, system.aa_status, spec,
        fact_name=AA_STATUS, transform=system.aa_counter(phrase), section=APPARMOR,
    )


def build(policy) -> List[BaseCheck]:
    return [
        PredicateCheck(
            "apparmor-service", "apparmor loaded and active",
            system.apparmor_service,
            AllOf(
                [
                    RegexMustMatch(r"Loaded: loaded \(.*apparmor\.service; enabled", label="apparmor not loaded and enabled"),
                    RegexMustMatch(r"Active: active \(exited\)", label="apparmor not active"),
                ]
            ),
            section=APPARMOR,
        ),
        _counted(
            "apparmor-enforced-profiles", "apparmor profiles in enforce mode",
            "profiles are in enforce mode", MinCount(policy.min_enforced_profiles),
        ),
        _counted(
            "apparmor-profiled-processes", "apparmor processes with profiles",
            "processes have profiles defined", MinCount(policy.min_profiled_processes),
        ),
        PredicateCheck(
            "apparmor-enforce-ratio", "apparmor processes in enforce mode",
            system.aa_status, MinRatio(policy.min_enforce_ratio_percent),
            fact_name=AA_STATUS, transform=system.aa_enforce_ratio, section=APPARMOR,
        ),
        PredicateCheck(
            "apparmor-userns-restricted", "unprivileged user namespaces restricted",
            system.userns_restriction,
            OneOf(("kernel.apparmor_restrict_unprivileged_userns = 1",)),
            section=APPARMOR,
        ),
        _counted(
            "apparmor-prompt-processes", "apparmor processes in prompt mode",
            "processes are in prompt mode", MaxCount(0),
        ),
        _counted(
            "apparmor-unconfined-processes", "apparmor processes in unconfined mode",
            "processes are unconfined", MaxCount(0),
        ),
        _counted(
            "apparmor-mixed-processes", "apparmor processes in mixed mode",
            "processes are in mixed mode", MaxCount(0),
        ),
        ComplainModeCheck(
            "apparmor-complain-processes", "apparmor processes in complain mode",
            system.aa_status, tolerance=policy.complain_mode_tolerance,
            fact_name=AA_STATUS, section=APPARMOR,
        ),
    ]


def register_normalizers(registry: NormalizerRegistry, policy) -> None:
    registry.register(
        "apparmor-complain-processes",
        SliceSection("processes are in complain mode", "processes are"),
        MaskPattern(r"\([0-9]+\)", "X"),
    )
