"""
Accounts, sessions, network, disk and runtime topics.
"""

import re
from typing import List

from ..collectors import system
from ..collectors.packages import SUSPICIOUS_PROCESS_KEYWORDS
from ..core.base_check import BaseCheck, PredicateCheck, SnapshotCheck
from ..core.comparator import (
    NOT_EMPTY,
    AllOf,
    MaxCount,
    OneOf,
    RegexMustMatch,
    RegexMustNotMatch,
    Tally,
)
from ..core.normalizer import (
    CollapseWhitespace,
    DropLines,
    KeepLines,
    MaskPattern,
    NormalizerRegistry,
    SortLines,
)

ACCOUNTS = "Account"
SESSIONS = "Session"
NETWORK = "Network"
DISK = "Disk"
RUNTIME = "Runtime"

# Атрибуты SMART, ненулевое значение которых означает проблему
DISK_ATTRIBUTES = (
    r"FAIL|ERROR|error|Reallocated_Sector_Ct.*[1-9][0-9]*$|Used_Rsvd_Blk_Cnt_Tot.*[1-9][0-9]*$|"
    r"Program_Fail_Cnt_Total.*[1-9][0-9]*$|Erase_Fail_Count_Total.*[1-9][0-9]*$|"
    r"Runtime_Bad_Block.*[1-9][0-9]*$|Uncorrectable_Error_Cnt.*[1-9][0-9]*$|"
    r"ECC_Error_Rate.*[1-9][0-9]*$|CRC_Error_Count.*[1-9][0-9]*$|"
    r"Current_Pending_Sector|Offline_Uncorrectable|Unable"
)
DISK_BENIGN = (
    "Media and Data Integrity Errors:    0",
    "Error Information",
    "No Errors Logged",
    "without error",
    "WHEN_FAILED",
    "LBA_of_first_error",
    "Error Recovery Control supported",
    "Error logging supported",
)


def build(policy) -> List[BaseCheck]:
    nothing = RegexMustNotMatch(NOT_EMPTY, label="unexpected entries found")

    return [
        # === Accounts ===
        PredicateCheck(
            "baseline-folder", f"checkup folder {policy.checkup_folder}",
            system.checkup_folder_state, OneOf(("present",)), section=ACCOUNTS,
        ),
        PredicateCheck(
            "sudo-password", "sudo password",
            system.sudo_password, OneOf(("password required",)), section=ACCOUNTS,
        ),
        SnapshotCheck("sudoers", "sudoers", system.sudoers, section=ACCOUNTS),
        # === Sessions ===
        PredicateCheck(
            "wayland-session-available", "ubuntu wayland session available",
            system.wayland_sessions,
            RegexMustMatch(r"^ubuntu.*\.desktop$", label="no ubuntu wayland session is available"),
            section=SESSIONS,
        ),
        PredicateCheck(
            "wayland-session-active", "wayland session type",
            system.session_type, OneOf(("wayland",)), section=SESSIONS,
        ),
        PredicateCheck(
            "xsession-available", "ubuntu xsession available",
            system.xsessions,
            RegexMustMatch(r"^ubuntu.*\.desktop$", label="no ubuntu xsession is available"),
            section=SESSIONS,
        ),
        PredicateCheck(
            "other-user-sessions", "sessions opened by other users",
            system.session_users, nothing, section=SESSIONS,
        ),
        # === Network ===
        PredicateCheck(
            "network-reachable", "network connection",
            system.network_state, OneOf(("reachable",)), section=NETWORK,
        ),
        PredicateCheck(
            "wireless-disabled", "wireless connections disabled",
            system.rfkill, RegexMustNotMatch("Soft blocked: no", label="wireless connection(s) enabled"),
            section=NETWORK,
        ),
        PredicateCheck(
            "firewall-enabled", "ufw enabled",
            system.ufw_status, OneOf(("active",)),
            fact_name="ufw-status", transform=system.firewall_state, section=NETWORK,
        ),
        PredicateCheck(
            "firewall-incoming-denied", "ufw incoming traffic denied",
            system.ufw_status, RegexMustMatch(r"deny \(incoming\)"),
            fact_name="ufw-status", transform=system.when_firewall_active, section=NETWORK,
        ),
        PredicateCheck(
            "firewall-outgoing-allowed", "ufw outgoing traffic allowed",
            system.ufw_status, RegexMustMatch(r"allow \(outgoing\)"),
            fact_name="ufw-status", transform=system.when_firewall_active, section=NETWORK,
        ),
        PredicateCheck(
            "firewall-routed-disabled", "ufw routed traffic disabled",
            system.ufw_status, RegexMustMatch(r"disabled \(routed\)"),
            fact_name="ufw-status", transform=system.when_firewall_active, section=NETWORK,
        ),
        PredicateCheck(
            "firewall-logging", "ufw logging on (low)",
            system.ufw_status, RegexMustMatch(r"Logging: on \(low\)"),
            fact_name="ufw-status", transform=system.when_firewall_active, section=NETWORK,
        ),
        # === Disk ===
        PredicateCheck(
            "disk-usage", "disk usage",
            system.disk_usage, MaxCount(policy.max_disk_usage_percent), section=DISK,
        ),
        PredicateCheck(
            "disk-size", f"disk size of {policy.hard_disk_device}",
            system.disk_size, RegexMustMatch(r"[0-9.,]+[GT]$", label="unexpected disk size"),
            section=DISK,
        ),
        PredicateCheck(
            "disk-health", "disk health",
            system.smartctl,
            AllOf(
                [
                    RegexMustMatch(
                        "SMART overall-health self-assessment test result: PASSED",
                        label="test result is not PASSED",
                    ),
                    RegexMustMatch("No Errors Logged", label="errors logged"),
                    RegexMustNotMatch(r"Critical Warning.*[1-9][0-9]*$"),
                    RegexMustNotMatch(r"Media and Data Integrity Errors.*[1-9][0-9]*$"),
                ],
                label="disk errors detected",
            ),
            fact_name="smartctl", section=DISK,
        ),
        PredicateCheck(
            "disk-attribute-errors", "disk attributes without errors",
            system.smartctl, RegexMustNotMatch(NOT_EMPTY, label="disk errors detected"),
            fact_name="smartctl", section=DISK,
        ),
        PredicateCheck(
            "disk-attribute-warnings", "disk attributes without warnings",
            system.smartctl, RegexMustNotMatch(NOT_EMPTY, label="disk warnings detected"),
            fact_name="smartctl", section=DISK,
        ),
        PredicateCheck(
            "disk-encryption", "disk encryption",
            system.block_devices, RegexMustMatch("crypt", label="no disk is encrypted"),
            section=DISK,
        ),
        # === Runtime ===
        PredicateCheck(
            "journal-critical-errors", "most frequent critical errors",
            system.journal_critical, Tally(limit=policy.journal_top_errors), section=RUNTIME,
        ),
        PredicateCheck(
            "suspicious-processes", "suspicious processes",
            system.process_table,
            RegexMustNotMatch(SUSPICIOUS_PROCESS_KEYWORDS, flags=re.IGNORECASE, label="suspicious process(es) found"),
            fact_name="ps-aux", section=RUNTIME,
        ),
        PredicateCheck(
            "deleted-executables", "running processes with deleted executables",
            system.deleted_executables, nothing, section=RUNTIME,
        ),
        PredicateCheck(
            "zombie-processes", "zombie processes",
            system.process_table, nothing,
            fact_name="ps-aux", transform=system.zombie_lines, section=RUNTIME,
        ),
    ]


def register_normalizers(registry: NormalizerRegistry, policy) -> None:
    user = system.current_user()
    own_sessions = [rf"^{re.escape(name)}$" for name in (user, "gdm", "sddm") if name]

    registry.register("sudoers", CollapseWhitespace())
    registry.register("other-user-sessions", DropLines(own_sessions, drop_blank=True), SortLines(unique=True))
    registry.register(
        "disk-attribute-errors",
        KeepLines([DISK_ATTRIBUTES]),
        DropLines([re.escape(s) for s in DISK_BENIGN]),
        DropLines([r"(?i)warning"]),
    )
    registry.register(
        "disk-attribute-warnings",
        KeepLines([DISK_ATTRIBUTES]),
        DropLines([re.escape(s) for s in DISK_BENIGN]),
        KeepLines([r"(?i)warning"]),
    )
    registry.register(
        "journal-critical-errors",
        MaskPattern(r"for [0-9]+s", "for XXs"),
        DropLines(["password is required"]),
    )
    # собственные строки ps не должны совпадать с ключевыми словами
    registry.register("suspicious-processes", DropLines([r"grep "]))
