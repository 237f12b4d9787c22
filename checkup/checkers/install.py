"""
Install topics: repositories, update settings, startup mechanisms, PATH and
locally installed programs.
"""

import re
from typing import List

from ..collectors import install
from ..core.base_check import BaseCheck, PredicateCheck, SnapshotCheck
from ..core.comparator import (
    NOT_EMPTY,
    AnyOf,
    OneOf,
    RegexMustMatch,
    RegexMustNotMatch,
)
from ..core.normalizer import (
    CollapseWhitespace,
    DropLines,
    ExtractMatches,
    NormalizerRegistry,
    ProjectColumns,
    SortLines,
)

INSTALL = "Install"
APT_CACHE_POLICY = "apt-cache-policy"
APT_PERIODIC = "apt-periodic"


def build(policy) -> List[BaseCheck]:
    nothing = RegexMustNotMatch(NOT_EMPTY, label="unexpected entries found")

    return [
        # === Repositories ===
        PredicateCheck(
            "repository-urls", "repository URLs",
            install.apt_cache_policy, RegexMustNotMatch(NOT_EMPTY, label="unexpected repository URLs"),
            fact_name=APT_CACHE_POLICY, section=INSTALL,
        ),
        SnapshotCheck("repository-sources", "repository sources", install.apt_sources, section=INSTALL),
        SnapshotCheck(
            "repository-list", "repository list (apt-cache policy)",
            install.apt_cache_policy, fact_name=APT_CACHE_POLICY, section=INSTALL,
        ),
        # === Software updates ===
        PredicateCheck(
            "update-schedule", "daily software update",
            install.apt_periodic,
            RegexMustMatch(r'Update-Package-Lists.*"1";', label="software update rate is not daily"),
            fact_name=APT_PERIODIC, section=INSTALL,
        ),
        PredicateCheck(
            "update-download", "download of upgradeable packages",
            install.apt_periodic,
            RegexMustMatch(r'Download-Upgradeable-Packages.*"[01]";', label="cannot check download upgradeable packages"),
            fact_name=APT_PERIODIC, section=INSTALL,
        ),
        PredicateCheck(
            "update-unattended", "installation of downloaded updates",
            install.apt_periodic,
            AnyOf(
                [
                    RegexMustNotMatch(r'Download-Upgradeable-Packages.*"1";'),
                    RegexMustNotMatch(r'Unattended-Upgrade.*"0";'),
                ],
                label="software update only downloads but does not install new packages",
            ),
            fact_name=APT_PERIODIC, section=INSTALL,
        ),
        SnapshotCheck("update-parameters", "software update parameters", install.update_parameters, section=INSTALL),
        # === Startup ===
        SnapshotCheck("startup-applications", "startup applications", install.autostart, section=INSTALL),
        SnapshotCheck("startup-services", "startup services", install.enabled_services, section=INSTALL),
        PredicateCheck(
            "sysvinit-ownership", "SysVinit scripts owned by root",
            install.non_root_sysvinit, RegexMustNotMatch(NOT_EMPTY, label="unexpected non root SysVinit script(s)"),
            section=INSTALL,
        ),
        PredicateCheck(
            "login-shell-files", "login shell files",
            install.login_shell_files, RegexMustNotMatch(NOT_EMPTY, label="unexpected login shell file(s)"),
            section=INSTALL,
        ),
        SnapshotCheck("startup-scripts", "startup scripts (.profile, .bashrc)", install.startup_scripts, section=INSTALL),
        PredicateCheck(
            "cron-jobs", "jobs scheduled with cron",
            install.crontab, RegexMustNotMatch(NOT_EMPTY, label="unexpected jobs are scheduled with cron"),
            section=INSTALL,
        ),
        SnapshotCheck("timers", "timers", install.timers, section=INSTALL),
        SnapshotCheck(
            "setuid-files", "files with special SUID or SGID permissions",
            install.setuid_files, expensive=True, section=INSTALL,
        ),
        # === Programs ===
        PredicateCheck(
            "path-variable", "PATH environment variable",
            install.path_variable, OneOf((policy.expected_path,)), section=INSTALL,
        ),
        PredicateCheck(
            "usr-local-sbin", "/usr/local/sbin contents",
            install.usr_local_sbin, nothing, section=INSTALL,
        ),
        PredicateCheck(
            "usr-local-bin", "/usr/local/bin contents",
            install.usr_local_bin, nothing, section=INSTALL,
        ),
        PredicateCheck(
            "apt-get-check", "apt-get check",
            install.apt_get_check, OneOf(("ok",)), section=INSTALL,
        ),
    ]


def register_normalizers(registry: NormalizerRegistry, policy) -> None:
    official = [re.escape(url) for url in policy.official_repository_urls]

    registry.register(
        "repository-urls",
        ExtractMatches(r"\bhttp[^ ]+"),
        DropLines(official),
        SortLines(unique=True),
    )
    registry.register("startup-services", CollapseWhitespace())
    # колонки NEXT/LEFT/LAST/PASSED меняются при каждом запуске
    registry.register("timers", ProjectColumns((-2, -1)), SortLines())
    registry.register("setuid-files", DropLines(["/snap/"]), SortLines())
    registry.register("cron-jobs", DropLines(["no crontab for", r"^\s*#"], drop_blank=True))
