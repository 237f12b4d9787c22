"""
Package topics: package file integrity, unsafe or suspicious software,
repository components and per-package origins.
"""

import re
from typing import List

from ..collectors import packages
from ..core.base_check import BaseCheck, PredicateCheck
from ..core.comparator import NOT_EMPTY, RegexMustMatch, RegexMustNotMatch
from ..core.normalizer import DropLines, KeepLines, NormalizerRegistry

PACKAGES = "Packages"
INSTALLED_PACKAGES = "Installed packages"
APT_INSTALLED = "apt-installed"
APT_CACHE_POLICY_ALL = "apt-cache-policy-all"


def _component(key: str, component: str) -> PredicateCheck:
    return PredicateCheck(
        key, f"{component} packages",
        packages.apt_cache_policy_all,
        RegexMustNotMatch(NOT_EMPTY, label=f"{component} packages are installed"),
        fact_name=APT_CACHE_POLICY_ALL, transform=packages.component_filter(component),
        expensive=True, section=PACKAGES,
    )


def build(policy) -> List[BaseCheck]:
    unsafe = "|".join(f"(?:{p})" for p in policy.unsafe_packages) or r"(?!)"

    return [
        PredicateCheck(
            "package-files", "package files storage",
            packages.dpkg_verify,
            RegexMustNotMatch(NOT_EMPTY, label="errors in package files storage"),
            expensive=True, section=PACKAGES,
        ),
        PredicateCheck(
            "binary-checksums", "MD5 checksums of binaries",
            packages.binary_checksums,
            RegexMustNotMatch(NOT_EMPTY, label="MD5 checksum mismatch"),
            expensive=True, section=PACKAGES,
        ),
        PredicateCheck(
            "unsafe-packages", "known unsafe packages",
            packages.apt_installed,
            RegexMustNotMatch(unsafe, label="unsafe packages are installed"),
            fact_name=APT_INSTALLED, section=PACKAGES,
        ),
        PredicateCheck(
            "kde-wallet", "KDE wallet unused",
            packages.kde_wallet,
            RegexMustMatch("Wallet kdewallet not found|The folder Passwords does not exist", label="KDE wallet is used"),
            section=PACKAGES,
        ),
        PredicateCheck(
            "suspicious-files", "known suspicious files or folders",
            packages.suspicious_files,
            RegexMustNotMatch(NOT_EMPTY, label="suspicious file or folder found"),
            section=PACKAGES,
        ),
        PredicateCheck(
            "suspicious-modules", "suspicious kernel modules",
            packages.kernel_modules,
            RegexMustNotMatch(packages.SUSPICIOUS_MODULE_KEYWORDS, flags=re.IGNORECASE, label="suspicious module(s) found"),
            section=PACKAGES,
        ),
        PredicateCheck(
            "suspicious-packages", "suspicious package names",
            packages.dpkg_list,
            RegexMustNotMatch(packages.SUSPICIOUS_MODULE_KEYWORDS, flags=re.IGNORECASE, label="suspicious package(s) found"),
            section=PACKAGES,
        ),
        PredicateCheck(
            "flatpak-installed", "flatpak not installed",
            packages.apt_installed,
            RegexMustNotMatch("flatpak", label="flatpak is installed (snap is preferred in Ubuntu)"),
            fact_name=APT_INSTALLED, section=PACKAGES,
        ),
        _component("restricted-packages", "restricted"),
        _component("multiverse-packages", "multiverse"),
        _component("backports-packages", "backports"),
        PredicateCheck(
            "obsolete-packages", "obsolete packages",
            packages.obsolete_packages,
            RegexMustNotMatch(NOT_EMPTY, label="packages are obsolete"),
            section=PACKAGES,
        ),
        PredicateCheck(
            "autoremovable-packages", "possibly useless packages",
            packages.autoremovable_packages,
            RegexMustNotMatch(NOT_EMPTY, label="packages may be useless"),
            section=PACKAGES,
        ),
    ]


def build_installed(policy) -> List[BaseCheck]:
    """Детальная проверка установленных пакетов (в конце запуска)."""
    return [
        PredicateCheck(
            "held-packages", "packages with updates enabled",
            packages.held_packages,
            RegexMustNotMatch(NOT_EMPTY, label="packages have updates disabled"),
            section=INSTALLED_PACKAGES,
        ),
        PredicateCheck(
            "package-origins", "installed package origins",
            packages.apt_cache_policy_all,
            RegexMustNotMatch(NOT_EMPTY, label="packages from unexpected origins"),
            fact_name=APT_CACHE_POLICY_ALL, transform=packages.package_origins,
            expensive=True, section=INSTALLED_PACKAGES,
        ),
    ]


def register_normalizers(registry: NormalizerRegistry, policy) -> None:
    registry.register("package-files", DropLines([re.escape(path) for path in policy.dpkg_verify_ignored]))
    registry.register("suspicious-packages", DropLines(["fonts-hack"]))
    registry.register("obsolete-packages", DropLines([r"^Listing\.\.\."], drop_blank=True))
    registry.register("autoremovable-packages", KeepLines([r"REMOV|Remv"]))
