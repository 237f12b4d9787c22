"""
Browser topics: Firefox and Chromium snap settings.
"""

import re
from typing import List

from ..collectors import browsers
from ..core.base_check import BaseCheck, PredicateCheck, SnapshotCheck
from ..core.comparator import NOT_EMPTY, AllOf, RegexMustMatch, RegexMustNotMatch
from ..core.normalizer import ExtractMatches, MaskDigits, MaskPattern, NormalizerRegistry, SortLines

BROWSERS = "Browser"

_DISABLED = r"(false|0)"


def _pref_disabled(name: str, label: str) -> RegexMustNotMatch:
    """Настройка Firefox не должна быть выключена (false или 0)."""
    return RegexMustNotMatch(rf"{name}.*{_DISABLED}", flags=re.IGNORECASE, label=label)


FIREFOX_SETTINGS = AllOf(
    [
        RegexMustMatch(
            r'user_pref\("browser\.contentblocking\.category", "standard"\)',
            label="content blocking setting is not standard",
        ),
        RegexMustMatch(r'user_pref\("dom\.security\.https_only_mode", true\);', label="HTTPS-only setting is disabled"),
        RegexMustMatch(
            r'user_pref\("extensions\.formautofill\.creditCards\.enabled", false\);',
            label="autofill card setting is enabled",
        ),
        _pref_disabled(r"dom\.disable_open_during_load", "block pop-ups setting is disabled"),
        _pref_disabled("whitelist", "addons install warning setting is disabled"),
        _pref_disabled(r"browser\.safebrowsing\.malware\.enabled", "malware blocking setting is disabled"),
        _pref_disabled(r"browser\.safebrowsing\.phishing\.enabled", "phishing blocking setting is disabled"),
        _pref_disabled(r"browser\.safebrowsing\.downloads\.enabled", "dangerous download blocking setting is disabled"),
        _pref_disabled(
            r"browser\.safebrowsing\.downloads\.remote\.block_uncommon",
            "uncommon software blocking setting is disabled",
        ),
        RegexMustNotMatch(r"safebrowsing.*false", flags=re.IGNORECASE, label="safebrowsing settings are disabled"),
        _pref_disabled("OCSP", "OCSP query setting is disabled"),
    ],
    label="firefox settings",
)

CHROMIUM_SETTINGS = AllOf(
    [
        RegexMustMatch(r'"safebrowsing":\{[^}]*"enabled":true', label="safe browsing is disabled"),
        RegexMustMatch(r'"https_only_mode_enabled":true', label="'always use secure connections' setting is disabled"),
        RegexMustMatch(r'"credit_card_enabled":false', label="'save and fill payment methods' setting is enabled"),
    ],
    label="chromium settings",
)


def build(policy) -> List[BaseCheck]:
    return [
        PredicateCheck("firefox-settings", "firefox settings", browsers.firefox_prefs, FIREFOX_SETTINGS, section=BROWSERS),
        SnapshotCheck("firefox-profiles", "firefox profiles", browsers.firefox_profiles_ini, section=BROWSERS),
        SnapshotCheck("firefox-addons", "firefox addons", browsers.firefox_addons, section=BROWSERS),
        SnapshotCheck("firefox-extensions", "firefox extensions", browsers.firefox_extensions, section=BROWSERS),
        PredicateCheck(
            "default-browser", "firefox as default browser",
            browsers.default_browser, RegexMustMatch("firefox", label="firefox is not the default browser"),
            section=BROWSERS,
        ),
        PredicateCheck(
            "chromium-settings", "chromium settings",
            browsers.chromium_preferences, CHROMIUM_SETTINGS, section=BROWSERS,
        ),
        PredicateCheck(
            "chromium-extensions", "chromium extensions",
            browsers.chromium_extension_files,
            RegexMustNotMatch(NOT_EMPTY, label="chromium extensions were found"),
            section=BROWSERS,
        ),
    ]


def register_normalizers(registry: NormalizerRegistry, policy) -> None:
    # версии и даты в addons.json меняются при каждом обновлении
    registry.register(
        "firefox-addons",
        ExtractMatches(r'"name":"[^"]*"|"id":"[^"]*"|"sourceURI":"[^"]*"'),
        MaskDigits(),
        SortLines(),
    )
    registry.register(
        "firefox-extensions",
        ExtractMatches(r'"name":"[^"]*"|"id":"[^"]*|"path":"[^"]*|"rootURI":"[^"]*"'),
        MaskDigits(),
        MaskPattern(r"/features/[^/]+/", "/features/xxx/"),
        SortLines(),
    )
