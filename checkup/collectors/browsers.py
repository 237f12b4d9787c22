"""
Fact collectors: Firefox and Chromium snap profiles.
"""

import logging
from pathlib import Path
from typing import Optional

from ..core.models import Unavailable
from .shell import output, read_text

logger = logging.getLogger(__name__)


def _profile_file(policy, name: str):
    profile = policy.firefox_profile()
    if profile is None or not Path(profile).is_dir():
        return Unavailable(f"firefox profile folder not found in {policy.firefox_folder}")
    return read_text(Path(profile) / name)


def firefox_prefs(policy):
    return _profile_file(policy, "prefs.js")


def firefox_addons(policy):
    return _profile_file(policy, "addons.json")


def firefox_extensions(policy):
    return _profile_file(policy, "extensions.json")


def firefox_profiles_ini(policy):
    if policy.firefox_folder is None or not Path(policy.firefox_folder).is_dir():
        return Unavailable(f"firefox folder {policy.firefox_folder} does not exist")
    return read_text(Path(policy.firefox_folder) / "profiles.ini")


async def default_browser(policy) -> Optional[str]:
    text = await output(["xdg-settings", "get", "default-web-browser"])
    return None if text is None else text.strip()


def chromium_preferences(policy):
    folder = policy.chromium_folder
    if folder is None or not Path(folder).is_dir():
        return Unavailable(f"chromium folder {folder} does not exist")
    return read_text(Path(folder) / "Preferences")


def chromium_extension_files(policy):
    """Файлы расширений в snap-папке chromium."""
    root = Path(policy.snap_folder) / "chromium"
    if not root.is_dir():
        return Unavailable(f"chromium snap folder {root} does not exist")
    found = sorted(str(p) for p in root.rglob("*") if p.is_file() and "Extensions" in p.parts)
    return "".join(f"{line}\n" for line in found)
