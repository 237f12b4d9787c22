"""
Fact collectors: snap packages.
"""

import logging
import re
from datetime import date, datetime
from typing import List, NamedTuple, Optional, Union

from ..core.models import Skipped, Unavailable
from .shell import output

logger = logging.getLogger(__name__)


class SnapRow(NamedTuple):
    """Строка вывода snap list: Name Version Rev Tracking Publisher Notes."""
    name: str
    tracking: str
    publisher: str
    notes: str
    line: str


def parse_snap_list(text: str) -> List[SnapRow]:
    rows = []
    for line in text.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 5:
            continue
        notes = fields[5] if len(fields) > 5 else "-"
        rows.append(SnapRow(fields[0], fields[3], fields[4], notes, line))
    return rows


def publisher_name(publisher: str) -> str:
    """Без маркеров проверенного издателя (canonical*, canonical**, canonical✓)."""
    return publisher.rstrip("*✓")


async def snap_list(policy) -> Optional[str]:
    return await output(["snap", "list"])


async def snap_list_all(policy) -> Optional[str]:
    return await output(["snap", "list", "--all"])


def _lines(rows) -> str:
    return "".join(f"{row.line}\n" for row in rows)


def unexpected_publishers(text: str, policy) -> str:
    allowed = set(policy.allowed_snap_publishers)
    return _lines(row for row in parse_snap_list(text) if publisher_name(row.publisher) not in allowed)


def unstable_channels(text: str, policy=None) -> str:
    return _lines(row for row in parse_snap_list(text) if "/stable" not in row.tracking)


def held_snaps(text: str, policy=None) -> str:
    return _lines(row for row in parse_snap_list(text) if "held" in row.notes.split(","))


async def snapd_state(policy) -> Optional[str]:
    text = await output(["systemctl", "is-active", "snapd"], ok_codes=None)
    return None if text is None else text.strip()


async def snap_confinement(policy) -> Optional[str]:
    text = await output(["snap", "debug", "confinement"])
    return None if text is None else text.strip()


async def snap_refresh_time(policy) -> Optional[str]:
    return await output(["snap", "refresh", "--time"])


async def snap_refresh_retain(policy):
    text = await output(["sudo", "snap", "get", "system", "refresh.retain"])
    if text is None:
        return Unavailable("refresh.retain is not set")
    return text.strip()


async def snap_info_all(policy) -> Optional[str]:
    """
    snap info --verbose для каждого установленного snap.

    Каждая строка предваряется именем пакета: "firefox: license: ...".
    """
    listing = await output(["snap", "list", "--all"])
    if listing is None:
        return None
    names = sorted({row.name for row in parse_snap_list(listing)})
    chunks = []
    for name in names:
        info = await output(["snap", "info", "--verbose", name])
        if info is None:
            logger.debug(f"snap info {name} failed")
            continue
        chunks.extend(f"{name}: {line.strip()}\n" for line in info.splitlines() if line.strip())
    return "".join(chunks)


# === Refresh date ===

_UNITS = {"day": 1, "week": 7, "month": 30, "year": 365}
_WORDS = {
    "today": 0,
    "yesterday": 1,
    "a day ago": 1,
    "a week ago": 7,
    "a month ago": 30,
    "a year ago": 365,
}


def parse_refresh_age(line: str) -> Optional[Union[int, date]]:
    """
    Возраст из строки "refresh-date: ..." snap info.

    Returns:
        Возраст в днях (для относительных дат), date (для ISO даты)
        или None, если формат неизвестен
    """
    value = line.split(":", 1)[1] if ":" in line else line
    value = value.strip().lower()

    for phrase, days in _WORDS.items():
        if phrase in value:
            return days

    match = re.search(r"([0-9]+) ([a-z]+?)s? ago", value)
    if match and match.group(2) in _UNITS:
        return int(match.group(1)) * _UNITS[match.group(2)]

    match = re.search(r"([0-9]{4}-[0-9]{2}-[0-9]{2})", value)
    if match:
        return datetime.strptime(match.group(1), "%Y-%m-%d").date()
    return None


def refresh_age(snap: str):
    """Collector давности обновления одного snap."""

    async def collect(policy):
        listing = await output(["snap", "list"])
        if listing is None:
            return None
        if snap not in {row.name for row in parse_snap_list(listing)}:
            return Skipped(f"{snap} is not installed")
        info = await output(["snap", "info", "--verbose", snap])
        if info is None:
            return None
        for line in info.splitlines():
            if "refresh-date" in line:
                age = parse_refresh_age(line)
                if age is None:
                    return Unavailable(f"could not parse {line.strip()!r}")
                return age
        return Unavailable("no refresh-date in snap info")

    collect.__name__ = f"refresh_age_{snap}"
    return collect


async def snap_saved(policy) -> Optional[str]:
    return await output(["snap", "saved"])


async def snap_connections(policy) -> Optional[str]:
    return await output(["snap", "connections"])


def offline_snap_connections(text: str, policy):
    """Сетевые подключения snap'ов, которым сеть не нужна."""
    if not policy.offline_snaps:
        return Skipped("no offline snaps configured")
    found = []
    for line in text.splitlines():
        fields = line.split()
        if not any(f.startswith("network") for f in fields):
            continue
        if any(any(f.startswith(f"{snap}:") or f == snap for f in fields) for snap in policy.offline_snaps):
            found.append(line)
    return "".join(f"{line}\n" for line in found)
