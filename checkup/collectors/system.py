"""
Fact collectors: accounts, sessions, network, disk, runtime and AppArmor.
"""

import getpass
import logging
import os
import re
from pathlib import Path
from typing import List, Optional

from ..core.comparator import Ratio
from ..core.models import Skipped, Unavailable
from .shell import output, render_files, run_cmd

logger = logging.getLogger(__name__)

# === Accounts ===


def checkup_folder_state(policy) -> str:
    return "present" if Path(policy.checkup_folder).is_dir() else f"missing: {policy.checkup_folder}"


async def sudo_password(policy):
    """
    Требует ли sudo пароль.

    Кешированные учётные данные сбрасываются (sudo -k), затем sudo -n
    проверяет, проходит ли команда без пароля.
    """
    if not policy.test_sudo_password:
        return Skipped("disabled by test_sudo_password")
    await run_cmd(["sudo", "-k"])
    rc, _, _ = await run_cmd(["sudo", "-n", "true"])
    if rc == 127:
        return Unavailable("sudo is not installed")
    return "no password" if rc == 0 else "password required"


async def sudoers(policy) -> str:
    return await render_files([Path("/etc/sudoers"), Path("/etc/sudoers.d")])


# === Sessions ===


def session_files(directory: Path) -> Optional[str]:
    directory = Path(directory)
    if not directory.is_dir():
        return None
    return "".join(f"{p.name}\n" for p in sorted(directory.iterdir()))


def wayland_sessions(policy) -> Optional[str]:
    return session_files(Path("/usr/share/wayland-sessions"))


def xsessions(policy) -> Optional[str]:
    return session_files(Path("/usr/share/xsessions"))


def session_type(policy) -> str:
    return os.environ.get("XDG_SESSION_TYPE", "")


def current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER", "")


_NEW_SESSION = re.compile(r"new session", re.IGNORECASE)


def parse_session_users(journal: str) -> str:
    """Имена пользователей из строк 'New session N of user NAME.'"""
    users = []
    for line in journal.splitlines():
        if not _NEW_SESSION.search(line):
            continue
        fields = line.split()
        if fields:
            users.append(fields[-1].rstrip("."))
    return "".join(f"{user}\n" for user in users)


async def session_users(policy) -> Optional[str]:
    journal = await output(["journalctl", "-u", "systemd-logind", "--no-pager"])
    if journal is None:
        return None
    return parse_session_users(journal)


# === Network ===


async def network_state(policy):
    rc, _, _ = await run_cmd(["ping", "-c", "1", "-W", "5", policy.network_probe_host], timeout_s=15)
    if rc == 127:
        return Unavailable("ping is not installed")
    return "reachable" if rc == 0 else "unreachable"


async def rfkill(policy) -> Optional[str]:
    return await output(["rfkill", "list"])


async def ufw_status(policy) -> Optional[str]:
    return await output(["sudo", "ufw", "status", "verbose"])


def firewall_state(status: str, policy=None) -> str:
    match = re.search(r"^Status:\s*(\S+)", status, re.MULTILINE)
    return match.group(1) if match else "unknown"


def when_firewall_active(status: str, policy=None):
    """Правила ufw проверяются только для включённого firewall."""
    if firewall_state(status) != "active":
        return Skipped("firewall is disabled")
    return status


# === Disk ===


def parse_df_usage(text: str) -> Optional[int]:
    """Процент использования из вывода df (вторая строка, колонка Use%)."""
    lines = text.splitlines()
    if len(lines) < 2:
        return None
    fields = lines[1].split()
    if len(fields) < 5:
        return None
    value = fields[4].rstrip("%")
    return int(value) if value.isdigit() else None


async def disk_usage(policy) -> Optional[int]:
    text = await output(["df", "/"])
    return None if text is None else parse_df_usage(text)


def _device_or_marker(policy):
    if not policy.disk_configured:
        return Unavailable("hard_disk_device is not configured")
    return None


async def disk_size(policy):
    marker = _device_or_marker(policy)
    if marker is not None:
        return marker
    text = await output(["lsblk", "-d", "-n", "-o", "SIZE", policy.hard_disk_device])
    return None if text is None else text.strip()


async def smartctl(policy):
    marker = _device_or_marker(policy)
    if marker is not None:
        return marker
    # smartctl возвращает битовую маску; важен только сам вывод
    text = await output(["sudo", "smartctl", "-a", policy.hard_disk_device], ok_codes=None)
    return text or None


async def block_devices(policy) -> Optional[str]:
    return await output(["lsblk", "-o", "NAME,KNAME,FSTYPE,TYPE,MOUNTPOINT,SIZE"])


# === Runtime ===


async def journal_critical(policy) -> Optional[str]:
    return await output(
        ["journalctl", "-p", "0..2", "--since", "7 days ago", "-o", "cat", "--no-pager"],
        timeout_s=policy.command_timeout_seconds,
    )


async def process_table(policy) -> Optional[str]:
    return await output(["ps", "aux"])


def zombie_lines(table: str, policy=None) -> str:
    """Строки ps aux со статусом Z (колонка STAT)."""
    zombies = []
    for line in table.splitlines()[1:]:
        fields = line.split(None, 10)
        if len(fields) > 7 and fields[7].startswith("Z"):
            zombies.append(line)
    return "".join(f"{line}\n" for line in zombies)


def deleted_executables(policy) -> str:
    found: List[str] = []
    for exe in sorted(Path("/proc").glob("[0-9]*/exe")):
        try:
            target = os.readlink(exe)
        except OSError:
            continue
        if target.endswith("(deleted)"):
            found.append(f"{exe} -> {target}")
    return "".join(f"{line}\n" for line in found)


# === AppArmor ===


async def apparmor_service(policy) -> Optional[str]:
    # systemctl status: rc=3 для неактивного сервиса, вывод всё равно нужен
    text = await output(["systemctl", "status", "apparmor", "--no-pager"], ok_codes=None)
    return text or None


async def aa_status(policy) -> Optional[str]:
    return await output(["sudo", "aa-status"], ok_codes=None) or None


def aa_count(text: str, phrase: str) -> Optional[int]:
    """Число из строки aa-status вида 'N <phrase>'."""
    match = re.search(rf"^\s*([0-9]+) {re.escape(phrase)}", text, re.MULTILINE)
    return int(match.group(1)) if match else None


def aa_counter(phrase: str):
    def transform(text: str, policy=None):
        count = aa_count(text, phrase)
        return Unavailable(f"no '{phrase}' line") if count is None else count

    return transform


def aa_enforce_ratio(text: str, policy=None):
    enforced = aa_count(text, "processes are in enforce mode")
    total = aa_count(text, "processes have profiles defined")
    if enforced is None or total is None:
        return Unavailable("process counts are missing")
    return Ratio(enforced, total)


async def userns_restriction(policy) -> Optional[str]:
    text = await output(["sysctl", "kernel.apparmor_restrict_unprivileged_userns"])
    return None if text is None else text.strip()
