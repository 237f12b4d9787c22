"""
Fact collectors: repositories, update settings, startup mechanisms and
locally installed programs.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.models import Skipped
from .shell import output, read_text, render_files, run_cmd

logger = logging.getLogger(__name__)

APT_PERIODIC = Path("/etc/apt/apt.conf.d/10periodic")
APT_AUTO_UPGRADES = Path("/etc/apt/apt.conf.d/20auto-upgrades")
APT_UNATTENDED = Path("/etc/apt/apt.conf.d/50unattended-upgrades")


async def apt_cache_policy(policy) -> Optional[str]:
    return await output(["apt-cache", "policy"])


async def apt_sources(policy) -> str:
    return await render_files([Path("/etc/apt/sources.list"), Path("/etc/apt/sources.list.d")])


def apt_periodic(policy) -> Optional[str]:
    return read_text(APT_PERIODIC)


async def update_parameters(policy) -> str:
    return await render_files([APT_PERIODIC, APT_AUTO_UPGRADES, APT_UNATTENDED])


async def autostart(policy) -> str:
    return await render_files([Path(policy.home) / ".config" / "autostart"])


async def enabled_services(policy) -> Optional[str]:
    return await output(["systemctl", "list-unit-files", "--type=service", "--state=enabled", "--no-pager"])


def non_root_sysvinit(policy):
    """Скрипты /etc/init.d, владелец которых не root."""
    init_d = Path("/etc/init.d")
    if not init_d.is_dir():
        return Skipped("/etc/init.d does not exist")
    found = []
    for path in sorted(init_d.rglob("*")):
        try:
            if path.is_file() and path.stat().st_uid != 0:
                found.append(str(path))
        except OSError:
            continue
    return "".join(f"{line}\n" for line in found)


def login_shell_files(policy) -> str:
    """~/.bash_profile и ~/.bash_login перекрывают ~/.profile."""
    home = Path(policy.home)
    present = [str(home / name) for name in (".bash_profile", ".bash_login") if (home / name).is_file()]
    return "".join(f"{line}\n" for line in present)


async def startup_scripts(policy) -> str:
    home = Path(policy.home)
    return await render_files([home / ".profile", home / ".bashrc"])


async def crontab(policy) -> Optional[str]:
    rc, stdout, stderr = await run_cmd(["crontab", "-l"])
    if rc == 127:
        return None
    # "no crontab for user" приходит в stderr с rc=1
    return stdout + stderr


async def timers(policy) -> Optional[str]:
    return await output(["systemctl", "list-timers", "--all", "--no-pager"])


async def setuid_files(policy) -> Optional[str]:
    text = await output(
        ["sudo", "find", "/", "-type", "f", "(", "-perm", "-4000", "-o", "-perm", "-2000", ")", "-print"],
        ok_codes=None,
        timeout_s=policy.expensive_timeout_seconds,
    )
    return text


def path_variable(policy) -> str:
    return os.environ.get("PATH", "")


def directory_listing(directory: Path) -> Optional[List[str]]:
    directory = Path(directory)
    if not directory.is_dir():
        return None
    return sorted(p.name for p in directory.iterdir())


def usr_local_sbin(policy) -> Optional[str]:
    listing = directory_listing(Path("/usr/local/sbin"))
    return None if listing is None else "".join(f"{name}\n" for name in listing)


def unexpected_programs(listing: Iterable[str], expected_installed: Iterable[str]) -> str:
    """
    Расхождения между содержимым /usr/local/bin и ожидаемыми программами.

    Returns:
        Строки "+name" (лишняя программа) и "-name" (ожидаемая отсутствует)
    """
    listing = set(listing)
    expected = set(expected_installed)
    lines = [f"+{name}" for name in sorted(listing - expected)]
    lines += [f"-{name}" for name in sorted(expected - listing)]
    return "".join(f"{line}\n" for line in lines)


def usr_local_bin(policy) -> Optional[str]:
    listing = directory_listing(Path("/usr/local/bin"))
    if listing is None:
        return None
    # ожидаются только реально установленные программы
    installed = [p for p in policy.expected_usr_local_bin_programs if shutil.which(p)]
    return unexpected_programs(listing, installed)


async def apt_get_check(policy) -> Optional[str]:
    rc, _, stderr = await run_cmd(["sudo", "apt-get", "check"], timeout_s=policy.command_timeout_seconds)
    if rc == 127:
        return None
    if rc == 0:
        return "ok"
    logger.debug(f"apt-get check: {stderr.strip()}")
    return f"failed (exit code {rc})"
