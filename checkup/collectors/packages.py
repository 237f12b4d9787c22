"""
Fact collectors: Debian packages, package file integrity and known
suspicious artifacts.
"""

import asyncio
import hashlib
import logging
import platform
import re
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from ..core.models import Skipped
from .shell import output, run_cmd

logger = logging.getLogger(__name__)

SUSPICIOUS_KEYWORDS = (
    r"rootkit|snif|backd|stealth|keyl|logk|troj|virus|hack|malware|spy|\btap|tap\b|hide|hidden|"
    r"cloak|transparent|lkl|uberkey|vlog|letterpress|sinister|tanit|keystroke"
)
SUSPICIOUS_PROCESS_KEYWORDS = SUSPICIOUS_KEYWORDS + r"|track|input|capture|scan|record|hook"
SUSPICIOUS_MODULE_KEYWORDS = SUSPICIOUS_KEYWORDS + r"|inject"

CRITICAL_BINARIES = (
    # Core utilities
    "/bin/ls", "/bin/ps", "/bin/bash", "/bin/sh", "/bin/mount", "/bin/umount",
    "/bin/su", "/bin/login", "/bin/systemd",
    # Process and system monitoring
    "/usr/bin/top", "/usr/bin/htop", "/usr/bin/uptime", "/usr/bin/w", "/usr/bin/who",
    "/usr/bin/kill", "/usr/bin/killall", "/usr/bin/pstree", "/usr/bin/strace",
    "/usr/bin/lsof", "/usr/bin/time", "/usr/bin/watch",
    # Networking tools
    "/usr/bin/netstat", "/usr/bin/ss", "/usr/bin/ifconfig", "/usr/bin/ip",
    "/usr/bin/ping", "/usr/bin/traceroute", "/usr/bin/nmap",
    "/usr/bin/curl", "/usr/bin/wget", "/usr/bin/telnet", "/usr/bin/nc",
    # Authentication and privilege escalation
    "/usr/bin/sudo", "/usr/bin/passwd", "/usr/bin/chage", "/usr/bin/gpasswd",
    "/usr/bin/login", "/usr/bin/chsh", "/usr/bin/chfn",
    # File and system utilities
    "/usr/bin/find", "/usr/bin/locate", "/usr/bin/updatedb", "/usr/bin/file",
    "/usr/bin/which", "/usr/bin/whereis", "/usr/bin/realpath",
    # Package and service management
    "/usr/bin/systemctl", "/usr/bin/journalctl", "/usr/bin/dpkg",
    "/usr/bin/apt", "/usr/bin/apt-get", "/usr/bin/apt-mark", "/usr/bin/snap",
    # SSH and remote access
    "/usr/bin/ssh", "/usr/sbin/sshd", "/usr/bin/scp", "/usr/bin/sftp",
    # Cron
    "/usr/sbin/cron", "/usr/bin/crontab",
    # Encryption and security
    "/usr/bin/gpg", "/usr/bin/openssl", "/usr/bin/ssh-keygen",
    # Misc
    "/usr/bin/env", "/usr/bin/xargs", "/usr/bin/awk", "/usr/bin/sed",
    "/usr/bin/diff", "/usr/bin/vi", "/usr/sbin/ufw", "/usr/sbin/smartctl",
    "/usr/sbin/aa-status", "/usr/bin/cp", "/usr/bin/more", "/usr/bin/less",
    "/usr/bin/cat",
)


def known_suspicious_paths(kernel_release: Optional[str] = None) -> List[str]:
    release = kernel_release or platform.release()
    return [
        # Known rootkit files
        "/usr/bin/ssh2", "/usr/sbin/in.telnetd", "/dev/.lib",
        "/dev/.static", "/dev/.golf", "/dev/.chr",
        "/dev/.rc", "/dev/.tty", "/etc/rc.d/rc.local",
        # Hidden or unusual binaries
        "/usr/bin/...", "/usr/bin/.etc", "/usr/bin/.bash",
        "/usr/lib/libfltr.so", "/usr/lib/.fx", "/usr/lib/.gdm",
        "/usr/lib/.lib", "/usr/lib/.x", "/usr/lib/.z",
        # Suspicious folders
        "/dev/.udev", "/dev/.init", "/dev/.shadow",
        "/etc/.sysconfig", "/etc/.rc.d/init.d/.kthreadd",
        # Backdoor or persistence files
        "/etc/inetd.conf", "/etc/xinetd.conf", "/etc/ld.so.hash",
        "/usr/lib/libproc.a", "/usr/lib/libproc.so",
        # Deleted or hidden binaries
        "/tmp/...", "/tmp/.X11-unix/.X0-lock", "/tmp/.X11-unix/.Xauth",
        "/var/tmp/...", "/var/tmp/.X0-lock", "/var/tmp/.Xauth",
        # Kernel module hiding
        f"/lib/modules/{release}/kernel/drivers/usb/hid/hid.ko",
        f"/lib/modules/{release}/extra/.hidden",
        # Misc
        "/boot/System.map", "/boot/.vmlinuz", "/boot/.initrd",
    ]


def suspicious_files(policy) -> str:
    found = [path for path in known_suspicious_paths() if Path(path).exists()]
    return "".join(f"{line}\n" for line in found)


async def dpkg_verify(policy) -> Optional[str]:
    # rc=1, если найдены расхождения
    return await output(["sudo", "dpkg", "--verify"], ok_codes=(0, 1), timeout_s=policy.expensive_timeout_seconds)


async def apt_installed(policy) -> Optional[str]:
    return await output(["apt", "list", "--installed"])


async def kde_wallet(policy):
    if shutil.which("kwallet-query") is None:
        return Skipped("kwallet-query is not installed")
    rc, stdout, stderr = await run_cmd(["kwallet-query", "kdewallet", "-l"])
    return stdout + stderr


async def kernel_modules(policy) -> Optional[str]:
    return await output(["lsmod"])


async def dpkg_list(policy) -> Optional[str]:
    return await output(["dpkg", "-l"])


async def installed_package_names(policy) -> Optional[List[str]]:
    text = await output(["dpkg-query", "-W", "-f=${binary:Package}\\n"])
    if text is None:
        return None
    return [line.strip() for line in text.splitlines() if line.strip()]


async def apt_cache_policy_all(policy) -> Optional[str]:
    """apt-cache policy для всех установленных пакетов одним вызовом."""
    names = await installed_package_names(policy)
    if not names:
        return None
    return await output(["apt-cache", "policy", *names], timeout_s=policy.expensive_timeout_seconds)


def lines_with_context(text: str, pattern: str, before: int = 5) -> str:
    """Аналог grep -B: совпавшие строки вместе с предшествующими."""
    compiled = re.compile(pattern)
    lines = text.splitlines()
    selected = set()
    for i, line in enumerate(lines):
        if compiled.search(line):
            selected.update(range(max(0, i - before), i + 1))
    return "".join(f"{lines[i]}\n" for i in sorted(selected))


def component_filter(component: str):
    def transform(text: str, policy=None) -> str:
        return lines_with_context(text, component)

    return transform


async def obsolete_packages(policy) -> Optional[str]:
    return await output(["apt", "list", "~o"])


async def autoremovable_packages(policy) -> Optional[str]:
    return await output(["apt", "autoremove", "--dry-run"])


async def held_packages(policy) -> Optional[str]:
    return await output(["apt-mark", "showhold"])


# === Package origins ===


def split_policy_blocks(text: str) -> Dict[str, str]:
    """
    Разбить вывод apt-cache policy pkg1 pkg2 ... на блоки по пакетам.

    Блок начинается строкой без отступа вида "name:".
    """
    blocks: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for line in text.splitlines():
        if line and not line[0].isspace() and line.rstrip().endswith(":"):
            current = line.rstrip()[:-1]
            blocks[current] = []
        elif current is not None:
            blocks[current].append(line)
    return {name: "\n".join(lines) for name, lines in blocks.items()}


_URL = re.compile(r"https?://[^ ]+")


def package_origin_problems(block: str, official_urls: Sequence[str]) -> List[str]:
    """
    Проблемы происхождения одного пакета.

    Returns:
        Список меток (non-authenticated, no URL, non-official, PPA)
    """
    problems = []
    urls = _URL.findall(block)
    if "500 http" not in block:
        problems.append("non-authenticated")
    if not urls:
        problems.append("no URL")
    if any(not any(official in url for official in official_urls) for url in urls):
        problems.append("non-official")
    if any("/ppa" in url or "launchpad.net" in url for url in urls):
        problems.append("PPA")
    return problems


def package_origins(text: str, policy) -> str:
    """Пакеты с подозрительным происхождением, одна строка на пакет."""
    lines = []
    virtual = []
    for name, block in sorted(split_policy_blocks(text).items()):
        problems = package_origin_problems(block, policy.official_repository_urls)
        if not problems:
            continue
        # виртуальные пакеты (linux-image-*-generic и т.п.) не установлены сами
        if "Installed: (none)" in block and "PPA" not in problems:
            virtual.append(name)
            continue
        lines.append(f"{name}: {', '.join(problems)}")
    if virtual:
        logger.info(f"{len(virtual)} virtual package(s): {' '.join(virtual)}")
    return "".join(f"{line}\n" for line in lines)


# === Checksums ===


def load_md5sums(info_dir: Path = Path("/var/lib/dpkg/info")) -> Dict[str, str]:
    """Ожидаемые MD5 из *.md5sums: абсолютный путь -> хеш."""
    expected: Dict[str, str] = {}
    for md5file in sorted(Path(info_dir).glob("*.md5sums")):
        try:
            content = md5file.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug(f"Cannot read {md5file}: {e}")
            continue
        for line in content.splitlines():
            parts = line.split(None, 1)
            if len(parts) == 2:
                expected["/" + parts[1].strip().lstrip("/")] = parts[0]
    return expected


def md5_of(path: Path) -> Optional[str]:
    digest = hashlib.md5()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(1 << 16), b""):
                digest.update(chunk)
    except OSError:
        return None
    return digest.hexdigest()


def checksum_mismatches(paths: Iterable[str], expected: Dict[str, str]) -> List[str]:
    """
    Сверить файлы с базой dpkg.

    Файлы, которых нет в базе или которые не читаются, пропускаются.
    """
    mismatches = []
    seen = set()
    for raw in paths:
        path = Path(raw)
        if not path.is_file():
            continue
        resolved = str(path.resolve())
        if resolved in seen:
            continue
        seen.add(resolved)
        # /bin -> /usr/bin на merged-usr системах: база может хранить любой из путей
        want = expected.get(str(path)) or expected.get(resolved)
        if want is None:
            continue
        got = md5_of(path)
        if got is not None and got != want:
            mismatches.append(f"{raw}: {want} != {got}")
    return mismatches


def _verify_binaries() -> str:
    expected = load_md5sums()
    candidates = list(CRITICAL_BINARIES)
    for directory in ("/usr/bin", "/usr/sbin"):
        candidates.extend(sorted(str(p) for p in Path(directory).glob("*")))
    return "".join(f"{line}\n" for line in checksum_mismatches(candidates, expected))


async def binary_checksums(policy):
    if not policy.extended_checks:
        return Skipped("extended checks are disabled")
    return await asyncio.to_thread(_verify_binaries)
