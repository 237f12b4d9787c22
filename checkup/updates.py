"""
Update flow run after the audit.

Steps (each one waits for the operator):
1. Network probe (stop on failure)
2. Pending snap refreshes
3. Unattended-upgrades timers and log (verbose only)
4. apt update (stop on failure)
5. Upgradable packages and security update count
6. apt upgrade
7. apt-get check

Automatic mode (run_auto) waits only once at the start and stops at the
first failing step: snap refresh, apt update, apt -y upgrade, apt-get check.
With close_apps it first closes snap browsers and fails when snap refresh
left packages behind.
"""

import logging
import re
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.markup import escape

from .collectors.shell import read_text, run_cmd, run_interactive
from .errors import UpdateFlowError

logger = logging.getLogger(__name__)

UNATTENDED_LOG = "/var/log/unattended-upgrades/unattended-upgrades.log"
UNATTENDED_LOG_LINES = 44

# snap-браузеры, которые закрываются перед принудительным snap refresh
BROWSER_SNAPS = ("firefox", "chromium")

Runner = Callable[[Sequence[str]], Awaitable[Tuple[int, str, str]]]
InteractiveRunner = Callable[[Sequence[str]], Awaitable[int]]


def pending_snap_refreshes(text: str) -> str:
    """Вывод snap refresh --list без строки "All snaps up to date"."""
    lines = [line for line in text.splitlines() if line.strip() and "All snaps up to date" not in line]
    return "\n".join(lines)


def count_security_updates(text: str) -> int:
    """Количество строк apt list --upgradable из security-репозитория."""
    return sum(1 for line in text.splitlines() if re.search("security", line, re.IGNORECASE))


def unattended_log_tail(text: str, limit: int = UNATTENDED_LOG_LINES) -> List[str]:
    """Последние строки лога unattended-upgrades без whitelist/blacklist."""
    lines = [line for line in text.splitlines() if "whitelist" not in line and "blacklist" not in line]
    return lines[-limit:]


class UpdateFlow:
    """Интерактивный процесс обновления пакетов."""

    def __init__(
        self,
        policy,
        console: Optional[Console] = None,
        prompt: Optional[Callable[[str], str]] = None,
        verbose: bool = False,
        runner: Optional[Runner] = None,
        interactive: Optional[InteractiveRunner] = None,
    ):
        """
        Args:
            policy: Policy (network_probe_host)
            console: rich Console для вывода
            prompt: Ожидание оператора (по умолчанию console.input)
            verbose: Показывать таймеры и лог unattended-upgrades
            runner: Выполнение команды с захватом вывода
            interactive: Выполнение команды в терминале
        """
        self.policy = policy
        self.console = console or Console(highlight=False)
        self.prompt = prompt or self.console.input
        self.verbose = verbose
        self.runner = runner or run_cmd
        self.interactive = interactive or run_interactive

    # === Output ===

    def success(self, message: str) -> None:
        self.console.print(f"[green]CHECKED[/] {escape(message)}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]Warning:[/] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]ERROR:[/] {escape(message)}")

    def pause(self, message: str = "Press Enter to continue...") -> None:
        self.prompt(message)
        self.console.print()

    # === Steps ===

    async def check_network(self) -> None:
        rc, _, _ = await self.runner(["ping", "-c", "1", "-W", "5", self.policy.network_probe_host])
        if rc != 0:
            self.error("no network connection detected. Connect to internet and rerun the script.")
            raise UpdateFlowError("network probe", rc)

    async def check_snaps(self) -> None:
        self.console.print("Checking snap packages...")
        if self.verbose:
            _, times, _ = await self.runner(["snap", "refresh", "--time"])
            self.console.print(f"- snap refresh times: {escape(' '.join(times.split()))}")

        rc, stdout, stderr = await self.runner(["sudo", "snap", "refresh", "--list"])
        pending = pending_snap_refreshes(stdout + stderr)
        if pending:
            self.warning("snap package updates are ready:")
            self.console.print(
                "[bold]- below snap packages could be updated manually instead of automatically[/] "
                "('sudo snap refresh' to be run after having closed the applications, "
                "then 'snap refresh --list' or 'journalctl -u snapd' for check)"
            )
            self.console.print(escape(pending))
        else:
            self.success("snap packages are up-to-date")
        self.pause()

    async def show_unattended_upgrades(self) -> None:
        self.console.print("Checking unattended-upgrades...")
        self.console.print("- update/upgrade timers:")
        _, timers, _ = await self.runner(["systemctl", "list-timers", "apt-daily.timer", "apt-daily-upgrade.timer"])
        self.console.print(escape("\n".join(timers.splitlines()[:3])))

        self.console.print(
            '- updates applied automatically by unattended-upgrades: (Note: "apt" will detect a wider set of updates)'
        )
        log = read_text(UNATTENDED_LOG)
        if log is None:
            self.warning(f"{UNATTENDED_LOG} cannot be read")
        else:
            for line in unattended_log_tail(log):
                bold = "ERROR" in line or "INFO No packages found" in line or "INFO All upgrades installed" in line
                self.console.print(escape(line), style="bold" if bold else None)
        self.pause()

    async def close_browsers(self) -> List[str]:
        """
        Закрыть установленные snap-браузеры (иначе snap refresh их не обновит).

        Returns:
            Имена браузеров, которым отправлен pkill
        """
        closed = []
        for name in BROWSER_SNAPS:
            rc, _, _ = await self.runner(["snap", "list", name])
            if rc != 0:
                continue
            await self.runner(["pkill", "-f", name])
            closed.append(name)
        return closed

    async def snap_refresh(self) -> None:
        self.console.print("Running snap refresh...")
        rc = await self.interactive(["sudo", "snap", "refresh"])
        if rc != 0:
            self.error("sudo snap refresh failed")
            raise UpdateFlowError("snap refresh", rc)

    async def verify_snaps_refreshed(self) -> None:
        _, stdout, stderr = await self.runner(["sudo", "snap", "refresh", "--list"])
        pending = pending_snap_refreshes(stdout + stderr)
        if pending:
            self.console.print(escape(pending))
            self.error("sudo snap refresh did not update all snap packages (see above)")
            raise UpdateFlowError("snap refresh", 1)

    async def apt_update(self, pause: bool = True) -> None:
        self.console.print("Running apt update...")
        rc = await self.interactive(["sudo", "apt", "update"])
        if rc != 0:
            # ошибки GPG-ключей, hash sum mismatch и т.п.
            self.error("apt update failed")
            raise UpdateFlowError("apt update", rc)
        self.console.print()
        if pause:
            self.pause("Press Enter to check packages to upgrade...")

    async def list_upgradable(self) -> int:
        self.console.print("Packages to upgrade:")
        _, stdout, stderr = await self.runner(["apt", "list", "--upgradable"])
        self.console.print(escape(stdout.rstrip()))

        security = count_security_updates(stdout + stderr)
        if security:
            self.console.print("among which security update(s)", style="bold")
        else:
            self.console.print("among which no security updates")
        self.console.print()
        self.pause("Press Enter to apply upgrades...")
        return security

    async def apt_upgrade(self, assume_yes: bool = False) -> None:
        self.console.print("Running apt upgrade...")
        cmd = ["sudo", "apt", "-y", "upgrade"] if assume_yes else ["sudo", "apt", "upgrade"]
        rc = await self.interactive(cmd)
        if rc != 0:
            self.error("apt upgrade failed")
            raise UpdateFlowError("apt upgrade", rc)
        self.console.print()

    async def apt_get_check(self) -> bool:
        rc = await self.interactive(["sudo", "apt-get", "check"])
        if rc == 0:
            self.success("apt-get check")
            return True
        self.error("apt-get check")
        return False

    async def run(self) -> bool:
        """
        Выполнить все шаги.

        Returns:
            Результат apt-get check

        Raises:
            UpdateFlowError: Нет сети или apt update/upgrade завершился с ошибкой
        """
        logger.info("Starting update flow")
        await self.check_network()
        await self.check_snaps()
        if self.verbose:
            await self.show_unattended_upgrades()
        await self.apt_update()
        await self.list_upgradable()
        await self.apt_upgrade()
        ok = await self.apt_get_check()
        logger.info(f"Update flow finished: apt-get check {'ok' if ok else 'failed'}")
        return ok

    async def run_auto(self, close_apps: bool = False) -> bool:
        """
        Обновить всё без промежуточных подтверждений.

        Args:
            close_apps: Закрыть snap-браузеры и проверить, что snap refresh
                обновил все пакеты

        Returns:
            Результат apt-get check

        Raises:
            UpdateFlowError: Первый шаг, завершившийся с ошибкой
        """
        if close_apps:
            self.pause("Close all apps and press Enter to continue...")
            closed = await self.close_browsers()
            if closed:
                logger.info(f"Closed browsers: {', '.join(closed)}")
        else:
            self.pause()

        logger.info(f"Starting automatic update flow (close_apps={close_apps})")
        await self.check_network()
        await self.snap_refresh()
        if close_apps:
            await self.verify_snaps_refreshed()
        await self.apt_update(pause=False)
        await self.apt_upgrade(assume_yes=True)
        ok = await self.apt_get_check()
        logger.info(f"Automatic update flow finished: apt-get check {'ok' if ok else 'failed'}")
        return ok
