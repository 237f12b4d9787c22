"""
Tests for the update flow with fake command runners.
"""

import io

import pytest
from rich.console import Console

from checkup.errors import UpdateFlowError
from checkup.updates import UpdateFlow, count_security_updates, pending_snap_refreshes, unattended_log_tail

UPGRADABLE = """\
Listing...
firefox/noble-updates 136.0 amd64 [upgradable from: 135.0]
openssl/noble-security 3.0.13-0ubuntu3.5 amd64 [upgradable from: 3.0.13-0ubuntu3.4]
libssl3t64/noble-updates,noble-security 3.0.13-0ubuntu3.5 amd64 [upgradable from: 3.0.13-0ubuntu3.4]
"""


class FakeShell:
    """Записывает команды и отвечает заранее заданными результатами."""

    def __init__(self, outputs=None, codes=None):
        self.outputs = outputs or {}
        self.codes = codes or {}
        self.commands = []

    async def runner(self, cmd):
        key = " ".join(cmd)
        self.commands.append(key)
        return self.codes.get(key, 0), self.outputs.get(key, ""), ""

    async def interactive(self, cmd):
        key = " ".join(cmd)
        self.commands.append(key)
        return self.codes.get(key, 0)


def make_flow(policy, shell, prompt, verbose=False):
    console = Console(file=io.StringIO(), width=200, color_system=None, highlight=False)
    return UpdateFlow(
        policy, console=console, prompt=prompt, verbose=verbose,
        runner=shell.runner, interactive=shell.interactive,
    )


def output_of(flow) -> str:
    return flow.console.file.getvalue()


# === Helpers ===

def test_pending_snap_refreshes():
    assert pending_snap_refreshes("All snaps up to date.\n") == ""
    text = "Name Version Rev Size Publisher Notes\nfirefox 136.0 5800 290MB mozilla** -\n"
    assert pending_snap_refreshes(text) == text.rstrip("\n")


def test_count_security_updates():
    assert count_security_updates(UPGRADABLE) == 2
    assert count_security_updates("Listing...\n") == 0


def test_unattended_log_tail():
    lines = [f"2025-03-01 INFO line {i}" for i in range(50)] + ["2025-03-01 INFO Allowed origins / whitelist: x"]
    tail = unattended_log_tail("\n".join(lines), limit=3)
    assert tail == ["2025-03-01 INFO line 47", "2025-03-01 INFO line 48", "2025-03-01 INFO line 49"]


# === Flow ===

@pytest.mark.asyncio
async def test_full_run(policy, prompt):
    shell = FakeShell(outputs={"apt list --upgradable": UPGRADABLE})
    flow = make_flow(policy, shell, prompt)

    assert await flow.run()

    assert shell.commands == [
        f"ping -c 1 -W 5 {policy.network_probe_host}",
        "sudo snap refresh --list",
        "sudo apt update",
        "apt list --upgradable",
        "sudo apt upgrade",
        "sudo apt-get check",
    ]
    assert prompt.messages == [
        "Press Enter to continue...",
        "Press Enter to check packages to upgrade...",
        "Press Enter to apply upgrades...",
    ]
    output = output_of(flow)
    assert "CHECKED snap packages are up-to-date" in output
    assert "among which security update(s)" in output
    assert "CHECKED apt-get check" in output


@pytest.mark.asyncio
async def test_network_failure_stops_flow(policy, prompt):
    shell = FakeShell(codes={f"ping -c 1 -W 5 {policy.network_probe_host}": 2})
    flow = make_flow(policy, shell, prompt)

    with pytest.raises(UpdateFlowError) as exc_info:
        await flow.run()

    assert exc_info.value.step == "network probe"
    assert exc_info.value.returncode == 2
    assert len(shell.commands) == 1
    assert "ERROR: no network connection detected" in output_of(flow)


@pytest.mark.asyncio
async def test_apt_update_failure_stops_flow(policy, prompt):
    shell = FakeShell(codes={"sudo apt update": 100})
    flow = make_flow(policy, shell, prompt)

    with pytest.raises(UpdateFlowError):
        await flow.run()

    assert shell.commands[-1] == "sudo apt update"
    assert "sudo apt upgrade" not in shell.commands


@pytest.mark.asyncio
async def test_apt_get_check_failure(policy, prompt):
    shell = FakeShell(codes={"sudo apt-get check": 1})
    flow = make_flow(policy, shell, prompt)

    assert not await flow.run()
    assert "ERROR: apt-get check" in output_of(flow)


@pytest.mark.asyncio
async def test_pending_snaps_warning(policy, prompt):
    shell = FakeShell(outputs={"sudo snap refresh --list": "Name Version\nfirefox 136.0\n"})
    flow = make_flow(policy, shell, prompt)

    await flow.check_snaps()

    output = output_of(flow)
    assert "Warning: snap package updates are ready:" in output
    assert "firefox 136.0" in output


@pytest.mark.asyncio
async def test_no_security_updates(policy, prompt):
    shell = FakeShell(outputs={"apt list --upgradable": "Listing...\n"})
    flow = make_flow(policy, shell, prompt)

    assert await flow.list_upgradable() == 0
    assert "among which no security updates" in output_of(flow)


@pytest.mark.asyncio
async def test_verbose_shows_timers(policy, prompt, monkeypatch):
    from checkup import updates

    monkeypatch.setattr(updates, "read_text", lambda path: "2025-03-01 INFO All upgrades installed\n")
    shell = FakeShell(outputs={"snap refresh --time": "timer: 00:00~24:00/4\n"})
    flow = make_flow(policy, shell, prompt, verbose=True)

    assert await flow.run()

    assert "snap refresh --time" in shell.commands
    assert "systemctl list-timers apt-daily.timer apt-daily-upgrade.timer" in shell.commands
    assert "INFO All upgrades installed" in output_of(flow)
    assert len(prompt.messages) == 4


# === Automatic mode ===

AUTO_COMMANDS = [
    "sudo snap refresh",
    "sudo apt update",
    "sudo apt -y upgrade",
    "sudo apt-get check",
]


@pytest.mark.asyncio
async def test_auto_run(policy, prompt):
    shell = FakeShell()
    flow = make_flow(policy, shell, prompt)

    assert await flow.run_auto()

    assert shell.commands == [f"ping -c 1 -W 5 {policy.network_probe_host}", *AUTO_COMMANDS]
    assert prompt.messages == ["Press Enter to continue..."]
    assert "CHECKED apt-get check" in output_of(flow)


@pytest.mark.asyncio
@pytest.mark.parametrize("failing", AUTO_COMMANDS[:-1])
async def test_auto_stops_at_failing_step(policy, prompt, failing):
    shell = FakeShell(codes={failing: 1})
    flow = make_flow(policy, shell, prompt)

    with pytest.raises(UpdateFlowError):
        await flow.run_auto()

    assert shell.commands[-1] == failing
    assert "sudo apt-get check" not in shell.commands
    assert "ERROR:" in output_of(flow)


@pytest.mark.asyncio
async def test_auto_network_failure(policy, prompt):
    shell = FakeShell(codes={f"ping -c 1 -W 5 {policy.network_probe_host}": 1})
    flow = make_flow(policy, shell, prompt)

    with pytest.raises(UpdateFlowError) as exc_info:
        await flow.run_auto()

    assert exc_info.value.step == "network probe"
    assert "sudo snap refresh" not in shell.commands


@pytest.mark.asyncio
async def test_auto_apt_get_check_failure(policy, prompt):
    shell = FakeShell(codes={"sudo apt-get check": 1})
    flow = make_flow(policy, shell, prompt)

    assert not await flow.run_auto()


class TestCloseApps:
    @pytest.mark.asyncio
    async def test_closes_installed_browsers(self, policy, prompt):
        shell = FakeShell(codes={"snap list chromium": 1})
        flow = make_flow(policy, shell, prompt)

        assert await flow.run_auto(close_apps=True)

        assert shell.commands[:3] == ["snap list firefox", "pkill -f firefox", "snap list chromium"]
        assert "pkill -f chromium" not in shell.commands
        assert "sudo snap refresh --list" in shell.commands
        assert prompt.messages == ["Close all apps and press Enter to continue..."]

    @pytest.mark.asyncio
    async def test_pending_snaps_after_refresh_stop_flow(self, policy, prompt):
        shell = FakeShell(outputs={"sudo snap refresh --list": "Name Version\nchromium 133.0\n"})
        flow = make_flow(policy, shell, prompt)

        with pytest.raises(UpdateFlowError) as exc_info:
            await flow.run_auto(close_apps=True)

        assert exc_info.value.step == "snap refresh"
        assert "sudo apt update" not in shell.commands
        assert "did not update all snap packages" in output_of(flow)
