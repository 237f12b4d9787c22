"""
Tests for collector parsers and transforms.

Subprocess helpers are replaced with monkeypatched fakes; nothing here
runs a real system tool.
"""

import hashlib
from datetime import date

import pytest

from checkup.collectors import install, packages, shell, snaps, system
from checkup.core.comparator import Ratio
from checkup.core.models import Skipped, Unavailable

SNAP_LIST = """\
Name       Version          Rev    Tracking         Publisher     Notes
core22     20250110         1748   latest/stable    canonical**   base
firefox    135.0-2          5751   latest/stable    mozilla**     -
pinta      2.1.2            123    latest/edge      james-carroll -
shady      1.0              7      latest/stable    someone       held
"""

APT_POLICY = """\
bash:
  Installed: 5.2.21-2ubuntu4
  Candidate: 5.2.21-2ubuntu4
  Version table:
 *** 5.2.21-2ubuntu4 500
        500 http://archive.ubuntu.com/ubuntu noble/main amd64 Packages
        100 /var/lib/dpkg/status
foo:
  Installed: 1.0
  Candidate: 1.0
  Version table:
 *** 1.0 500
        500 http://ppa.launchpad.net/someone/foo/ubuntu noble/main amd64 Packages
local-tool:
  Installed: 0.1
  Candidate: 0.1
  Version table:
 *** 0.1 100
        100 /var/lib/dpkg/status
linux-image-generic:
  Installed: (none)
  Candidate: (none)
  Version table:
"""


def fake_output(responses):
    """Подмена shell.output: ответ по первым словам команды."""

    async def output(cmd, ok_codes=(0,), timeout_s=30.0):
        return responses.get(" ".join(cmd))

    return output


# === System ===

class TestDisk:
    def test_parse_df_usage(self):
        text = "Filesystem 1K-blocks Used Available Use% Mounted on\n/dev/sda2 100 42 58 42% /\n"
        assert system.parse_df_usage(text) == 42

    @pytest.mark.parametrize("text", ["", "header only\n", "h\n/dev/sda2 100\n", "h\na b c d x% /\n"])
    def test_parse_df_usage_garbage(self, text):
        assert system.parse_df_usage(text) is None

    @pytest.mark.asyncio
    async def test_unconfigured_device_is_unavailable(self, policy):
        assert not policy.disk_configured
        assert isinstance(await system.disk_size(policy), Unavailable)
        assert isinstance(await system.smartctl(policy), Unavailable)


def test_parse_session_users():
    journal = (
        "Mar 01 10:00:00 host systemd-logind[1]: New session 3 of user alice.\n"
        "Mar 01 10:00:01 host systemd-logind[1]: Removed session 2.\n"
        "Mar 01 10:05:00 host systemd-logind[1]: New session c1 of user gdm.\n"
    )
    assert system.parse_session_users(journal) == "alice\ngdm\n"


def test_zombie_lines():
    table = (
        "USER PID %CPU %MEM VSZ RSS TTY STAT START TIME COMMAND\n"
        "root 1 0.0 0.1 1000 100 ? Ss 10:00 0:01 /sbin/init\n"
        "bob 42 0.0 0.0 0 0 ? Z 10:01 0:00 [defunct-thing] <defunct>\n"
    )
    assert system.zombie_lines(table) == "bob 42 0.0 0.0 0 0 ? Z 10:01 0:00 [defunct-thing] <defunct>\n"


class TestFirewall:
    def test_state(self):
        assert system.firewall_state("Status: active\nLogging: on (low)\n") == "active"
        assert system.firewall_state("garbage") == "unknown"

    def test_rules_skipped_when_inactive(self):
        assert isinstance(system.when_firewall_active("Status: inactive\n"), Skipped)
        text = "Status: active\nDefault: deny (incoming)\n"
        assert system.when_firewall_active(text) == text


class TestAppArmor:
    AA_STATUS = (
        "apparmor module is loaded.\n"
        "120 profiles are loaded.\n"
        "80 profiles are in enforce mode.\n"
        "10 processes have profiles defined.\n"
        "9 processes are in enforce mode.\n"
        "1 processes are in complain mode.\n"
    )

    def test_count(self):
        assert system.aa_count(self.AA_STATUS, "profiles are in enforce mode") == 80
        assert system.aa_count(self.AA_STATUS, "processes are unconfined") is None

    def test_counter_transform(self):
        assert system.aa_counter("processes have profiles defined")(self.AA_STATUS) == 10
        assert isinstance(system.aa_counter("processes are in prompt mode")(self.AA_STATUS), Unavailable)

    def test_enforce_ratio(self):
        assert system.aa_enforce_ratio(self.AA_STATUS) == Ratio(9, 10)
        assert isinstance(system.aa_enforce_ratio("nothing"), Unavailable)


@pytest.mark.asyncio
class TestSudoPassword:
    async def test_disabled(self, policy_factory):
        assert isinstance(await system.sudo_password(policy_factory(test_sudo_password=False)), Skipped)

    async def test_password_required(self, policy, monkeypatch):
        calls = []

        async def run_cmd(cmd, timeout_s=30.0):
            calls.append(cmd)
            return (1, "", "sudo: a password is required") if "-n" in cmd else (0, "", "")

        monkeypatch.setattr(system, "run_cmd", run_cmd)

        assert await system.sudo_password(policy) == "password required"
        assert calls[0] == ["sudo", "-k"]

    async def test_no_password(self, policy, monkeypatch):
        async def run_cmd(cmd, timeout_s=30.0):
            return 0, "", ""

        monkeypatch.setattr(system, "run_cmd", run_cmd)
        assert await system.sudo_password(policy) == "no password"


def test_checkup_folder_state(policy):
    assert system.checkup_folder_state(policy).startswith("missing: ")
    policy.checkup_folder.mkdir()
    assert system.checkup_folder_state(policy) == "present"


# === Install ===

def test_unexpected_programs():
    assert install.unexpected_programs(["tool", "extra"], ["tool", "gone"]) == "+extra\n-gone\n"
    assert install.unexpected_programs(["tool"], ["tool"]) == ""


# === Packages ===

def test_lines_with_context():
    text = "\n".join(f"line{i}" for i in range(10)) + "\nrestricted here\n"
    assert packages.lines_with_context(text, "restricted", before=2) == "line8\nline9\nrestricted here\n"
    assert packages.component_filter("multiverse")(text) == ""


class TestPackageOrigins:
    def test_split_blocks(self):
        blocks = packages.split_policy_blocks(APT_POLICY)
        assert list(blocks) == ["bash", "foo", "local-tool", "linux-image-generic"]
        assert "Installed: 5.2.21-2ubuntu4" in blocks["bash"]

    def test_problems(self):
        official = ["http://archive.ubuntu.com/ubuntu"]
        blocks = packages.split_policy_blocks(APT_POLICY)

        assert packages.package_origin_problems(blocks["bash"], official) == []
        assert packages.package_origin_problems(blocks["foo"], official) == ["non-official", "PPA"]
        assert packages.package_origin_problems(blocks["local-tool"], official) == ["non-authenticated", "no URL"]

    def test_package_origins_skips_virtual_packages(self, policy):
        assert packages.package_origins(APT_POLICY, policy) == (
            "foo: non-official, PPA\nlocal-tool: non-authenticated, no URL\n"
        )


def test_checksum_mismatches(tmp_path):
    good = tmp_path / "good"
    bad = tmp_path / "bad"
    good.write_bytes(b"good")
    bad.write_bytes(b"tampered")
    expected = {
        str(good): hashlib.md5(b"good").hexdigest(),
        str(bad): hashlib.md5(b"original").hexdigest(),
    }

    result = packages.checksum_mismatches([str(good), str(bad), str(tmp_path / "missing"), str(bad)], expected)

    assert len(result) == 1
    assert result[0].startswith(f"{bad}: ")


def test_load_md5sums(tmp_path):
    (tmp_path / "coreutils.md5sums").write_text("abc123  usr/bin/ls\ndef456  usr/bin/cat\n", encoding="utf-8")
    assert packages.load_md5sums(tmp_path) == {"/usr/bin/ls": "abc123", "/usr/bin/cat": "def456"}


@pytest.mark.asyncio
async def test_binary_checksums_disabled_by_default(policy):
    assert isinstance(await packages.binary_checksums(policy), Skipped)


# === Snaps ===

class TestSnapList:
    def test_parse(self):
        rows = snaps.parse_snap_list(SNAP_LIST)
        assert [row.name for row in rows] == ["core22", "firefox", "pinta", "shady"]
        assert rows[1].tracking == "latest/stable"
        assert rows[3].notes == "held"

    def test_publisher_name(self):
        assert snaps.publisher_name("canonical**") == "canonical"
        assert snaps.publisher_name("mozilla✓") == "mozilla"

    def test_unexpected_publishers(self, policy):
        assert snaps.unexpected_publishers(SNAP_LIST, policy).split()[0] == "shady"

    def test_unstable_channels(self):
        assert snaps.unstable_channels(SNAP_LIST).startswith("pinta ")

    def test_held(self):
        assert snaps.held_snaps(SNAP_LIST).startswith("shady ")


class TestRefreshAge:
    @pytest.mark.parametrize(
        "line, expected",
        [
            ("refresh-date: today at 10:15 CET", 0),
            ("refresh-date: yesterday at 22:01 CET", 1),
            ("refresh-date: 3 days ago, at 09:12 CET", 3),
            ("refresh-date: 2 weeks ago, at 09:12 CET", 14),
            ("refresh-date: a month ago, at 09:12 CET", 30),
            ("refresh-date: 2025-01-02", date(2025, 1, 2)),
            ("refresh-date: sometime", None),
        ],
    )
    def test_parse(self, line, expected):
        assert snaps.parse_refresh_age(line) == expected

    @pytest.mark.asyncio
    async def test_collector(self, policy, monkeypatch):
        monkeypatch.setattr(snaps, "output", fake_output({
            "snap list": SNAP_LIST,
            "snap info --verbose firefox": "name: firefox\nrefresh-date: 50 days ago, at 10:00 CET\n",
        }))

        assert await snaps.refresh_age("firefox")(policy) == 50
        assert isinstance(await snaps.refresh_age("chromium")(policy), Skipped)

    @pytest.mark.asyncio
    async def test_collector_without_snapd(self, policy, monkeypatch):
        monkeypatch.setattr(snaps, "output", fake_output({}))
        assert await snaps.refresh_age("firefox")(policy) is None


def test_offline_snap_connections(policy):
    text = (
        "Interface  Plug              Slot      Notes\n"
        "network    pinta:network     :network  -\n"
        "network    firefox:network   :network  -\n"
        "home       pinta:home        :home     -\n"
    )
    assert snaps.offline_snap_connections(text, policy) == "network    pinta:network     :network  -\n"


@pytest.mark.asyncio
async def test_snap_info_prefixes_lines(policy, monkeypatch):
    monkeypatch.setattr(snaps, "output", fake_output({
        "snap list --all": SNAP_LIST,
        "snap info --verbose firefox": "name: firefox\nlicense: MPL-2.0\n",
    }))

    text = await snaps.snap_info_all(policy)

    assert "firefox: license: MPL-2.0\n" in text
    assert "core22" not in text


# === Shell helpers ===

@pytest.mark.asyncio
async def test_run_cmd_missing_executable():
    rc, stdout, stderr = await shell.run_cmd(["definitely-not-a-real-command-xyz"])
    assert rc == shell.COMMAND_NOT_FOUND
    assert stdout == ""


@pytest.mark.asyncio
async def test_render_files(tmp_path):
    folder = tmp_path / "sudoers.d"
    folder.mkdir()
    (folder / "README").write_text("# readme", encoding="utf-8")
    (folder / "old.save").write_text("ignored\n", encoding="utf-8")

    text = await shell.render_files([tmp_path / "sudoers", folder])

    assert f"==> {tmp_path / 'sudoers'} (missing) <==\n" in text
    assert f"==> {folder / 'README'} <==\n# readme\n" in text
    assert "ignored" not in text
