"""
Configuration for the checkup audit.

Policy values come from defaults, the environment (CHECKUP_ prefix) and an
optional .env file. The model is frozen: checks only read it.
"""

from pathlib import Path
from typing import Any, List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

UNCONFIGURED_DEVICE = "/dev/xxx"

DEFAULT_EXPECTED_PATH = (
    "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin:/usr/games:/usr/local/games:/snap/bin"
)


class Policy(BaseSettings):
    """Настройки одного запуска checkup."""

    model_config = SettingsConfigDict(
        env_prefix="CHECKUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # === Interaction ===
    stop_on_warnings: bool = False
    stop_on_errors: bool = False
    test_sudo_password: bool = True

    # === Scope ===
    skip_expensive_checks: bool = False
    extended_checks: bool = False  # проверка контрольных сумм бинарников (долго)

    # === Paths ===
    hard_disk_device: str = UNCONFIGURED_DEVICE
    home: Path = Field(default_factory=Path.home)
    checkup_folder: Optional[Path] = None
    snap_folder: Optional[Path] = None
    firefox_folder: Optional[Path] = None
    firefox_profile_folder: Optional[Path] = None  # None = автопоиск *.default*
    chromium_folder: Optional[Path] = None
    report_output_dir: Optional[Path] = None

    # === Expectations ===
    expected_path: str = DEFAULT_EXPECTED_PATH
    expected_usr_local_bin_programs: List[str] = Field(default_factory=list)
    official_repository_urls: List[str] = Field(
        default_factory=lambda: [
            "http://security.ubuntu.com/ubuntu",
            "http://archive.ubuntu.com/ubuntu",
        ]
    )
    allowed_snap_publishers: List[str] = Field(
        default_factory=lambda: ["canonical", "kde", "mozilla", "openprinting", "james-carroll"]
    )
    offline_snaps: List[str] = Field(default_factory=lambda: ["pinta"])
    watched_snaps: List[str] = Field(default_factory=lambda: ["firefox", "chromium"])
    unsafe_packages: List[str] = Field(default_factory=lambda: ["^vino", "^wine", "chrome"])
    dpkg_verify_ignored: List[str] = Field(
        default_factory=lambda: [
            "/etc/apt/apt.conf.d/10periodic",
            "/etc/cloud/templates/sources.list.debian.deb822.tmpl",
            "/etc/cloud/templates/sources.list.ubuntu.deb822.tmpl",
            "/etc/xdg/libkleopatrarc",
            "/etc/update-manager/release-upgrades",
        ]
    )

    # === Thresholds ===
    min_enforced_profiles: int = 50
    min_profiled_processes: int = 5
    min_enforce_ratio_percent: int = 80
    max_disk_usage_percent: int = 59
    max_snap_refresh_age_days: int = 45
    max_snap_refresh_retain: int = 2
    complain_mode_tolerance: int = 3
    journal_top_errors: int = 25

    # === Network ===
    network_probe_host: str = "www.google.com"

    # === Execution ===
    command_timeout_seconds: float = 30.0
    expensive_timeout_seconds: float = 900.0

    @model_validator(mode="before")
    @classmethod
    def _derive_paths(cls, data: Any) -> Any:
        """Пути по умолчанию вычисляются от home."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        home = Path(data.get("home") or Path.home()).expanduser()
        data["home"] = home
        if not data.get("checkup_folder"):
            data["checkup_folder"] = home / "checkup_files"
        if not data.get("snap_folder"):
            data["snap_folder"] = home / "snap"
        snap_folder = Path(data["snap_folder"]).expanduser()
        if not data.get("firefox_folder"):
            data["firefox_folder"] = snap_folder / "firefox" / "common" / ".mozilla" / "firefox"
        if not data.get("chromium_folder"):
            data["chromium_folder"] = snap_folder / "chromium" / "common" / "chromium" / "Default"
        return data

    @property
    def disk_configured(self) -> bool:
        return self.hard_disk_device != UNCONFIGURED_DEVICE

    def firefox_profile(self) -> Optional[Path]:
        """
        Найти профиль Firefox.

        Returns:
            Явно заданный профиль или первый *.default* в firefox_folder
        """
        if self.firefox_profile_folder is not None:
            return self.firefox_profile_folder
        if self.firefox_folder is None or not self.firefox_folder.is_dir():
            return None
        candidates = sorted(p for p in self.firefox_folder.glob("*.default*") if p.is_dir())
        return candidates[0] if candidates else None


def get_default_policy(env_file: Optional[Path] = None, **overrides: Any) -> Policy:
    """
    Создать Policy из окружения.

    Args:
        env_file: Альтернативный .env файл
        **overrides: Явные значения (например, из флагов CLI)
    """
    if env_file is not None:
        return Policy(_env_file=env_file, **overrides)
    return Policy(**overrides)
