"""
Snap topics.
"""

from datetime import date
from typing import List, Optional

from ..collectors import snaps
from ..core.base_check import BaseCheck, PredicateCheck, SnapshotCheck
from ..core.comparator import (
    NOT_EMPTY,
    AllOf,
    MaxCount,
    OlderThanDays,
    OneOf,
    RegexMustMatch,
    RegexMustNotMatch,
)
from ..core.normalizer import DropLines, KeepLines, NormalizerRegistry, ProjectColumns

SNAPS = "Snap"
SNAP_LIST_ALL = "snap-list-all"
SNAP_INFO = "snap-info"


def _info_field(key: str, label: str, unexpected: str, message: str) -> PredicateCheck:
    """Поле snap info: должно присутствовать, строки без ожидаемого значения - ошибка."""
    return PredicateCheck(
        key, label,
        snaps.snap_info_all,
        AllOf(
            [
                RegexMustMatch(NOT_EMPTY, label=f"no {label} found in snap packages info"),
                RegexMustNotMatch(unexpected, label=message),
            ],
            label=message,
        ),
        fact_name=SNAP_INFO, expensive=True, section=SNAPS,
    )


def build(policy, today: Optional[date] = None) -> List[BaseCheck]:
    nothing = RegexMustNotMatch(NOT_EMPTY, label="unexpected entries found")

    topics: List[BaseCheck] = [
        SnapshotCheck("snap-list", "snap package list", snaps.snap_list, section=SNAPS),
        PredicateCheck(
            "snapd-running", "snapd service running",
            snaps.snapd_state, OneOf(("active",)), section=SNAPS,
        ),
        PredicateCheck(
            "snap-confinement", "default snap confinement",
            snaps.snap_confinement, OneOf(("strict",)), section=SNAPS,
        ),
        PredicateCheck(
            "snap-publishers", "snap publishers",
            snaps.snap_list_all, nothing,
            fact_name=SNAP_LIST_ALL, transform=snaps.unexpected_publishers, section=SNAPS,
        ),
        PredicateCheck(
            "snap-channels", "snap stable channels",
            snaps.snap_list_all, nothing,
            fact_name=SNAP_LIST_ALL, transform=snaps.unstable_channels, section=SNAPS,
        ),
        PredicateCheck(
            "snap-held", "snap updates enabled",
            snaps.snap_list_all, nothing,
            fact_name=SNAP_LIST_ALL, transform=snaps.held_snaps, section=SNAPS,
        ),
        PredicateCheck(
            "snap-refresh-schedule", "snap refresh schedule",
            snaps.snap_refresh_time,
            RegexMustMatch(r"timer: 00:00~24:00/4$", label="unexpected snap refresh schedule"),
            section=SNAPS,
        ),
        PredicateCheck(
            "snap-refresh-retain", "snap refresh.retain",
            snaps.snap_refresh_retain, MaxCount(policy.max_snap_refresh_retain), section=SNAPS,
        ),
        _info_field("snap-info-confinement", "confinement", r"^(?!.*\bstrict\b).+$",
                    "some snap packages are not installed with strict confinement"),
        _info_field("snap-store-urls", "store-url", r"^(?!.*https://snapcraft\.io/).+$",
                    "some snap packages are installed from an unexpected URL"),
        _info_field("snap-licenses", "license", r"^(?!.*(unset|GPL|MIT)).+$",
                    "some snap packages are installed with an unexpected license"),
        _info_field("snap-tracking", "tracking", r"^(?!.*stable).+$",
                    "some snap packages are not installed from stable channel"),
    ]

    for snap in policy.watched_snaps:
        topics.append(
            PredicateCheck(
                f"package-refresh-staleness/{snap}", f"last refresh of snap package {snap}",
                snaps.refresh_age(snap),
                OlderThanDays(policy.max_snap_refresh_age_days, today=today),
                section=SNAPS,
            )
        )

    topics += [
        PredicateCheck(
            "snap-snapshots", "stored snap snapshots",
            snaps.snap_saved, RegexMustNotMatch(NOT_EMPTY, label="snap snapshots are stored"), section=SNAPS,
        ),
        PredicateCheck(
            "snap-network", "offline snaps without network access",
            snaps.snap_connections, RegexMustNotMatch(NOT_EMPTY, label="snap packages have internet access"),
            transform=snaps.offline_snap_connections, section=SNAPS,
        ),
    ]
    return topics


def register_normalizers(registry: NormalizerRegistry, policy) -> None:
    # Name, Tracking, Publisher, Notes: версия и ревизия меняются при обновлении
    registry.register("snap-list", ProjectColumns((0, 3, 4, 5)))
    registry.register("snap-info-confinement", KeepLines([r"\bconfinement:"]))
    registry.register("snap-store-urls", KeepLines([r"\bstore-url:"]))
    registry.register("snap-licenses", KeepLines([r"\blicense:"]))
    registry.register("snap-tracking", KeepLines([r"\btracking:"]))
    registry.register("snap-snapshots", DropLines(["No snapshots found"], drop_blank=True))
