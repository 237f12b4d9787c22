"""
Tests for the topic catalogue.
"""

from checkup.checkers import build_registry, build_topics
from checkup.core.base_check import BaseCheck, SnapshotCheck
from checkup.core.classifier import POLICY_TABLE, policy_for

FIRST_KEYS = ["baseline-folder", "sudo-password", "sudoers"]
LAST_KEYS = ["held-packages", "package-origins"]


def test_catalogue_order(policy):
    keys = [topic.key for topic in build_topics(policy)]

    assert keys[:3] == FIRST_KEYS
    assert keys[-2:] == LAST_KEYS
    assert keys.index("network-reachable") < keys.index("repository-urls")
    assert keys.index("apparmor-service") < keys.index("repository-urls") < keys.index("firefox-settings")
    assert keys.index("firefox-settings") < keys.index("package-files") < keys.index("snap-list")


def test_keys_are_unique(policy):
    keys = [topic.key for topic in build_topics(policy)]
    assert len(keys) == len(set(keys))


def test_every_topic_has_a_severity_policy(policy):
    for topic in build_topics(policy):
        assert isinstance(topic, BaseCheck)
        assert topic.key.split("/", 1)[0] in POLICY_TABLE, topic.key
        assert topic.label


def test_every_policy_entry_is_used(policy):
    families = {topic.key.split("/", 1)[0] for topic in build_topics(policy)}
    assert set(POLICY_TABLE) == families


def test_watched_snaps_get_staleness_topics(policy_factory):
    policy = policy_factory(watched_snaps=["firefox", "thunderbird"])
    keys = [topic.key for topic in build_topics(policy)]

    assert "package-refresh-staleness/firefox" in keys
    assert "package-refresh-staleness/thunderbird" in keys
    assert "package-refresh-staleness/chromium" not in keys


def test_only_network_is_prerequisite(policy):
    prerequisites = [topic.key for topic in build_topics(policy) if policy_for(topic.key).prerequisite]
    assert prerequisites == ["network-reachable"]


def test_snapshot_topics(policy):
    snapshot_keys = {topic.key for topic in build_topics(policy) if isinstance(topic, SnapshotCheck)}
    assert {"sudoers", "repository-list", "timers", "setuid-files", "apparmor-complain-processes"} <= snapshot_keys
    assert all(topic.requires_baseline for topic in build_topics(policy) if topic.key in snapshot_keys)


def test_registry_keys_belong_to_topics(policy):
    keys = {topic.key for topic in build_topics(policy)}
    assert set(build_registry(policy).keys()) <= keys
