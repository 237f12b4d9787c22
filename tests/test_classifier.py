"""
Tests for the severity policy table and classify().
"""

import pytest

from checkup.core.classifier import (
    DEFAULT_POLICY,
    INFORMATIONAL,
    POLICY_TABLE,
    SOFT,
    TopicPolicy,
    classify,
    policy_for,
)
from checkup.core.models import Comparison, ComparisonStatus, Severity

ALL_KEYS = sorted(POLICY_TABLE)
NEUTRAL_STATUSES = [
    ComparisonStatus.BASELINE_MISSING,
    ComparisonStatus.UNAVAILABLE,
    ComparisonStatus.NO_DATA,
    ComparisonStatus.SKIPPED,
]


@pytest.mark.parametrize("key", ALL_KEYS)
def test_missing_baseline_is_never_error(key):
    result = classify(key, key, Comparison(ComparisonStatus.BASELINE_MISSING, detail="file x.saved.txt"))

    assert result.severity in (Severity.INFO, Severity.WARNING)
    assert not result.fatal


@pytest.mark.parametrize("key", ALL_KEYS)
@pytest.mark.parametrize("status", NEUTRAL_STATUSES, ids=lambda s: s.value)
def test_absent_data_is_never_error_or_success(key, status):
    result = classify(key, key, Comparison(status))
    assert result.severity in (Severity.INFO, Severity.WARNING)


@pytest.mark.parametrize("key", [k for k, p in POLICY_TABLE.items() if p.passed == Severity.SUCCESS])
def test_equal_is_success(key):
    result = classify(key, key, Comparison(ComparisonStatus.EQUAL))
    assert result.severity == Severity.SUCCESS
    assert result.evidence is None


def test_policy_rejects_error_for_absent_data():
    with pytest.raises(ValueError):
        TopicPolicy(missing_baseline=Severity.ERROR)
    with pytest.raises(ValueError):
        TopicPolicy(unavailable=Severity.SUCCESS)


class TestPolicyLookup:
    def test_family_fallback(self):
        assert policy_for("package-refresh-staleness/firefox") is POLICY_TABLE["package-refresh-staleness"]

    def test_exact_key(self):
        assert policy_for("repository-list") is POLICY_TABLE["repository-list"]

    def test_unknown_key_uses_default(self):
        assert policy_for("no-such-topic") is DEFAULT_POLICY

    def test_custom_table(self):
        assert policy_for("x", {"x": SOFT}) is SOFT


class TestClassify:
    def test_hard_mismatch_is_error_with_evidence(self):
        result = classify("repository-list", "repository list", Comparison(ComparisonStatus.DIFFERING, ("-Y", "+Z")))

        assert result.severity == Severity.ERROR
        assert result.evidence == "-Y\n+Z"
        assert result.message == (
            "repository list has changed, check the changes and run 'checkup promote repository-list' to accept them"
        )

    def test_soft_mismatch_is_warning(self):
        result = classify(
            "package-refresh-staleness/firefox",
            "last refresh of snap package firefox",
            Comparison(ComparisonStatus.FAILED, detail="50 days old (expected not older than 45 days)"),
        )

        assert result.severity == Severity.WARNING
        assert "50 days old" in result.message

    def test_missing_baseline_message(self):
        result = classify("sudoers", "sudoers", Comparison(ComparisonStatus.BASELINE_MISSING, detail="folder /x"))
        assert result.message == "sudoers check is skipped because reference folder /x does not exist"

    def test_prerequisite_failure_is_fatal(self):
        failed = classify("network-reachable", "network connection", Comparison(ComparisonStatus.FAILED))
        assert failed.severity == Severity.ERROR
        assert failed.fatal
        assert failed.acknowledge

    def test_prerequisite_unavailable_is_not_fatal(self):
        result = classify("network-reachable", "network connection", Comparison(ComparisonStatus.UNAVAILABLE))
        assert result.severity == Severity.WARNING
        assert not result.fatal

    def test_prerequisite_success_is_not_fatal(self):
        assert not classify("network-reachable", "network connection", Comparison(ComparisonStatus.PASSED)).fatal

    def test_informational_topic(self):
        result = classify(
            "journal-critical-errors", "critical journal errors",
            Comparison(ComparisonStatus.PASSED, ("- 3 disk error",), "12 distinct lines"),
            INFORMATIONAL,
        )
        assert result.severity == Severity.INFO
        assert result.message == "critical journal errors (12 distinct lines)"

    def test_skipped(self):
        result = classify("binary-checksums", "MD5 checksums", Comparison(ComparisonStatus.SKIPPED, detail="off"))
        assert result.severity == Severity.INFO
        assert result.message == "MD5 checksums check is skipped (off)"

    def test_sudo_password_skip_is_a_warning(self):
        result = classify("sudo-password", "sudo password", Comparison(ComparisonStatus.SKIPPED))
        assert result.severity == Severity.WARNING
