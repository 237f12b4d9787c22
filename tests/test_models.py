"""
Unit tests for CheckOutcome and RunSummary.
"""

import pytest

from checkup.core.models import CheckOutcome, RunState, RunSummary, Severity


def outcome(severity: Severity, key: str = "topic") -> CheckOutcome:
    return CheckOutcome(topic_key=key, label=key, severity=severity, message=key)


def summary_with(*severities: Severity) -> RunSummary:
    summary = RunSummary()
    for i, severity in enumerate(severities):
        summary.record(outcome(severity, f"topic-{i}"))
    return summary


class TestRunSummaryCounts:
    def test_counts_follow_recorded_outcomes(self):
        summary = summary_with(
            Severity.SUCCESS, Severity.WARNING, Severity.ERROR, Severity.INFO, Severity.WARNING
        )

        assert summary.warning_count == 2
        assert summary.error_count == 1
        assert summary.warning_count == len(summary.by_severity(Severity.WARNING))
        assert summary.error_count == len(summary.by_severity(Severity.ERROR))
        assert summary.state == RunState.RUNNING

    def test_success_and_info_do_not_change_counts(self):
        summary = summary_with(Severity.SUCCESS, Severity.INFO)

        assert summary.warning_count == 0
        assert summary.error_count == 0
        assert summary.success

    def test_record_after_finalize_is_rejected(self):
        summary = summary_with(Severity.SUCCESS)
        summary.finalize(1.0)

        assert summary.state == RunState.SUMMARIZED
        with pytest.raises(RuntimeError):
            summary.record(outcome(Severity.ERROR))

    def test_finalize_keeps_aborted_state(self):
        summary = summary_with(Severity.ERROR)
        summary.abort("network connection check failed")
        summary.finalize(0.5)

        assert summary.state == RunState.ABORTED
        assert summary.aborted
        assert not summary.success


class TestBanner:
    @pytest.mark.parametrize(
        "severities, expected",
        [
            ((), "*** DONE (success) ***"),
            ((Severity.SUCCESS, Severity.INFO), "*** DONE (success) ***"),
            ((Severity.WARNING,), "*** DONE with 1 warning ***"),
            ((Severity.WARNING, Severity.WARNING), "*** DONE with 2 warnings ***"),
            ((Severity.ERROR,), "*** DONE with 1 error ***"),
            ((Severity.ERROR, Severity.ERROR, Severity.ERROR), "*** DONE with 3 errors ***"),
            ((Severity.ERROR, Severity.WARNING), "*** DONE with 1 error + 1 warning ***"),
            (
                (Severity.ERROR, Severity.ERROR, Severity.WARNING, Severity.WARNING),
                "*** DONE with 2 errors + 2 warnings ***",
            ),
        ],
    )
    def test_banner(self, severities, expected):
        assert summary_with(*severities).banner() == expected

    def test_aborted_banner_names_reason(self):
        summary = summary_with(Severity.ERROR)
        summary.abort("network connection check failed")

        assert summary.banner() == "*** ABORTED: network connection check failed ***"


def test_outcome_serialization():
    item = CheckOutcome(
        topic_key="repository-list",
        label="repository list",
        severity=Severity.ERROR,
        message="repository list has changed",
        evidence="-Y\n+Z",
    )

    data = item.to_dict()
    assert data["severity"] == "error"
    assert data["evidence"] == "-Y\n+Z"
    assert "acknowledge" not in data

    md = item.to_markdown()
    assert "[ERROR] repository list" in md
    assert "`repository-list`" in md
    assert "-Y\n+Z" in md


def test_summary_to_dict():
    summary = summary_with(Severity.SUCCESS, Severity.WARNING)
    summary.finalize(2.0)

    data = summary.to_dict()
    assert data["state"] == "summarized"
    assert data["warning_count"] == 1
    assert [o["topic_key"] for o in data["outcomes"]] == ["topic-0", "topic-1"]
