"""Unit tests for triage data models."""

import pytest

from helpers import make_email
from lgtm_gtfo.triage.models import (
    CHANGES_REQUESTED,
    PendingPullRequest,
    PRState,
    PullRequestReference,
    PullRequestStatus,
    ReviewBucket,
    approvals_needed,
)


class TestPullRequestReference:
    """Test PullRequestReference."""

    def test_key_format(self) -> None:
        assert PullRequestReference("octo/repo", 12).key == "octo/repo#12"

    @pytest.mark.parametrize("number", [0, -3])
    def test_rejects_non_positive_number(self, number: int) -> None:
        with pytest.raises(ValueError):
            PullRequestReference("octo/repo", number)

    def test_rejects_empty_repository(self) -> None:
        with pytest.raises(ValueError):
            PullRequestReference("", 1)

    def test_value_equality(self) -> None:
        assert PullRequestReference("a/b", 1) == PullRequestReference("a/b", 1)


class TestPullRequestStatus:
    """Test PullRequestStatus."""

    def test_failed_uses_safe_defaults(self) -> None:
        status = PullRequestStatus.failed(PullRequestReference("a/b", 2), "PR not found")

        assert status.key == "a/b#2"
        assert status.state is PRState.CLOSED
        assert status.merged is False
        assert status.was_mentioned is False
        assert status.was_requested_reviewer is False
        assert status.has_error


class TestNotificationEmail:
    """Test NotificationEmail."""

    def test_pr_email_reference(self) -> None:
        email = make_email("1", "[a/b] x (#3)", repository="a/b", pr_number=3)

        assert email.is_pr_email
        assert email.reference == PullRequestReference("a/b", 3)

    def test_non_pr_email(self) -> None:
        email = make_email("1", "Run failed: build")

        assert not email.is_pr_email
        assert email.reference is None

    def test_extra_does_not_affect_equality(self) -> None:
        assert make_email("1", "s", change_key="a") == make_email("1", "s", change_key="b")


class TestApprovalsNeeded:
    """Test approvals_needed and bucket classification."""

    @pytest.mark.parametrize(
        ("decision", "approvals", "expected"),
        [
            ("APPROVED", 0, 0),
            ("APPROVED", 5, 0),
            ("CHANGES_REQUESTED", 0, -1),
            ("CHANGES_REQUESTED", 3, -1),
            ("REVIEW_REQUIRED", 0, 2),
            ("REVIEW_REQUIRED", 1, 1),
            ("REVIEW_REQUIRED", 3, 0),
            (None, 0, 2),
            (None, 2, 0),
        ],
    )
    def test_mapping(self, decision: str | None, approvals: int, expected: int) -> None:
        assert approvals_needed(decision, approvals) == expected

    @pytest.mark.parametrize(
        ("needed", "bucket"),
        [
            (1, ReviewBucket.NEEDS_ONE_MORE),
            (2, ReviewBucket.NEEDS_MORE),
            (CHANGES_REQUESTED, ReviewBucket.CHANGES_REQUESTED),
            (0, ReviewBucket.APPROVED),
        ],
    )
    def test_bucket(self, needed: int, bucket: ReviewBucket) -> None:
        pr = PendingPullRequest(
            repository="a/b",
            number=1,
            title="t",
            url="u",
            author="x",
            approvals=0,
            approvals_needed=needed,
        )

        assert pr.bucket is bucket
