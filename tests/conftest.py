"""
Shared fixtures for lgtm-gtfo tests.
"""

import pytest

from helpers import FakePullRequestSource


@pytest.fixture
def source() -> FakePullRequestSource:
    """
    In-memory pull request source.

    Why: Triage logic must be exercised without network access
    What: Provides a fake source with call counting and concurrency tracking
    How: Tests register pull requests and review states before use
    """
    return FakePullRequestSource()
