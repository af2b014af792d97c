"""Extract the repository and pull request number from a notification subject."""

import re

SUBJECT_PATTERNS = (
    re.compile(r"\[(.+?)\] (?:Re: )?(?:.+?) \(#(\d+)\)"),
    re.compile(r"\[(.+?)\] .+#(\d+)"),
    re.compile(r"Re: \[(.+?)\] .+#(\d+)"),
)


def parse_pr_from_subject(subject: str) -> tuple[str | None, int | None]:
    """Return ``(repository, number)`` for PR notification subjects.

    >>> parse_pr_from_subject("[octo/repo] Fix the widget (#42)")
    ('octo/repo', 42)
    >>> parse_pr_from_subject("[octo/repo] Run failed: CI - main")
    (None, None)
    """
    for pattern in SUBJECT_PATTERNS:
        match = pattern.search(subject)
        if match:
            return match.group(1), int(match.group(2))
    return None, None
