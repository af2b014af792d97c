"""Plain-text rendering of deletion plans and pending-review reports."""

from .models import DeletionCandidate, PendingPullRequest
from .pending import PendingReviewReport
from .policy import DeletionPlan

RULE = "=" * 60
PREVIEW_LIMIT = 10


def _preview(candidates: list[DeletionCandidate], show_pr: bool) -> list[str]:
    lines = []
    for candidate in candidates[:PREVIEW_LIMIT]:
        email = candidate.email
        lines.append(f"  - {email.subject}")
        if show_pr and candidate.status is not None:
            lines.append(
                f"    PR: {email.repository}#{email.pr_number} "
                f"({candidate.status.state.value})"
            )
    if len(candidates) > PREVIEW_LIMIT:
        lines.append(f"  ... and {len(candidates) - PREVIEW_LIMIT} more")
    return lines


def render_deletion_plan(plan: DeletionPlan) -> str:
    """Summarize what a plan would delete, ten entries per section at most."""
    lines = [RULE]

    if plan.pr_candidates:
        lines += ["", f"PR emails to remove: {len(plan.pr_candidates)}", ""]
        lines += _preview(plan.pr_candidates, show_pr=True)

    if plan.ci_candidates:
        lines += ["", f"CI emails to remove: {len(plan.ci_candidates)}", ""]
        lines += _preview(plan.ci_candidates, show_pr=False)

    if plan.is_empty:
        lines.append("No emails match deletion criteria.")
    else:
        lines += ["", f"Total: {len(plan)} emails to remove"]
    return "\n".join(lines)


def render_dry_run(count: int) -> str:
    return "\n".join(
        [
            RULE,
            "",
            f"Dry run complete. {count} emails would be moved to trash.",
            "Run with --confirm to actually delete these emails.",
        ]
    )


def _pending_entry(pr: PendingPullRequest, with_approvals: bool = False) -> list[str]:
    heading = f"  {pr.key}"
    if with_approvals:
        heading += f" ({pr.approvals} approvals)"
    return [heading, f"    {pr.title}", f"    by {pr.author} | {pr.url}", ""]


def render_pending_report(report: PendingReviewReport) -> str:
    """Render the four review buckets followed by a total line."""
    if report.is_empty:
        return "No PRs awaiting your review."

    sections = [
        ("🔥 NEEDS 1 MORE APPROVAL", report.needs_one_more, False),
        ("⏳ NEEDS MORE APPROVALS", report.needs_more, True),
        ("🔄 CHANGES REQUESTED", report.changes_requested, False),
        ("✅ APPROVED (waiting to merge)", report.approved, False),
    ]

    lines: list[str] = []
    for title, pull_requests, with_approvals in sections:
        if not pull_requests:
            continue
        lines += [RULE, f"{title} ({len(pull_requests)}):", ""]
        for pr in pull_requests:
            lines += _pending_entry(pr, with_approvals)

    lines += [RULE, "", f"Total: {len(report.pull_requests)} PRs awaiting your review"]
    return "\n".join(lines)
