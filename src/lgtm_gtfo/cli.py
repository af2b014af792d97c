"""Command-line entry points: ``lgtm`` (dry run by default) and ``gtfo``."""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import Any

from .auth import AuthenticationError, BearerTokenAuth, PersonalAccessTokenAuth
from .config import (
    AppConfig,
    Backend,
    ConfigurationError,
    LogLevel,
    MailboxSettings,
    load_config,
    validate_runtime,
)
from .github import GitHubClient, GitHubClientConfig, GitHubError, GitHubPullRequestSource
from .mailbox import EwsMailbox, GraphMailbox, MailAppAdapter, MailboxAdapter, MailboxError
from .triage import (
    IdentityResolutionError,
    PendingReviewAggregator,
    PolicyOptions,
    ReconciliationSession,
)
from .triage.processor import EmailProcessor, ProcessOptions
from .triage.report import render_pending_report

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

EPILOG = """
Backends:
  graph      Microsoft Graph API (default, token in MS_GRAPH_TOKEN)
  ews        Exchange Web Services (token in MS_EWS_TOKEN)
  mail-app   macOS Mail.app via AppleScript

Environment:
  GITHUB_TOKEN      GitHub API token
  GITHUB_HANDLE     Your GitHub username (for mention/reviewer checks)
  LGTM_BACKEND      Backend: graph (default), ews, or mail-app

Examples:
  lgtm                         # Dry run - see what would be deleted
  gtfo                         # Actually move emails to trash
  lgtm --folder dependabot     # Only scan github/dependabot folder
  lgtm --pending --no-bot      # PRs waiting for your review
"""


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from e
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lgtm",
        description=(
            "Looks Good To Me? Get The F*** Out (of my inbox). Clean up GitHub "
            "notification emails for merged PRs where you weren't mentioned."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Actually delete emails (default: dry-run)",
    )
    parser.add_argument("--folder", help="Only scan specific github subfolder")
    parser.add_argument(
        "--skip-mentions",
        action="store_true",
        help="Delete even if you were @mentioned",
    )
    parser.add_argument(
        "--skip-review-requests",
        action="store_true",
        help="Delete even if you were requested as reviewer",
    )
    parser.add_argument(
        "--ci-days",
        type=non_negative_int,
        metavar="DAYS",
        help="Delete CI/workflow emails older than N days",
    )
    parser.add_argument(
        "--pending",
        action="store_true",
        help="List PRs waiting for your review (no email deletion)",
    )
    parser.add_argument(
        "--no-bot",
        action="store_true",
        help="Exclude bot PRs (dependabot, es-robot) from --pending",
    )

    backends = parser.add_mutually_exclusive_group()
    backends.add_argument(
        "--graph",
        dest="backend",
        action="store_const",
        const=Backend.GRAPH.value,
        help="Use Microsoft Graph API",
    )
    backends.add_argument(
        "--ews",
        dest="backend",
        action="store_const",
        const=Backend.EWS.value,
        help="Use Exchange Web Services",
    )
    backends.add_argument(
        "--mail-app",
        dest="backend",
        action="store_const",
        const=Backend.MAIL_APP.value,
        help="Use macOS Mail.app",
    )

    parser.add_argument("--config", help="Configuration file path (default: lgtm.yaml)")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=[level.value for level in LogLevel],
        help="Log level",
    )
    return parser


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Configuration values set on the command line; unset flags stay None."""
    return {
        "log_level": args.log_level,
        "mailbox": {"backend": args.backend, "folder": args.folder},
        "policy": {
            "skip_mentions": True if args.skip_mentions else None,
            "skip_review_requests": True if args.skip_review_requests else None,
            "ci_days": args.ci_days,
            "exclude_bots": True if args.no_bot else None,
        },
    }


def create_mailbox(settings: MailboxSettings) -> MailboxAdapter:
    """Instantiate the configured mailbox backend."""
    if settings.backend is Backend.GRAPH:
        return GraphMailbox(BearerTokenAuth(settings.graph_token or ""), settings.sender)
    if settings.backend is Backend.EWS:
        return EwsMailbox(
            BearerTokenAuth(settings.ews_token or ""), settings.sender, url=settings.ews_url
        )
    return MailAppAdapter(settings.sender)


def create_github_client(config: AppConfig) -> GitHubClient:
    github = config.github
    return GitHubClient(
        PersonalAccessTokenAuth(github.token or ""),
        GitHubClientConfig(
            base_url=github.api_url,
            timeout=github.timeout,
            max_retries=github.max_retries,
            max_concurrent_requests=github.max_concurrency,
        ),
    )


async def run(config: AppConfig, pending: bool = False, confirm: bool = False) -> int:
    """Run one pending-review listing or one email triage pass.

    Returns:
        Process exit status
    """
    validate_runtime(config, pending=pending)

    async with create_github_client(config) as client:
        session = ReconciliationSession(
            GitHubPullRequestSource(client),
            handle=config.github.handle,
            concurrency=config.github.max_concurrency,
        )

        if pending:
            aggregator = PendingReviewAggregator(
                session, exclude_bots=config.policy.exclude_bots
            )
            report = await aggregator.collect()
            print(render_pending_report(report))
            return EXIT_OK

        options = ProcessOptions(
            folder=config.mailbox.folder,
            confirm=confirm,
            policy=PolicyOptions(
                skip_mentions=config.policy.skip_mentions,
                skip_review_requests=config.policy.skip_review_requests,
                ci_days=config.policy.ci_days,
            ),
        )
        logger.info(f"Using {config.mailbox.backend.display_name}")
        async with create_mailbox(config.mailbox) as mailbox:
            result = await EmailProcessor(mailbox, session).process(options)

    if result.move_result is not None and not result.move_result.ok:
        return EXIT_FAILURE
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=args.log_level or logging.INFO, format=LOG_FORMAT)

    try:
        config = load_config(args.config, cli_overrides(args))
        logging.getLogger().setLevel(config.log_level.value)
        return asyncio.run(run(config, pending=args.pending, confirm=args.confirm))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except (
        ConfigurationError,
        AuthenticationError,
        IdentityResolutionError,
        GitHubError,
        MailboxError,
    ) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return EXIT_FAILURE


def gtfo_main(argv: Sequence[str] | None = None) -> int:
    """``lgtm --confirm``."""
    args = list(argv) if argv is not None else sys.argv[1:]
    return main(["--confirm", *args])
