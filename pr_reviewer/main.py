"""
Main entry point for the AI pull request reviewer.

Runs inside a GitHub Actions job triggered by a pull_request event, or
locally against an explicit PR number.

Usage:
    python -m pr_reviewer.main
    python -m pr_reviewer.main --pr 42 --repo owner/name --dry-run
    python -m pr_reviewer.main --provider anthropic --model claude-sonnet-4-20250514
"""

import argparse
import json
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from pr_reviewer.config import load_config, load_llm_settings
from pr_reviewer.errors import ConfigError, DiffUnavailableError, GitHubClientError, UnsupportedEventError
from pr_reviewer.github_client import GITHUB_API_BASE, GitHubClient
from pr_reviewer.llm import LLMClient, SUPPORTED_PROVIDERS
from pr_reviewer.reviewer import ReviewService

logger = logging.getLogger(__name__)

SUPPORTED_ACTIONS = ("opened", "synchronize", "reopened")


def load_event(event_path: str) -> dict:
    """Load the GitHub event payload."""
    with open(event_path, "r", encoding="utf-8") as f:
        return json.load(f)


def pr_number_from_event(event: dict) -> int:
    """Return the PR number of a supported pull_request event."""
    action = event.get("action")
    if action not in SUPPORTED_ACTIONS:
        raise UnsupportedEventError(f"Unsupported event action: {action}")
    number = event.get("number") or (event.get("pull_request") or {}).get("number")
    if not number:
        raise UnsupportedEventError("Event payload carries no pull request number")
    return int(number)


def print_summary(review, dry_run: bool):
    """Print human-readable summary to console."""
    print("\n" + "=" * 60)
    print(f"AI REVIEW - {review.suggested_action.value}{' (dry run)' if dry_run else ''}")
    print("=" * 60)
    print(f"\n{review.summary}")

    if review.comments:
        print("\n" + "-" * 60)
        print("COMMENTS:")
        print("-" * 60)
        for i, comment in enumerate(review.comments, 1):
            print(f"\n{i}. {comment.path} (position {comment.position})")
            print(f"   {comment.body[:100]}")
    else:
        print("\nNo issues found by AI.")
    print("\n" + "=" * 60)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AI pull request reviewer - inline comments on the changed lines"
    )
    parser.add_argument(
        "--pr",
        type=int,
        help="Pull request number (default: read from GITHUB_EVENT_PATH)"
    )
    parser.add_argument(
        "--repo",
        default=os.getenv("GITHUB_REPOSITORY"),
        help="Repository as owner/name (default: $GITHUB_REPOSITORY)"
    )
    parser.add_argument(
        "--event-path",
        default=os.getenv("GITHUB_EVENT_PATH"),
        help="Path to the GitHub event payload (default: $GITHUB_EVENT_PATH)"
    )
    parser.add_argument(
        "--provider",
        choices=SUPPORTED_PROVIDERS,
        help="LLM provider (default: INPUT_AI_PROVIDER or openai)"
    )
    parser.add_argument(
        "--model",
        help="Model name (default: INPUT_AI_MODEL or gpt-4o)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the review instead of posting it"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    return parser


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    load_dotenv()  # Load environment variables from .env file

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        config = load_config(os.environ)
        llm_settings = load_llm_settings(os.environ)
        if args.provider:
            llm_settings.provider = args.provider
        if args.model:
            llm_settings.model = args.model

        if not args.repo or "/" not in args.repo:
            raise ConfigError("Repository must be given as owner/name (--repo or GITHUB_REPOSITORY)")
        owner, repo = args.repo.split("/", 1)

        token = os.getenv("GITHUB_TOKEN") or os.getenv("INPUT_GITHUB_TOKEN") or ""
        if not token:
            raise ConfigError("GITHUB_TOKEN not set")

        client = LLMClient(llm_settings.provider, llm_settings.model, timeout=llm_settings.timeout)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if args.pr:
        pr_number = args.pr
    else:
        if not args.event_path:
            logger.error("No --pr given and GITHUB_EVENT_PATH not set")
            return 1
        try:
            pr_number = pr_number_from_event(load_event(args.event_path))
        except UnsupportedEventError as e:
            logger.info(f"{e} - nothing to review")
            return 0

    github = GitHubClient(token, owner, repo, api_url=os.getenv("GITHUB_API_URL", GITHUB_API_BASE))
    service = ReviewService(
        reader=github,
        writer=None if args.dry_run else github,
        client=client,
        config=config,
        model_name=client.display_name,
    )

    try:
        review = service.perform_review(pr_number)
    except DiffUnavailableError as e:
        logger.error(f"No diff found: {e}")
        return 0
    except GitHubClientError as e:
        logger.error(f"GitHub error: {e}")
        return 1

    print_summary(review, args.dry_run)

    # Resolved comments fail the check
    if review.comments:
        logger.error(f"{len(review.comments)} AI review issues found.")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
