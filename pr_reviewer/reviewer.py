"""
Core reviewer module.

Runs the staged review pipeline for one pull request:
state → diff → parse/filter → fetch contents → batch → per-chunk model
calls → aggregate → publish.
Handles failures gracefully - a failed chunk or a failed write never aborts
the run.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from pr_reviewer.aggregator import ALREADY_REVIEWED, aggregate
from pr_reviewer.batcher import chunk_review_files
from pr_reviewer.config import ReviewConfig
from pr_reviewer.diff_parser import format_file_diff, parse_diff
from pr_reviewer.errors import (
    DiffUnavailableError,
    GitHubClientError,
    LLMTimeoutError,
    ModelResponseError,
    PlatformWriteError,
    ReviewerError,
)
from pr_reviewer.filters import filter_files
from pr_reviewer.github_client import RepositoryReader, RepositoryWriter
from pr_reviewer.llm import ModelClient
from pr_reviewer.mapper import map_suggestions
from pr_reviewer.models import (
    ChunkOutcome,
    ContextFile,
    DiffFile,
    PreviousComment,
    PullRequest,
    ReviewFile,
    ReviewOutcome,
    ReviewPlan,
    ReviewRequest,
    ReviewStatus,
    SuggestedAction,
)
from pr_reviewer.prompts import build_review_request
from pr_reviewer.state import resolve_review_plan

logger = logging.getLogger(__name__)

NO_CHANGES_SUMMARY = "No reviewable changes"


def normalize_review_event(action: SuggestedAction, approve_reviews: bool) -> SuggestedAction:
    """Without approve_reviews every review is posted as a plain comment."""
    if not approve_reviews:
        return SuggestedAction.COMMENT
    return action


def with_model_footer(outcome: ReviewOutcome, model_name: Optional[str]) -> ReviewOutcome:
    if not model_name:
        return outcome
    footer = f"_Code review performed by `{model_name}`._"
    summary = f"{outcome.summary}\n\n------\n\n{footer}" if outcome.summary else footer
    return outcome.model_copy(update={"summary": summary})


def _fetch_or_none(reader: RepositoryReader, path: str, ref: str) -> Optional[str]:
    try:
        return reader.get_file_content(path, ref)
    except GitHubClientError as e:
        logger.warning(f"Could not fetch {path}@{ref}: {e}")
        return None


def fetch_review_files(reader: RepositoryReader, files: Sequence[DiffFile], pr: PullRequest,
                       max_workers: int = 8) -> List[ReviewFile]:
    """
    Bundle each file's diff with its content at head and at the PR base.

    Content reads are independent and run concurrently; results come back
    in the order of files.
    """
    def load(diff_file: DiffFile) -> ReviewFile:
        content = _fetch_or_none(reader, diff_file.new_path, pr.head_sha)
        original = None if diff_file.is_new else _fetch_or_none(reader, diff_file.old_path, pr.base_sha)
        return ReviewFile(
            path=diff_file.new_path,
            content=content,
            original_content=original,
            diff=format_file_diff(diff_file),
        )

    if not files:
        return []
    with ThreadPoolExecutor(max_workers=min(max_workers, len(files))) as executor:
        return list(executor.map(load, files))


def fetch_context_files(reader: RepositoryReader, paths: Sequence[str], ref: Optional[str] = None) -> List[ContextFile]:
    """Repository files attached to every request; missing ones are skipped."""
    results = []
    for path in paths:
        content = _fetch_or_none(reader, path, ref)
        if content:
            results.append(ContextFile(path=path, content=content))
        else:
            logger.debug(f"Context file not found: {path}")
    return results


def review_chunk(client: ModelClient, request: ReviewRequest, diff_files: Sequence[DiffFile]) -> Optional[ChunkOutcome]:
    """
    Run one model call and anchor its comments.

    Returns None when the model call fails; the chunk then contributes no
    findings.
    """
    try:
        review = client.review(request)
    except LLMTimeoutError:
        logger.warning("LLM timeout - dropping findings for this chunk")
        return None
    except ModelResponseError as e:
        logger.warning(f"LLM invalid output - dropping findings for this chunk: {e}")
        logger.debug(f"Raw model output: {e.raw_text[:2000]}")
        return None
    except ReviewerError as e:
        logger.warning(f"LLM error - dropping findings for this chunk: {e}")
        return None

    comments = map_suggestions(review.comments, diff_files)
    logger.info(f"Chunk reviewed: {len(comments)}/{len(review.comments)} comments anchored, "
                f"suggested action {review.suggested_action.value}")
    return ChunkOutcome(
        summary=review.summary,
        comments=comments,
        suggested_action=review.suggested_action,
        confidence=review.confidence,
    )


class ReviewService:
    """Reviews one pull request per call to perform_review()."""

    def __init__(self, reader: RepositoryReader, writer: Optional[RepositoryWriter], client: ModelClient,
                 config: ReviewConfig, model_name: Optional[str] = None):
        self.reader = reader
        self.writer = writer
        self.client = client
        self.config = config
        self.model_name = model_name

    def plan(self, pr: PullRequest) -> ReviewPlan:
        prior_reviews = self.reader.list_prior_reviews(pr.number)
        return resolve_review_plan(pr.head_sha, prior_reviews, self.config.reviewer_login)

    def _previous_comments(self, pr: PullRequest) -> List[PreviousComment]:
        try:
            comments = self.reader.list_review_comments(pr.number, self.config.reviewer_login)
        except GitHubClientError as e:
            logger.warning(f"Could not load previous review comments: {e}")
            return []
        logger.debug(f"Found {len(comments)} previous review comments")
        return comments

    def _get_diff(self, base: str, head: str) -> str:
        try:
            return self.reader.get_diff(base, head)
        except GitHubClientError as e:
            raise DiffUnavailableError(f"Could not retrieve diff {base}...{head}: {e}") from e

    def perform_review(self, pr_number: int) -> ReviewOutcome:
        """
        Review a pull request.

        Workflow:
        1. Resolve incremental state (skip if head already reviewed)
        2. Fetch, parse and filter the diff
        3. Bundle file contents and batch into chunks
        4. Review chunks one after another
        5. Aggregate and publish

        Raises DiffUnavailableError if the diff cannot be retrieved.
        """
        logger.info(f"Starting review for PR #{pr_number}")
        pr = self.reader.get_pr_metadata(pr_number)
        logger.info(f"PR title: {pr.title}")

        # Step 1: incremental state
        plan = self.plan(pr)
        if plan.status == ReviewStatus.SKIPPED:
            logger.info("Skipping review - commit already reviewed")
            return ALREADY_REVIEWED

        previous_comments = self._previous_comments(pr) if plan.is_update else []

        # Step 2: diff
        base = plan.base_ref or pr.base_sha
        diff_files = filter_files(parse_diff(self._get_diff(base, pr.head_sha)), self.config.exclude_patterns)
        logger.info(f"Modified files: {len(diff_files)}")
        if not diff_files:
            logger.info("No files remaining after filtering; nothing to review.")
            return ReviewOutcome(summary=NO_CHANGES_SUMMARY)

        # Step 3: contents and chunks
        review_files = fetch_review_files(self.reader, diff_files, pr, self.config.max_fetch_workers)
        context_files = fetch_context_files(self.reader, self.config.context_files, pr.head_sha)
        chunks = chunk_review_files(review_files, self.config.max_request_chars)
        logger.info(f"Reviewing {len(review_files)} files in {len(chunks)} chunk(s)")

        # Step 4: sequential chunk loop
        files_by_path = {f.new_path: f for f in diff_files}
        outcomes = []
        for index, chunk in enumerate(chunks, 1):
            logger.info(f"Reviewing chunk {index}/{len(chunks)} ({len(chunk)} files)")
            request = build_review_request(
                chunk,
                pr,
                self.config,
                context_files=context_files,
                previous_comments=previous_comments,
                is_update=plan.is_update,
            )
            outcome = review_chunk(self.client, request, [files_by_path[f.path] for f in chunk])
            if outcome is not None:
                outcomes.append(outcome)

        # Step 5: aggregate and publish
        review = with_model_footer(aggregate(outcomes, self.config.max_comments), self.model_name)
        self.publish(pr, review)
        return review

    def publish(self, pr: PullRequest, review: ReviewOutcome) -> None:
        """Post the review and label the PR. Failures are logged, never raised."""
        if self.writer is None:
            logger.info("No writer configured; review not posted")
            return

        event = normalize_review_event(review.suggested_action, self.config.approve_reviews)
        try:
            self.writer.post_review(pr.number, review.summary, review.comments, event, commit_id=pr.head_sha)
        except PlatformWriteError as e:
            logger.warning(f"Failed to post review: {e}")
            return

        if self.config.review_label:
            try:
                self.writer.add_label(pr.number, self.config.review_label)
            except PlatformWriteError as e:
                logger.warning(f"Failed to add label '{self.config.review_label}': {e}")
