"""
Incremental review state.

The platform's review history is the only record of earlier runs. A review
recorded on the current head commit means there is nothing to do; otherwise
the most recent reviewed commit becomes the base of an update pass.
"""

import logging
from typing import Iterable

from pr_reviewer.models import PriorReview, ReviewPlan, ReviewStatus

logger = logging.getLogger(__name__)

# Login GitHub Actions posts reviews under when using the workflow's GITHUB_TOKEN
DEFAULT_REVIEWER_LOGIN = "github-actions[bot]"


def resolve_review_plan(
    head_sha: str,
    prior_reviews: Iterable[PriorReview],
    reviewer_login: str = DEFAULT_REVIEWER_LOGIN,
) -> ReviewPlan:
    """
    Decide between a full review, an update pass, or skipping.

    prior_reviews must be in chronological order. Only reviews authored by
    reviewer_login count; reviews by people or other bots are ignored.
    """
    reviewed = [r for r in prior_reviews if r.commit_ref and r.author == reviewer_login]

    if any(r.commit_ref == head_sha for r in reviewed):
        logger.info(f"Commit {head_sha} already reviewed")
        return ReviewPlan(status=ReviewStatus.SKIPPED, base_ref=None, last_reviewed_commit=head_sha)

    if reviewed:
        last = reviewed[-1].commit_ref
        logger.info(f"Update pass: diffing {last}..{head_sha}")
        return ReviewPlan(status=ReviewStatus.UPDATE, base_ref=last, last_reviewed_commit=last)

    return ReviewPlan(status=ReviewStatus.NEW)
