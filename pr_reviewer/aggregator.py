"""
Folding per-chunk results into one PR-level review.
"""

from typing import Iterable, List

from pr_reviewer.models import ChunkOutcome, ResolvedComment, ReviewOutcome, SuggestedAction

# No cross-chunk calibration is attempted; every aggregated review carries this value.
AGGREGATE_CONFIDENCE = 1

ALREADY_REVIEWED = ReviewOutcome(
    summary="Commit already reviewed",
    comments=[],
    suggested_action=SuggestedAction.COMMENT,
    confidence=AGGREGATE_CONFIDENCE,
)

_SEVERITY = {
    SuggestedAction.COMMENT: 0,
    SuggestedAction.APPROVE: 1,
    SuggestedAction.REQUEST_CHANGES: 2,
}


def merge_actions(current: SuggestedAction, incoming: SuggestedAction) -> SuggestedAction:
    """REQUEST_CHANGES > APPROVE > COMMENT; the more severe action wins."""
    return incoming if _SEVERITY[incoming] > _SEVERITY[current] else current


def aggregate(outcomes: Iterable[ChunkOutcome], max_comments: int = 0) -> ReviewOutcome:
    """
    Combine chunk outcomes in chunk order.

    Summaries are joined with a blank line and comments concatenated. When
    max_comments is positive the merged list is cut to that many, so earlier
    chunks keep their comments.
    """
    summaries: List[str] = []
    comments: List[ResolvedComment] = []
    action = SuggestedAction.COMMENT

    for outcome in outcomes:
        if outcome.summary.strip():
            summaries.append(outcome.summary.strip())
        comments.extend(outcome.comments)
        action = merge_actions(action, outcome.suggested_action)

    if max_comments > 0:
        comments = comments[:max_comments]

    return ReviewOutcome(
        summary="\n\n".join(summaries),
        comments=comments,
        suggested_action=action,
        confidence=AGGREGATE_CONFIDENCE,
    )
