"""
Data models for the pull request reviewer.
Using Pydantic for validation and type safety.
"""

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class LineKind(str, Enum):
    """Kind of a diff line. Values double as the prefixes shown to the model."""

    ADD = "add"
    DEL = "del"
    CONTEXT = "normal"


class DiffLine(BaseModel):
    """Single line inside a hunk body."""

    kind: LineKind
    content: str
    file_line_old: Optional[int] = None
    file_line_new: Optional[int] = None
    diff_position: Optional[int] = Field(None, description="Position counted from the file's first hunk header")

    @property
    def commentable(self) -> bool:
        return self.kind != LineKind.DEL and self.diff_position is not None


class DiffHunk(BaseModel):
    """One contiguous change region of a file."""

    header: str
    lines: List[DiffLine] = Field(default_factory=list)


class DiffFile(BaseModel):
    """One file of a parsed unified diff."""

    old_path: str
    new_path: str
    is_deleted: bool = False
    is_new: bool = False
    hunks: List[DiffHunk] = Field(default_factory=list)

    def iter_lines(self):
        for hunk in self.hunks:
            yield from hunk.lines


class ReviewFile(BaseModel):
    """Reviewable unit: a file's rendered diff with its content before and after."""

    path: str
    content: Optional[str] = None
    original_content: Optional[str] = None
    diff: str


class PullRequest(BaseModel):
    """Pull request metadata as needed by the pipeline."""

    number: int
    owner: str
    repo: str
    title: str = ""
    description: str = ""
    base_ref: str = ""
    head_ref: str = ""
    base_sha: str
    head_sha: str

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


class SuggestedAction(str, Enum):
    APPROVE = "APPROVE"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    COMMENT = "COMMENT"


class ModelSuggestion(BaseModel):
    """Comment as reported by the model. Line numbers are not validated here."""

    path: str
    line: int
    comment: str


class ModelReview(BaseModel):
    """Decoded model output for one chunk."""

    summary: str = ""
    comments: List[ModelSuggestion] = Field(default_factory=list)
    suggested_action: SuggestedAction = SuggestedAction.COMMENT
    confidence: int = Field(0, ge=0, le=100, description="Model's confidence in its verdict, 0-100")


class DecodedReview(BaseModel):
    kind: Literal["ok"] = "ok"
    review: ModelReview


class DecodeFailure(BaseModel):
    kind: Literal["error"] = "error"
    reason: str
    raw_text: str


DecodeResult = Union[DecodedReview, DecodeFailure]


class ResolvedComment(BaseModel):
    """Inline comment anchored to a diff position, ready to publish."""

    path: str
    body: str
    position: int = Field(..., ge=1)


class ChunkOutcome(BaseModel):
    """Mapped result of a single model call."""

    summary: str
    comments: List[ResolvedComment] = Field(default_factory=list)
    suggested_action: SuggestedAction = SuggestedAction.COMMENT
    confidence: int = 0


class ReviewOutcome(BaseModel):
    """PR-level review result."""

    summary: str
    comments: List[ResolvedComment] = Field(default_factory=list)
    suggested_action: SuggestedAction = SuggestedAction.COMMENT
    confidence: int = 1

    model_config = ConfigDict(frozen=True)


class PriorReview(BaseModel):
    """Review already recorded on the platform."""

    author: str
    commit_ref: Optional[str] = None
    body: str = ""


class PreviousComment(BaseModel):
    """Inline comment left by an earlier review pass."""

    path: str
    line: Optional[int] = None
    body: str


class ReviewStatus(str, Enum):
    NEW = "new"
    UPDATE = "update"
    SKIPPED = "skipped"


class ReviewPlan(BaseModel):
    """What the current invocation has to do, given the review history."""

    status: ReviewStatus
    base_ref: Optional[str] = Field(None, description="Commit to diff against; None means the PR base")
    last_reviewed_commit: Optional[str] = None

    @property
    def is_update(self) -> bool:
        return self.status == ReviewStatus.UPDATE


class ContextFile(BaseModel):
    path: str
    content: str


class RequestContext(BaseModel):
    repository: str = ""
    owner: str = ""
    project_context: Optional[str] = None
    is_update: bool = False
    custom_instructions: Optional[str] = None


class PullRequestInfo(BaseModel):
    title: str
    description: str
    base: str
    head: str


class ReviewRequest(BaseModel):
    """Structured request for one chunk, handed to the model client."""

    files: List[ReviewFile]
    context_files: List[ContextFile] = Field(default_factory=list)
    previous_comments: List[PreviousComment] = Field(default_factory=list)
    pull_request: PullRequestInfo
    context: RequestContext = Field(default_factory=RequestContext)
