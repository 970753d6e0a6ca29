"""
LLM prompts and request building for code review.

Prompts are versioned and tracked in Git for rollback capability.
The model must answer in the JSON schema below, using only line numbers that
appear in the supplied diff.
"""

import json
from typing import List, Optional

from pr_reviewer.config import ReviewConfig
from pr_reviewer.models import (
    ContextFile,
    PreviousComment,
    PullRequest,
    PullRequestInfo,
    RequestContext,
    ReviewFile,
    ReviewRequest,
)

OUTPUT_FORMAT = """
{
  "summary": "",
  "comments": [{"path": "file_path", "line": number, "comment": "comment text"}],
  "suggestedAction": "approve|request_changes|comment",
  "confidence": number
}
"""

BASE_REVIEW_PROMPT = f"""
You are an expert code reviewer. Analyze the provided code changes and provide detailed, actionable feedback.

Follow this JSON format:
{OUTPUT_FORMAT}

------
For the "summary" field, use Markdown formatting and follow these guidelines:
1. Core Changes
   - What is the main purpose/goal of this PR?
   - Only highlight the most impactful changes

2. Concerns (if any)
   - Security issues
   - Performance impacts
   - Logic flaws
   - Breaking changes

3. Verdict:
   Should be one of the following:
   - Approve: Changes look good, no major issues
   - Comment: Minor concerns or need clarification
   - Request Changes: Serious issues that must be addressed
   Also add a short explanation for the verdict.

Note:
- Skip minor/stylistic issues
- No need to explain every file
- Missing tests/comments alone shouldn't block approval
------

For the "comments" field, provide a list of comments. Each comment should have the following fields:
- path: The path to the file that the comment is about
- line: The line number in the file that the comment is about
- comment: The comment text
Other rules for "comments" field:
- Comments should ONLY be added to lines or blocks of code that have issues.
- ONLY use line numbers that appear in the "diff" property of each file
- Each diff line starts with a prefix:
  * "normal" for unchanged lines
  * "del" for removed lines
  * "add" for added lines
- Extract the line number that appears after the prefix
- DO NOT use line number 0 or line numbers not present in the diff
- DO NOT comment on removed ("del") lines; comment on the added or unchanged line next to them instead
- NEVER suggest adding comments or tests to the code

For the "suggestedAction" field, provide a single word that indicates the action to be taken. Options are:
- "approve"
- "request_changes"
- "comment"

For the "confidence" field, provide a number between 0 and 100 that indicates the confidence in the verdict.

Return ONLY the JSON object, no markdown formatting.
"""

UPDATE_REVIEW_PROMPT = """
When reviewing updates to a PR:
1. Focus on the modified sections but consider their context
2. Reference previous comments if they're still relevant
3. Acknowledge fixed issues from previous reviews
4. Only comment on new issues or unresolved previous issues
5. Consider the cumulative impact of changes
6. IMPORTANT: Only use line numbers that appear in the current "diff" field
"""

# Prompt version for tracking/rollback
PROMPT_VERSION = "v2.0"


def build_review_request(
    chunk: List[ReviewFile],
    pull_request: PullRequest,
    config: ReviewConfig,
    context_files: Optional[List[ContextFile]] = None,
    previous_comments: Optional[List[PreviousComment]] = None,
    is_update: bool = False,
) -> ReviewRequest:
    """Build the model request for one chunk of files."""
    return ReviewRequest(
        files=list(chunk),
        context_files=context_files or [],
        # Prior comments only matter to an update pass
        previous_comments=(previous_comments or []) if is_update else [],
        pull_request=PullRequestInfo(
            title=pull_request.title,
            description=pull_request.description,
            base=pull_request.base_sha,
            head=pull_request.head_sha,
        ),
        context=RequestContext(
            repository=pull_request.repository,
            owner=pull_request.owner,
            project_context=config.project_context,
            is_update=is_update,
            custom_instructions=config.custom_instructions,
        ),
    )


def build_system_prompt(request: ReviewRequest) -> str:
    """Fixed instructions, plus update guidance and the configured extras."""
    parts = [BASE_REVIEW_PROMPT.strip()]
    if request.context.is_update:
        parts.append(UPDATE_REVIEW_PROMPT.strip())
    if request.context.project_context:
        parts.append(f"Project context:\n{request.context.project_context.strip()}")
    if request.context.custom_instructions:
        parts.append(f"Additional instructions:\n{request.context.custom_instructions.strip()}")
    return "\n\n".join(parts)


def build_task_prompt(request: ReviewRequest) -> str:
    """Build the task prompt for a specific chunk."""
    payload = {
        "repository": request.context.repository,
        "files": [f.model_dump() for f in request.files],
        "contextFiles": [f.model_dump() for f in request.context_files],
    }
    if request.previous_comments:
        payload["previousComments"] = [c.model_dump() for c in request.previous_comments]

    pr = request.pull_request
    description = pr.description.strip() or "(no description)"
    prompt = f"""Review the following pull request changes.

TITLE: {pr.title}

DESCRIPTION:
---
{description}
---

CHANGES (JSON):
{json.dumps(payload, indent=2, ensure_ascii=False)}

Return a JSON object following the schema specified in the system prompt.
If there is nothing to improve, return an empty "comments" array."""

    return prompt
