"""
GitHub REST API client.

Implements the repository reader and writer used by the review pipeline.
Read failures raise GitHubClientError; write failures raise
PlatformWriteError so the caller can log them and carry on.
"""

import logging
import threading
from typing import Dict, List, Optional, Protocol

import requests

from pr_reviewer.errors import GitHubClientError, PlatformWriteError
from pr_reviewer.models import PreviousComment, PriorReview, PullRequest, ResolvedComment, SuggestedAction

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
PER_PAGE = 100


class RepositoryReader(Protocol):
    def get_pr_metadata(self, number: int) -> PullRequest: ...

    def get_diff(self, base: str, head: str) -> str: ...

    def get_file_content(self, path: str, ref: Optional[str] = None) -> Optional[str]: ...

    def list_prior_reviews(self, number: int) -> List[PriorReview]: ...

    def list_review_comments(self, number: int, author: Optional[str] = None) -> List[PreviousComment]: ...


class RepositoryWriter(Protocol):
    def post_review(self, number: int, summary: str, comments: List[ResolvedComment],
                    event: SuggestedAction, commit_id: Optional[str] = None) -> None: ...

    def add_label(self, number: int, label: str) -> None: ...


class GitHubClient:
    """Thin wrapper around the pull request endpoints of the GitHub API."""

    def __init__(self, token: str, owner: str, repo: str, api_url: str = GITHUB_API_BASE, timeout: int = 30):
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "pr-reviewer",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Session of the calling thread; content fetches run on a thread pool."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._new_session()
            self._local.session = session
        return session

    def _new_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(self.headers)
        return session

    def _url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}{path}"

    def _get(self, path: str, params: Optional[Dict] = None, accept: Optional[str] = None) -> requests.Response:
        headers = {"Accept": accept} if accept else None
        try:
            response = self.session.get(self._url(path), params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise GitHubClientError(f"GET {path} failed: {e}") from e
        return response

    def _get_json(self, path: str, params: Optional[Dict] = None):
        response = self._get(path, params=params)
        if not response.ok:
            raise GitHubClientError(f"GitHub returned {response.status_code} for {path}: {response.text}")
        return response.json()

    def _get_paginated(self, path: str) -> List[Dict]:
        items = []
        page = 1
        while True:
            batch = self._get_json(path, params={"per_page": PER_PAGE, "page": page})
            if not batch:
                break
            items.extend(batch)
            if len(batch) < PER_PAGE:
                break
            page += 1
        return items

    def _post(self, path: str, payload: Dict) -> Dict:
        try:
            response = self.session.post(self._url(path), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise PlatformWriteError(f"POST {path} failed: {e}") from e
        if not response.ok:
            raise PlatformWriteError(f"GitHub returned {response.status_code} for {path}: {response.text}")
        return response.json() if response.content else {}

    # ------------------------------------------------------------------
    # Reader
    # ------------------------------------------------------------------

    def get_pr_metadata(self, number: int) -> PullRequest:
        data = self._get_json(f"/pulls/{number}")
        return PullRequest(
            number=number,
            owner=self.owner,
            repo=self.repo,
            title=data.get("title") or "",
            description=data.get("body") or "",
            base_ref=data["base"]["ref"],
            head_ref=data["head"]["ref"],
            base_sha=data["base"]["sha"],
            head_sha=data["head"]["sha"],
        )

    def get_diff(self, base: str, head: str) -> str:
        """Diff of head against the merge base of base and head."""
        path = f"/compare/{base}...{head}"
        response = self._get(path, accept="application/vnd.github.v3.diff")
        if not response.ok:
            raise GitHubClientError(f"GitHub returned {response.status_code} for {path}: {response.text}")
        return response.text

    def get_file_content(self, path: str, ref: Optional[str] = None) -> Optional[str]:
        """Raw file content at ref, or None if the file does not exist there."""
        params = {"ref": ref} if ref else None
        response = self._get(f"/contents/{path}", params=params, accept="application/vnd.github.raw")
        if response.status_code == 404:
            return None
        if not response.ok:
            raise GitHubClientError(f"GitHub returned {response.status_code} for {path}: {response.text}")
        return response.text

    def list_prior_reviews(self, number: int) -> List[PriorReview]:
        reviews = self._get_paginated(f"/pulls/{number}/reviews")
        return [
            PriorReview(
                author=(r.get("user") or {}).get("login", ""),
                commit_ref=r.get("commit_id"),
                body=r.get("body") or "",
            )
            for r in reviews
        ]

    def list_review_comments(self, number: int, author: Optional[str] = None) -> List[PreviousComment]:
        comments = self._get_paginated(f"/pulls/{number}/comments")
        result = []
        for c in comments:
            if author and (c.get("user") or {}).get("login") != author:
                continue
            result.append(PreviousComment(
                path=c.get("path", ""),
                line=c.get("line") or c.get("original_line"),
                body=c.get("body") or "",
            ))
        return result

    # ------------------------------------------------------------------
    # Writer
    # ------------------------------------------------------------------

    def post_review(self, number: int, summary: str, comments: List[ResolvedComment],
                    event: SuggestedAction, commit_id: Optional[str] = None) -> None:
        payload = {
            "body": summary,
            "event": event.value,
            "comments": [{"path": c.path, "position": c.position, "body": c.body} for c in comments],
        }
        if commit_id:
            payload["commit_id"] = commit_id
        self._post(f"/pulls/{number}/reviews", payload)
        logger.info(f"Posted {event.value} review with {len(comments)} comments on PR #{number}")

    def add_label(self, number: int, label: str) -> None:
        self._post(f"/issues/{number}/labels", {"labels": [label]})
