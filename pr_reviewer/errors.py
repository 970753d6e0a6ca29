"""
Exception taxonomy for the review pipeline.

Per-file and per-chunk errors are caught where they occur and the run
continues; only DiffUnavailableError, UnsupportedEventError and ConfigError
stop a run.
"""


class ReviewerError(Exception):
    """Base exception for reviewer errors."""
    pass


class ConfigError(ReviewerError):
    """Invalid configuration (bad exclude pattern, missing credentials)."""
    pass


class ParseError(ReviewerError):
    """A file section of the diff is structurally malformed."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class ModelResponseError(ReviewerError):
    """Model output was empty or did not match the response schema."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class LLMTimeoutError(ReviewerError):
    """LLM call timed out."""
    pass


class MappingMiss(ReviewerError):
    """A model suggestion could not be anchored to a commentable diff line."""

    def __init__(self, message: str, path: str = "", line=None):
        super().__init__(message)
        self.path = path
        self.line = line


class GitHubClientError(ReviewerError):
    """Reading from the repository host failed."""
    pass


class PlatformWriteError(GitHubClientError):
    """Posting a review or a label failed."""
    pass


class DiffUnavailableError(ReviewerError):
    """The diff for the pull request could not be retrieved."""
    pass


class UnsupportedEventError(ReviewerError):
    """The triggering event is not one the reviewer handles."""
    pass
