"""
Configuration for a review run.

Components receive a ReviewConfig explicitly; only load_config() looks at
the process environment (GitHub Action inputs arrive as INPUT_* variables).
"""

from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from pr_reviewer.batcher import DEFAULT_MAX_CHARS
from pr_reviewer.errors import ConfigError
from pr_reviewer.state import DEFAULT_REVIEWER_LOGIN

DEFAULT_CONTEXT_FILES = ["package.json", "README.md"]


class ReviewConfig(BaseModel):
    """Options recognised by the review pipeline."""

    max_comments: int = Field(0, ge=0, description="0 means unlimited")
    approve_reviews: bool = Field(False, description="If false every review is posted as COMMENT")
    project_context: Optional[str] = None
    context_files: List[str] = Field(default_factory=lambda: list(DEFAULT_CONTEXT_FILES))
    custom_instructions: Optional[str] = None
    exclude_patterns: List[str] = Field(default_factory=list)
    max_request_chars: int = Field(DEFAULT_MAX_CHARS, gt=0)
    review_label: str = "ai-reviewed"
    reviewer_login: str = Field(DEFAULT_REVIEWER_LOGIN, description="Only reviews by this login count as prior reviews")
    max_fetch_workers: int = Field(8, ge=1)


class LLMSettings(BaseModel):
    provider: str = "openai"
    model: str = "gpt-4o"
    timeout: int = Field(60, gt=0)


def _split_list(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# input name -> (config field, converter)
CONFIG_INPUTS = {
    "max_comments": ("max_comments", str.strip),
    "approve_reviews": ("approve_reviews", _parse_bool),
    "project_context": ("project_context", str),
    "context_files": ("context_files", _split_list),
    "custom_instructions": ("custom_instructions", str),
    "exclude": ("exclude_patterns", _split_list),
    "max_request_chars": ("max_request_chars", str.strip),
    "review_label": ("review_label", str.strip),
    "reviewer_login": ("reviewer_login", str.strip),
}

LLM_INPUTS = {
    "ai_provider": ("provider", lambda v: v.strip().lower()),
    "ai_model": ("model", str.strip),
    "ai_timeout": ("timeout", str.strip),
}


def _read_inputs(env: Mapping[str, str], inputs: dict) -> dict:
    """Collect GitHub Action inputs; unset and empty inputs count as missing."""
    values = {}
    for name, (field, convert) in inputs.items():
        raw = env.get(f"INPUT_{name.upper()}")
        if raw is None or raw.strip() == "":
            continue
        values[field] = convert(raw)
    return values


def load_config(env: Mapping[str, str]) -> ReviewConfig:
    """Build a ReviewConfig from action inputs. Raises ConfigError on bad values."""
    try:
        return ReviewConfig(**_read_inputs(env, CONFIG_INPUTS))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_llm_settings(env: Mapping[str, str]) -> LLMSettings:
    try:
        return LLMSettings(**_read_inputs(env, LLM_INPUTS))
    except ValidationError as e:
        raise ConfigError(f"Invalid model settings: {e}") from e
