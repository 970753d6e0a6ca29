"""
Model client for code review requests.

Sends one ReviewRequest to the configured provider and decodes the reply
into a ModelReview. Any provider failure surfaces as a ReviewerError
subclass; the caller decides whether to drop the chunk.
"""

import json
import logging
import os
import re
from typing import List, Optional, Protocol

from pydantic import ValidationError

from pr_reviewer.errors import ConfigError, LLMTimeoutError, ModelResponseError, ReviewerError
from pr_reviewer.models import (
    DecodedReview,
    DecodeFailure,
    DecodeResult,
    ModelReview,
    ModelSuggestion,
    ReviewRequest,
    SuggestedAction,
)
from pr_reviewer.prompts import PROMPT_VERSION, build_system_prompt, build_task_prompt

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "anthropic", "local")

_FENCE_START_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END_RE = re.compile(r"\s*```$")


class ModelClient(Protocol):
    def review(self, request: ReviewRequest) -> ModelReview:
        ...


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` block if present."""
    content = content.strip()
    content = _FENCE_START_RE.sub("", content)
    content = _FENCE_END_RE.sub("", content)
    return content.strip()


def _normalize_action(value) -> SuggestedAction:
    # "approve" | "request_changes" | "comment"; anything else is a plain comment
    if not isinstance(value, str):
        return SuggestedAction.COMMENT
    normalized = value.strip().upper().replace(" ", "_")
    if normalized in SuggestedAction.__members__:
        return SuggestedAction[normalized]
    return SuggestedAction.COMMENT


def _clamp_confidence(value) -> int:
    try:
        return max(0, min(100, int(round(float(value)))))
    except (TypeError, ValueError):
        return 0


def decode_review(content: Optional[str]) -> DecodeResult:
    """
    Decode raw model text into a ModelReview.

    Comments that fail validation are skipped individually; a reply that is
    empty, not JSON, or not an object yields a DecodeFailure.
    """
    raw = content or ""
    text = strip_code_fences(raw)
    if not text:
        return DecodeFailure(reason="empty model output", raw_text=raw)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return DecodeFailure(reason=f"model output is not valid JSON: {e}", raw_text=raw)

    if not isinstance(data, dict):
        return DecodeFailure(reason="model output is not a JSON object", raw_text=raw)

    raw_comments = data.get("comments") or []
    if not isinstance(raw_comments, list):
        return DecodeFailure(reason='"comments" is not a list', raw_text=raw)

    comments: List[ModelSuggestion] = []
    for item in raw_comments:
        try:
            comments.append(ModelSuggestion(**item))
        except (TypeError, ValidationError) as e:
            # Log but don't fail - skip invalid comments
            logger.warning(f"Skipping invalid comment: {e}")

    summary = data.get("summary")
    review = ModelReview(
        summary=summary if isinstance(summary, str) else "",
        comments=comments,
        suggested_action=_normalize_action(data.get("suggestedAction")),
        confidence=_clamp_confidence(data.get("confidence")),
    )
    return DecodedReview(review=review)


def parse_model_output(content: Optional[str]) -> ModelReview:
    """Decode model output or raise ModelResponseError carrying the raw text."""
    result = decode_review(content)
    if isinstance(result, DecodeFailure):
        raise ModelResponseError(result.reason, raw_text=result.raw_text)
    return result.review


class LLMClient:
    """
    ModelClient backed by a hosted or local chat model.

    Failure modes:
    - Timeout → raises LLMTimeoutError
    - Invalid output → raises ModelResponseError
    - API error → raises ReviewerError
    """

    def __init__(self, provider: str = "openai", model: str = "gpt-4o", timeout: int = 60,
                 temperature: float = 0.2, max_tokens: int = 4000):
        if provider not in SUPPORTED_PROVIDERS:
            raise ConfigError(f"Unsupported LLM provider: {provider}")
        self.provider = provider
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def display_name(self) -> str:
        return f"{self.provider.upper()} - {self.model}"

    def review(self, request: ReviewRequest) -> ModelReview:
        system_prompt = build_system_prompt(request)
        task_prompt = build_task_prompt(request)
        logger.debug(f"Sending {len(request.files)} files to {self.display_name} "
                     f"(prompt {PROMPT_VERSION}, {len(task_prompt)} chars)")

        try:
            if self.provider == "openai":
                content = self._call_openai(system_prompt, task_prompt)
            elif self.provider == "anthropic":
                content = self._call_anthropic(system_prompt, task_prompt)
            else:
                content = self._call_local(system_prompt, task_prompt)
        except ReviewerError:
            raise
        except Exception as e:
            # Re-raise as ReviewerError for consistent handling
            raise ReviewerError(f"LLM call failed: {str(e)}") from e

        return parse_model_output(content)

    def _call_openai(self, system_prompt: str, task_prompt: str) -> str:
        """Call OpenAI API."""
        from openai import APITimeoutError, OpenAI, OpenAIError

        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ReviewerError("OPENAI_API_KEY not set")

        client = OpenAI(api_key=api_key, timeout=self.timeout)
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": task_prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except APITimeoutError as e:
            raise LLMTimeoutError("OpenAI API timeout") from e
        except OpenAIError as e:
            raise ReviewerError(f"OpenAI API error: {str(e)}") from e

        return response.choices[0].message.content or ""

    def _call_anthropic(self, system_prompt: str, task_prompt: str) -> str:
        """Call Anthropic API via LangChain integration."""
        from langchain_anthropic import ChatAnthropic
        from langchain_core.messages import HumanMessage, SystemMessage

        api_key = os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ReviewerError("ANTHROPIC_API_KEY not set")

        llm = ChatAnthropic(
            model=self.model,
            api_key=api_key,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=task_prompt),
        ]

        try:
            response = llm.invoke(messages)
        except Exception as e:
            if "timeout" in str(e).lower():
                raise LLMTimeoutError("Anthropic API timeout") from e
            raise ReviewerError(f"Anthropic (LangChain) error: {str(e)}") from e

        content = response.content
        if isinstance(content, list):
            # Content blocks; keep the text parts
            content = "".join(block.get("text", "") if isinstance(block, dict) else str(block) for block in content)
        return content

    def _call_local(self, system_prompt: str, task_prompt: str) -> str:
        """Call local LLM server (e.g., Ollama, vLLM)."""
        import requests

        endpoint = os.getenv("LOCAL_LLM_ENDPOINT", "http://localhost:8000/v1/chat/completions")
        try:
            response = requests.post(
                endpoint,
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": task_prompt},
                    ],
                    "temperature": self.temperature,
                    "max_tokens": self.max_tokens,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()["choices"][0]["message"]["content"] or ""
        except requests.Timeout as e:
            raise LLMTimeoutError("Local LLM timeout") from e
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            raise ReviewerError(f"Local LLM error: {str(e)}") from e
